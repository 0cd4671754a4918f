"""
Utility script to generate and write the RPC procedure manifest.

The manifest lists every procedure exposed on the RPC endpoint with its
path, kind (query or mutation), whether it needs a session, and the JSON
schema of its input and output, so clients can be generated or checked
without running the server.

Usage:
    python -m todo_rpc.generate_schema [output_path]

Output defaults to interfaces/rpc_schema.json under the current directory.
"""
from __future__ import annotations

import json
import os
import sys
from typing import Any, Dict, Optional

from .main import RPC_PREFIX
from .routers import app_router

DEFAULT_OUTPUT = os.path.join("interfaces", "rpc_schema.json")


# PUBLIC_INTERFACE
def build_manifest() -> Dict[str, Any]:
    """Return the manifest of the root procedure router."""
    return {
        "endpoint": RPC_PREFIX,
        "procedures": app_router.describe(),
    }


# PUBLIC_INTERFACE
def generate_schema(out_path: Optional[str] = None) -> str:
    """Write the manifest as pretty JSON and return the written file path."""
    out_path = out_path or DEFAULT_OUTPUT
    os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(build_manifest(), f, indent=2, ensure_ascii=False)
    return out_path


def main() -> None:
    path = generate_schema(sys.argv[1] if len(sys.argv) > 1 else None)
    print(f"Wrote RPC schema to: {path}")


if __name__ == "__main__":
    main()
