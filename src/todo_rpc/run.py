"""CLI entry point for launching the FastAPI app with uvicorn."""

import logging

import uvicorn

from .logger import setup_logger
from .main import AUTH_PREFIX, RPC_PREFIX
from .settings import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the server on HOST:PORT."""
    settings = get_settings()
    setup_logger(log_level=settings.log_level, log_file=settings.log_file)

    base = f"http://{settings.host}:{settings.port}"
    logger.info("[Server] Ready at %s", base)
    logger.info("[RPC] Endpoint: %s%s", base, RPC_PREFIX)
    logger.info("[Auth] Endpoint: %s%s", base, AUTH_PREFIX)

    uvicorn.run(
        "todo_rpc.main:create_app",
        host=settings.host,
        port=settings.port,
        factory=True,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
