from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - DATABASE_URL: sqlite connection string. Default 'sqlite:///./data/todos.db'
    - FRONTEND_URL: origin allowed for cross-origin requests; '*' allows any
    - HOST / PORT: listen address for the uvicorn launcher (default 0.0.0.0:3001)
    - APP_ENV: 'production' (default) or 'development'
    - LOG_LEVEL: logging level; defaults to DEBUG in development, INFO otherwise
    - LOG_FILE: optional path of a log file (console only when unset)
    - SESSION_TTL_SECONDS: lifetime of a session token (default 7 days)
    - COOKIE_SECURE: 'true' to mark the session cookie Secure
    - BCRYPT_ROUNDS: bcrypt cost factor for password hashes (default 12)
    """

    database_url: str
    database_path: str
    frontend_url: str
    cors_allow_origins: List[str]
    host: str
    port: int
    log_level: str
    log_file: Optional[str]
    session_ttl_seconds: int
    cookie_secure: bool
    bcrypt_rounds: int


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int) -> int:
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


# PUBLIC_INTERFACE
def database_path_from_url(url: str) -> str:
    """
    Resolve the filesystem path of a sqlite connection string.

    Accepts 'sqlite:///relative/path.db', 'sqlite:////absolute/path.db' or a
    bare filesystem path. In-memory databases are rejected because every unit
    of work opens its own connection.
    """
    value = url.strip()
    prefix = "sqlite:///"
    if value.startswith(prefix):
        value = value[len(prefix):]
    elif "://" in value:
        raise ValueError(f"Unsupported DATABASE_URL scheme: {url!r}")
    if not value or value == ":memory:":
        raise ValueError("DATABASE_URL must point at a database file")
    return value


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    database_url = _get_env("DATABASE_URL", "sqlite:///./data/todos.db").strip()
    frontend_url = _get_env("FRONTEND_URL", "http://localhost:3000").strip()

    app_env = _get_env("APP_ENV", "production").strip().lower()
    default_level = "DEBUG" if app_env == "development" else "INFO"
    log_level = _get_env("LOG_LEVEL", default_level).strip().upper()

    return Settings(
        database_url=database_url,
        database_path=database_path_from_url(database_url),
        frontend_url=frontend_url,
        cors_allow_origins=_parse_origins(frontend_url),
        host=_get_env("HOST", "0.0.0.0").strip(),
        port=_parse_int(_get_env("PORT", "3001"), 3001),
        log_level=log_level,
        log_file=os.getenv("LOG_FILE") or None,
        session_ttl_seconds=_parse_int(_get_env("SESSION_TTL_SECONDS", "604800"), 604800),
        cookie_secure=_parse_bool(_get_env("COOKIE_SECURE", "false"), False),
        bcrypt_rounds=_parse_int(_get_env("BCRYPT_ROUNDS", "12"), 12),
    )
