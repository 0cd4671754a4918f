from __future__ import annotations

import logging
import os
from typing import Optional, Union

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from fastapi.staticfiles import StaticFiles
from starlette.concurrency import run_in_threadpool

from .auth import AuthRequest, AuthResponse, AuthService
from .db import Database
from .routers import app_router
from .rpc import RPCHandler
from .schemas import HealthOut
from .settings import Settings, get_settings
from .utils import iso_now

logger = logging.getLogger(__name__)

STATIC_DIR = os.path.join(os.path.dirname(__file__), "static")

RPC_PREFIX = "/trpc"
AUTH_PREFIX = "/api/auth"

_AUTH_FAILURE = {"error": "Internal authentication error", "code": "AUTH_FAILURE"}


def _lower_headers(request: Request) -> dict:
    return {k.lower(): v for k, v in request.headers.items()}


def _is_batch(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true"}


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Routes:
    - /trpc/{paths}: batched RPC endpoint (GET for queries, POST for mutations)
    - /api/auth/*: pass-through to the auth collaborator
    - /health: plain liveness check
    - / and /static/*: browser frontend
    """
    settings = settings or get_settings()

    database = Database(settings.database_path)
    database.init_schema()
    auth = AuthService(
        session_ttl_seconds=settings.session_ttl_seconds,
        cookie_secure=settings.cookie_secure,
        bcrypt_rounds=settings.bcrypt_rounds,
    )

    app = FastAPI(
        title="Todo RPC",
        description="Multi-user todo list served over a batched RPC endpoint with session authentication.",
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.database = database
    app.state.auth = auth
    app.state.rpc = RPCHandler(app_router, database, auth)

    # Browsers need an explicit origin to send credentials; '*' echoes the caller.
    allow_all = settings.cors_allow_origins == ["*"] or len(settings.cors_allow_origins) == 0
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[] if allow_all else settings.cors_allow_origins,
        allow_origin_regex=".*" if allow_all else None,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # PUBLIC_INTERFACE
    @app.get("/health", response_model=HealthOut, summary="Health Check", tags=["health"])
    def health_check() -> HealthOut:
        """Liveness check; touches neither the store nor the session."""
        return HealthOut(status="ok", timestamp=iso_now())

    # PUBLIC_INTERFACE
    @app.api_route(RPC_PREFIX + "/{paths}", methods=["GET", "POST"], tags=["rpc"])
    async def rpc_endpoint(paths: str, request: Request) -> JSONResponse:
        """Serve single or batched procedure calls."""
        raw_input: Union[str, bytes, None]
        if request.method == "GET":
            raw_input = request.query_params.get("input")
        else:
            raw_input = await request.body()
        result = await run_in_threadpool(
            request.app.state.rpc.handle,
            request.method,
            paths,
            raw_input,
            _lower_headers(request),
            _is_batch(request.query_params.get("batch")),
        )
        return JSONResponse(status_code=result.status, content=result.body)

    def _serve_auth(forwarded: AuthRequest) -> AuthResponse:
        with database.connect() as conn:
            return app.state.auth.handle(conn, forwarded)

    # PUBLIC_INTERFACE
    @app.api_route(
        AUTH_PREFIX + "/{path:path}",
        methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        tags=["auth"],
    )
    async def auth_passthrough(path: str, request: Request) -> Response:
        """Forward the raw request to the auth collaborator and relay its answer."""
        try:
            forwarded = AuthRequest(
                method=request.method,
                path=path,
                headers=_lower_headers(request),
                body=await request.body(),
            )
            result = await run_in_threadpool(_serve_auth, forwarded)
            response = Response(content=result.body, status_code=result.status)
            for name, value in result.headers:
                response.headers.append(name, value)
            return response
        except Exception:
            logger.exception("Authentication Error")
            return JSONResponse(status_code=500, content=_AUTH_FAILURE)

    app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

    @app.get("/", include_in_schema=False)
    def index() -> FileResponse:
        """Serve the browser frontend."""
        return FileResponse(os.path.join(STATIC_DIR, "index.html"))

    return app
