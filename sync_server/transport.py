"""
HTTP transport for the remote sync RPCs.

One POST route per RPC with JSON bodies. Dispatcher calls block on storage
I/O, so they run in Starlette's threadpool; the registry and handles are
thread-safe.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from syncstore.core.errors import (
    InvalidCredentialsError,
    InvalidTokenError,
    NonLocalPathError,
    SyncStoreError,
)

from .dispatcher import (
    LastWriteRequest,
    LoginRequest,
    Message,
    ReadRequest,
    RequestDispatcher,
    WriteRequest,
)

# Checked in order; first match wins
_ERROR_MAP: list[tuple[type[BaseException], int, str]] = [
    (InvalidCredentialsError, 401, "invalid_credentials"),
    (InvalidTokenError, 401, "invalid_token"),
    (NonLocalPathError, 403, "non_local_path"),
    (FileNotFoundError, 404, "not_found"),
    (OSError, 500, "backend_error"),
    (SyncStoreError, 500, "server_error"),
]


def error_response(exc: SyncStoreError | OSError) -> JSONResponse:
    """Translate a registry or storage error into a JSON error response."""
    for exc_type, status, code in _ERROR_MAP:
        if isinstance(exc, exc_type):
            break
    else:
        status, code = 500, "server_error"

    if isinstance(exc, FileNotFoundError):
        message = "file not found"
    elif isinstance(exc, OSError):
        # strerror only, so server-side paths are not echoed to clients
        message = exc.strerror or "storage failure"
    else:
        message = str(exc)

    return JSONResponse({"error": code, "message": message}, status_code=status)


def _endpoint(
    request_model: type[Message],
    handler: Callable[[Any, str], Message],
) -> Callable[[Request], Any]:
    async def endpoint(request: Request) -> Response:
        try:
            msg = request_model.model_validate_json(await request.body())
        except ValidationError as e:
            return JSONResponse(
                {"error": "invalid_request", "message": f"{e.error_count()} invalid field(s)"},
                status_code=400,
            )

        client_id = request.client.host if request.client else "unknown"
        try:
            reply = await run_in_threadpool(handler, msg, client_id)
        except (SyncStoreError, OSError) as exc:
            return error_response(exc)

        return Response(reply.model_dump_json(), media_type="application/json")

    return endpoint


def build_app(dispatcher: RequestDispatcher, lifespan: Any = None) -> Starlette:
    """Build the Starlette application exposing the RPC routes.

    Args:
        dispatcher: Dispatcher the routes delegate to
        lifespan: Optional Starlette lifespan context manager factory

    Returns:
        Starlette application
    """
    routes = [
        Route("/login", _endpoint(LoginRequest, dispatcher.login), methods=["POST"]),
        Route("/read", _endpoint(ReadRequest, dispatcher.read), methods=["POST"]),
        Route("/write", _endpoint(WriteRequest, dispatcher.write), methods=["POST"]),
        Route(
            "/last-modified",
            _endpoint(ReadRequest, dispatcher.get_last_modified),
            methods=["POST"],
        ),
        Route(
            "/last-write",
            _endpoint(LastWriteRequest, dispatcher.get_last_write),
            methods=["POST"],
        ),
        Route("/read-dir", _endpoint(ReadRequest, dispatcher.read_dir), methods=["POST"]),
    ]
    return Starlette(routes=routes, lifespan=lifespan)


def get_uvicorn_config(
    host: str,
    port: int,
    max_concurrent_requests: int,
    signed_cert_path: str | None = None,
    signed_key_path: str | None = None,
) -> dict[str, Any]:
    """Get uvicorn configuration for this transport."""
    config: dict[str, Any] = {
        "host": host,
        "port": port,
        "access_log": False,
        "log_level": "warning",
        "limit_concurrency": max_concurrent_requests,
    }
    if signed_cert_path is not None:
        config["ssl_certfile"] = signed_cert_path
        config["ssl_keyfile"] = signed_key_path
    return config
