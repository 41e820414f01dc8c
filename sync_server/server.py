"""
Remote Sync Server.

Wires configuration, credentials, the session registry, the dispatcher and
the HTTP transport together, and runs the optional periodic sweep of
expired sessions for the lifetime of the application.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager, suppress
from typing import Any

import uvicorn
from starlette.applications import Starlette

from syncstore.core.errors import ConfigValidationError
from syncstore.core.logging import SyncLogger
from syncstore.registry import SessionRegistry
from syncstore.sessions import load_credentials

from .audit import AuditLogger
from .config import ServerConfig
from .dispatcher import RequestDispatcher
from .transport import build_app, get_uvicorn_config


class SyncServer:
    """
    Remote sync server.

    Owns the session registry and exposes it over HTTP. When
    ``sessions.sweep_interval_seconds`` is positive, expired sessions are
    also swept on that interval; otherwise they are reclaimed only when a
    request finds them.
    """

    def __init__(
        self,
        config: ServerConfig,
        credentials: Mapping[str, str],
        registry: SessionRegistry | None = None,
    ) -> None:
        self.config = config
        self.logger = SyncLogger("sync-server")
        self.registry = registry or SessionRegistry(
            credentials,
            config.registry_policy(),
            logger=SyncLogger("syncstore"),
        )
        self.dispatcher = RequestDispatcher(self.registry, audit_logger=AuditLogger())
        self.app: Starlette = build_app(self.dispatcher, lifespan=self._lifespan)
        self._sweep_task: asyncio.Task[None] | None = None

    @asynccontextmanager
    async def _lifespan(self, app: Starlette) -> AsyncGenerator[None, None]:
        self.logger._emit(logging.DEBUG, "Starting sync server lifespan")
        await self.start_sweep_task()
        try:
            yield
        finally:
            await self.shutdown()

    async def start_sweep_task(self) -> None:
        """Start background sweep task if a sweep interval is configured."""
        if self._sweep_task is None and self.config.sessions.sweep_interval_seconds > 0:
            self._sweep_task = asyncio.create_task(self._periodic_sweep())

    async def stop_sweep_task(self) -> None:
        """Stop background sweep task."""
        if self._sweep_task:
            self._sweep_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._sweep_task
            self._sweep_task = None

    async def _periodic_sweep(self) -> None:
        interval = self.config.sessions.sweep_interval_seconds
        while True:
            await asyncio.sleep(interval)
            await asyncio.to_thread(self.registry.sweep_expired)

    async def serve(self) -> None:
        """Serve the HTTP transport until cancelled."""
        transport = self.config.transport
        if not transport.tls_enabled:
            self.logger._emit(
                logging.WARNING,
                "TLS is not configured; tokens and file contents travel in clear text",
            )

        uvicorn_config = get_uvicorn_config(
            host=transport.host,
            port=transport.port,
            max_concurrent_requests=transport.max_concurrent_requests,
            signed_cert_path=str(transport.signed_cert_path) if transport.tls_enabled else None,
            signed_key_path=str(transport.signed_key_path) if transport.tls_enabled else None,
        )
        self.logger._emit(
            logging.INFO,
            "Starting sync server",
            host=transport.host,
            port=transport.port,
            tls=transport.tls_enabled,
            backend=self.config.storage.backend.value,
        )
        await uvicorn.Server(uvicorn.Config(self.app, **uvicorn_config)).serve()

    async def shutdown(self) -> None:
        """Stop background tasks."""
        self.logger._emit(
            logging.INFO,
            "Shutting down sync server",
            active_sessions=self.registry.active_session_count(),
        )
        await self.stop_sweep_task()


def create_server(config: ServerConfig, **kwargs: Any) -> SyncServer:
    """Create a server from configuration, loading its credential table.

    Args:
        config: Server configuration; ``credentials.csv_path`` must be set
        **kwargs: Passed through to SyncServer

    Returns:
        Configured SyncServer

    Raises:
        ConfigValidationError: If no credential table is configured
        CredentialsFormatError: If the credential table is malformed
        OSError: If the credential table cannot be read
    """
    if config.credentials.csv_path is None:
        raise ConfigValidationError("credentials.csv_path must be set")

    credentials = load_credentials(
        config.credentials.csv_path, logger=SyncLogger("syncstore")
    )
    return SyncServer(config, credentials, **kwargs)
