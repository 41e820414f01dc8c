"""
Remote Sync Server.

HTTP front end for the syncstore session registry: configuration, request
dispatch, transport and audit logging.
"""

from __future__ import annotations

from .audit import AuditLogger
from .config import (
    CredentialsConfig,
    LoggingConfig,
    ServerConfig,
    SessionsConfig,
    StorageConfig,
    TransportConfig,
)
from .dispatcher import RequestDispatcher
from .server import SyncServer, create_server
from .transport import build_app

__all__ = [
    "AuditLogger",
    "CredentialsConfig",
    "LoggingConfig",
    "RequestDispatcher",
    "ServerConfig",
    "SessionsConfig",
    "StorageConfig",
    "SyncServer",
    "TransportConfig",
    "build_app",
    "create_server",
]
