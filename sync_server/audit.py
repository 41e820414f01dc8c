"""
Audit Logging for Remote Sync Server Security Events.

Provides audit trails for authentication outcomes and rejected requests,
for compliance logging and forensic analysis.
"""

from __future__ import annotations

import logging
from typing import Any

from syncstore.core.logging import SyncLogger, token_fingerprint


class AuditLogger:
    """
    Audit logger for security and compliance events.

    Provides structured audit logging for:
    - Successful and rejected logins
    - Requests carrying unknown or expired tokens
    - Attempts to reach paths outside a user's directory
    """

    def __init__(self, logger: Any = None):
        self.logger = logger or SyncLogger("sync-audit")

    def log_login(self, username: str, client_id: str, success: bool, **extra: Any) -> None:
        """Log a login attempt for audit purposes."""
        event_data = {
            "event_type": "login",
            "username": username,
            "client_id": client_id,
            "success": success,
            **extra,
        }

        level = logging.INFO if success else logging.WARNING
        self.logger._emit(level, "sync.audit.login", **event_data)

    def log_token_rejected(self, operation: str, client_id: str, token: bytes, **extra: Any) -> None:
        """Log a request refused because its token did not resolve."""
        event_data = {
            "event_type": "token_rejected",
            "operation": operation,
            "client_id": client_id,
            "token": token_fingerprint(token),
            **extra,
        }

        self.logger._emit(logging.WARNING, "sync.audit.token_rejected", **event_data)

    def log_non_local_path(
        self, operation: str, client_id: str, token: bytes, path: str, **extra: Any
    ) -> None:
        """Log a request whose path escaped the user's directory."""
        event_data = {
            "event_type": "non_local_path",
            "operation": operation,
            "client_id": client_id,
            "token": token_fingerprint(token),
            "path": path,
            **extra,
        }

        self.logger._emit(logging.WARNING, "sync.audit.non_local_path", **event_data)
