"""Structured logging for session lifecycle, file access and security events.

Provides SyncLogger, which uses structlog for structured event emission
(login.succeeded, session.rotated, security events, ...). Configures
structlog with console rendering by default but allows JSON output and
logging to a file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, TextIO

import structlog

_TOKEN_FINGERPRINT_BYTES = 4

_log_file: TextIO | None = None


def configure_structlog(
    level: int = logging.INFO,
    use_json: bool = False,
    log_path: str | Path | None = None,
) -> None:
    """Configure structlog with sensible defaults for server logging.

    Args:
        level: Minimum log level (default: logging.INFO)
        use_json: If True, use JSON renderer; otherwise use console renderer
        log_path: File to append log lines to. None, "" or "-" logs to stdout.
    """
    global _log_file

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if use_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=log_path in (None, "", "-")))

    if log_path in (None, "", "-"):
        logger_factory = structlog.PrintLoggerFactory()
    else:
        if _log_file is not None:
            _log_file.close()
        _log_file = open(log_path, "a", encoding="utf-8")  # noqa: SIM115
        logger_factory = structlog.PrintLoggerFactory(file=_log_file)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def verbosity_to_level(verbosity: int) -> int:
    """Map a CLI verbosity count to a logging level (0 = INFO, 1+ = DEBUG)."""
    return logging.DEBUG if verbosity >= 1 else logging.INFO


def token_fingerprint(token: bytes) -> str:
    """Short hex prefix of a token, safe to put in logs."""
    return token[:_TOKEN_FINGERPRINT_BYTES].hex()


class SyncLogger:
    """Wrapper for structured logging of registry and storage events.

    Accepts either structlog or standard logging.Logger instances and normalizes
    emission so callers do not need to care which backend is in use.
    """

    _PATH_TRUNCATION_SUFFIX = "...[truncated]"
    _MAX_PATH_LENGTH = 140

    def __init__(self, logger: Any = None) -> None:
        """Initialize SyncLogger with optional custom logger.

        Args:
            logger: Optional structlog BoundLogger, logging.Logger, or string name.
                    If None, a default structlog logger named 'syncstore' is created.
                    If string, creates a structlog logger with that name.
        """
        if logger is None:
            self._logger = structlog.get_logger("syncstore")
        elif isinstance(logger, str):
            self._logger = structlog.get_logger(logger)
        else:
            self._logger = logger

    @property
    def logger(self) -> Any:
        """Expose the underlying logger instance (structlog or logging.Logger)."""
        return self._logger

    def _emit(self, level: int, message: str, **fields: Any) -> None:
        """Emit a log record regardless of logger backend."""
        extra = dict(fields)
        extra.setdefault("log_message", message)
        # Ensure event key is always present for downstream processors
        extra.setdefault("event", message.split(".", 1)[-1] if "." in message else message)
        extra.setdefault("event_type", extra.get("event"))

        if isinstance(self._logger, logging.Logger):
            # Standard logging expects structured data in the 'extra' mapping
            self._logger.log(level, message, extra=extra)
            return

        method_name = logging.getLevelName(level).lower()
        log_method = getattr(self._logger, method_name, None)
        if not callable(log_method):
            log_method = self._logger.info

        log_kwargs = dict(extra)
        event_value = log_kwargs.pop("event", None)
        event_arg = event_value if event_value is not None else message
        log_method(event_arg, **log_kwargs)

    def _truncate_path(self, path: str) -> str:
        """Truncate long file paths to keep logs concise."""
        if len(path) <= self._MAX_PATH_LENGTH:
            return path
        keep = self._MAX_PATH_LENGTH - len(self._PATH_TRUNCATION_SUFFIX)
        return f"{path[:keep]}{self._PATH_TRUNCATION_SUFFIX}"

    def log_credentials_imported(self, user_count: int, record_count: int) -> None:
        """Log how many users were imported from the credential table.

        Args:
            user_count: Distinct usernames in the resulting ledger
            record_count: Rows read from the table
        """
        self._emit(
            logging.DEBUG,
            "syncstore.credentials.imported",
            event="credentials.imported",
            user_count=user_count,
            record_count=record_count,
        )

    def log_login_succeeded(self, username: str, token: bytes, expires_at: int) -> None:
        """Log a successful login and the expiry of the issued token.

        Args:
            username: Authenticated user
            token: Newly issued token (only a fingerprint is logged)
            expires_at: Expiry instant in Unix nanoseconds
        """
        self._emit(
            logging.INFO,
            "syncstore.login.succeeded",
            event="login.succeeded",
            username=username,
            token=token_fingerprint(token),
            expires_at=expires_at,
        )

    def log_session_created(self, username: str, base_dir: str) -> None:
        """Log creation of a new session with a freshly allocated handle.

        Args:
            username: Session owner
            base_dir: Base directory of the new storage handle
        """
        self._emit(
            logging.DEBUG,
            "syncstore.session.created",
            event="session.created",
            username=username,
            base_dir=base_dir,
        )

    def log_session_rotated(self, username: str, old_token: bytes, new_token: bytes) -> None:
        """Log a token rotation that carried an existing handle across.

        Args:
            username: Session owner
            old_token: Token that was invalidated
            new_token: Token that replaced it
        """
        self._emit(
            logging.DEBUG,
            "syncstore.session.rotated",
            event="session.rotated",
            username=username,
            old_token=token_fingerprint(old_token),
            new_token=token_fingerprint(new_token),
        )

    def log_session_expired(self, username: str, token: bytes, expired_at: int) -> None:
        """Log reclamation of an expired session found during lookup.

        Args:
            username: Session owner
            token: Expired token
            expired_at: Expiry instant in Unix nanoseconds
        """
        self._emit(
            logging.INFO,
            "syncstore.session.expired",
            event="session.expired",
            username=username,
            token=token_fingerprint(token),
            expired_at=expired_at,
        )

    def log_sweep_completed(self, reclaimed_count: int, remaining_count: int) -> None:
        """Log completion of a periodic sweep of expired sessions.

        Args:
            reclaimed_count: Sessions removed by this sweep
            remaining_count: Live sessions left in the registry
        """
        self._emit(
            logging.DEBUG if reclaimed_count == 0 else logging.INFO,
            "syncstore.session.swept",
            event="session.swept",
            reclaimed_count=reclaimed_count,
            remaining_count=remaining_count,
        )

    def log_file_operation(self, operation: str, username: str, path: str, **kwargs: Any) -> None:
        """Log a storage operation performed through a session.

        Emits a DEBUG-level structured log event for file operations
        (read, write, last_modified, last_write, read_dir).

        Args:
            operation: Operation type
            username: Session owner
            path: Path relative to the user's directory
            **kwargs: Operation-specific metadata such as file_size or entry_count
        """
        event = f"file.{operation}"
        self._emit(
            logging.DEBUG,
            f"syncstore.{event}",
            event=event,
            username=username,
            path=self._truncate_path(path),
            **kwargs,
        )

    def log_security_event(self, event_type: str, details: dict[str, Any]) -> None:
        """Log a security-relevant event at WARNING level.

        Args:
            event_type: Type of security event (e.g., "login_rejected",
                       "token_rejected", "non_local_path")
            details: Dict containing event-specific details
        """
        event = f"security.{event_type}"
        self._emit(logging.WARNING, f"syncstore.{event}", event=event, **details)
