"""
Request dispatcher for the remote sync RPCs.

Decodes request messages into registry calls and wraps the results in
response messages. Binary fields travel as base64 in JSON.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict

from syncstore.core.errors import InvalidCredentialsError, InvalidTokenError, NonLocalPathError
from syncstore.core.logging import SyncLogger
from syncstore.registry import SessionRegistry
from syncstore.tokens import unmarshal_token

from .audit import AuditLogger

T = TypeVar("T")


class Message(BaseModel):
    """Base for all request and response messages."""

    model_config = ConfigDict(ser_json_bytes="base64", val_json_bytes="base64")


class LoginRequest(Message):
    username: str
    password_hash: bytes
    salt: bytes


class LoginResponse(Message):
    token: bytes
    expires_at: int


class ReadRequest(Message):
    """Request for any operation addressed by token and path."""

    token: bytes
    path: str = ""


class WriteRequest(Message):
    token: bytes
    path: str
    data: bytes


class LastWriteRequest(Message):
    token: bytes


class ReadResponse(Message):
    data: bytes


class TimestampResponse(Message):
    timestamp: int


class ReadDirResponse(Message):
    names: list[str]


class Ack(Message):
    pass


class RequestDispatcher:
    """
    Maps decoded requests onto the session registry.

    Registry errors propagate unchanged; credential, token and path
    rejections are recorded in the audit log on the way out.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        logger: SyncLogger | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.registry = registry
        self.logger = logger or SyncLogger("sync-dispatcher")
        self.audit_logger = audit_logger or AuditLogger()

    def login(self, msg: LoginRequest, client_id: str = "unknown") -> LoginResponse:
        self.logger._emit(logging.DEBUG, "Received Login message", username=msg.username)
        try:
            result = self.registry.login(msg.username, msg.password_hash, msg.salt)
        except InvalidCredentialsError:
            self.audit_logger.log_login(msg.username, client_id, success=False)
            raise
        self.audit_logger.log_login(msg.username, client_id, success=True)
        return LoginResponse(token=result.token, expires_at=result.expires_at)

    def read(self, msg: ReadRequest, client_id: str = "unknown") -> ReadResponse:
        data = self._call("read", msg.token, msg.path, client_id, self.registry.read, msg.path)
        return ReadResponse(data=data)

    def write(self, msg: WriteRequest, client_id: str = "unknown") -> Ack:
        self._call("write", msg.token, msg.path, client_id, self.registry.write, msg.path, msg.data)
        return Ack()

    def get_last_modified(self, msg: ReadRequest, client_id: str = "unknown") -> TimestampResponse:
        timestamp = self._call(
            "last_modified", msg.token, msg.path, client_id,
            self.registry.get_last_modified, msg.path,
        )
        return TimestampResponse(timestamp=timestamp)

    def get_last_write(self, msg: LastWriteRequest, client_id: str = "unknown") -> TimestampResponse:
        timestamp = self._call(
            "last_write", msg.token, "", client_id, self.registry.get_last_write
        )
        return TimestampResponse(timestamp=timestamp)

    def read_dir(self, msg: ReadRequest, client_id: str = "unknown") -> ReadDirResponse:
        names = self._call(
            "read_dir", msg.token, msg.path, client_id, self.registry.read_dir, msg.path
        )
        return ReadDirResponse(names=names)

    def _call(
        self,
        operation: str,
        raw_token: bytes,
        path: str,
        client_id: str,
        fn: Callable[..., T],
        *args: Any,
    ) -> T:
        token = unmarshal_token(raw_token)
        self.logger._emit(
            logging.DEBUG, "Received request", operation=operation, path=path
        )
        try:
            return fn(token, *args)
        except InvalidTokenError:
            self.audit_logger.log_token_rejected(operation, client_id, token)
            raise
        except NonLocalPathError:
            self.audit_logger.log_non_local_path(operation, client_id, token, path)
            raise
