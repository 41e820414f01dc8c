"""Session-gated, per-user sandboxed file storage.

Clients log in with a username and a salted password hash, receive a
time-limited token, and use it to read, write and list files inside their
own directory tree.

Example:
    >>> from syncstore import RegistryPolicy, SessionRegistry, StorageBackend
    >>> from syncstore.tokens import hash_password
    >>> registry = SessionRegistry(
    ...     {"alice": "hunter2"},
    ...     RegistryPolicy(backend=StorageBackend.MEMORY, token_ttl_seconds=60),
    ... )
    >>> result = registry.login("alice", hash_password("hunter2", b"salt"), b"salt")
    >>> registry.write(result.token, "notes/today.txt", b"hello")
    >>> registry.read(result.token, "notes/today.txt")
    b'hello'
"""

from __future__ import annotations

from syncstore.core import (
    ConfigValidationError,
    CredentialsFormatError,
    FileStorageHandle,
    InvalidCredentialsError,
    InvalidTokenError,
    LoginResult,
    MemoryStorageHandle,
    NonLocalPathError,
    RegistryPolicy,
    StorageBackend,
    StorageHandle,
    StoreFactory,
    SyncStoreError,
    create_store,
    get_store_factory,
)
from syncstore.core.logging import SyncLogger, configure_structlog
from syncstore.registry import SessionRegistry
from syncstore.sessions import Session, load_credentials, records_to_credentials
from syncstore.tokens import TOKEN_LENGTH, Token, generate_token, hash_password, unmarshal_token

__all__ = [
    "TOKEN_LENGTH",
    "ConfigValidationError",
    "CredentialsFormatError",
    "FileStorageHandle",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "LoginResult",
    "MemoryStorageHandle",
    "NonLocalPathError",
    "RegistryPolicy",
    "Session",
    "SessionRegistry",
    "StorageBackend",
    "StorageHandle",
    "StoreFactory",
    "SyncLogger",
    "SyncStoreError",
    "Token",
    "configure_structlog",
    "create_store",
    "generate_token",
    "get_store_factory",
    "hash_password",
    "load_credentials",
    "records_to_credentials",
    "unmarshal_token",
]
