"""Core storage abstractions, models, errors and logging.

This module provides the foundational types for the remote sync server:
the storage handle interface and its backends, the path sandboxing
primitive, Pydantic models for registry configuration and login results,
and the error taxonomy.
"""

from __future__ import annotations

from .errors import (
    ConfigValidationError,
    CredentialsFormatError,
    InvalidCredentialsError,
    InvalidTokenError,
    NonLocalPathError,
    SyncStoreError,
)
from .factory import StoreFactory, create_store, get_store_factory
from .models import LoginResult, RegistryPolicy
from .storage import (
    FileStorageHandle,
    MemoryStorageHandle,
    StorageBackend,
    StorageHandle,
    is_local_path,
    ready_path,
    user_dir,
)

__all__ = [
    "ConfigValidationError",
    "CredentialsFormatError",
    "FileStorageHandle",
    "InvalidCredentialsError",
    "InvalidTokenError",
    "LoginResult",
    "MemoryStorageHandle",
    "NonLocalPathError",
    "RegistryPolicy",
    "StorageBackend",
    "StorageHandle",
    "StoreFactory",
    "SyncStoreError",
    "create_store",
    "get_store_factory",
    "is_local_path",
    "ready_path",
    "user_dir",
]
