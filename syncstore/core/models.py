"""Pydantic models for session registry configuration and login results.

Provides validated data models for the registry policy (storage root,
token lifetime, backend selection) and the result handed back from a
successful login.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from syncstore.core.errors import ConfigValidationError
from syncstore.core.storage import StorageBackend

NANOSECONDS_PER_SECOND = 1_000_000_000


class RegistryPolicy(BaseModel):
    """Type-safe configuration for the session registry.

    Attributes:
        storage_dir: Root directory holding one subdirectory per user
        token_ttl_seconds: Lifetime of an issued token
        backend: Storage backend used for newly created user handles
    """

    storage_dir: Path = Field(
        default=Path("storage"),
        description="Root directory holding one subdirectory per user"
    )

    token_ttl_seconds: float = Field(
        default=3600.0,
        gt=0,
        description="Lifetime of an issued token in seconds"
    )

    backend: StorageBackend = Field(
        default=StorageBackend.FILE,
        description="Storage backend for user handles"
    )

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid registry policy: {e}") from e

    @field_validator("token_ttl_seconds")
    @classmethod
    def validate_ttl(cls, v: float) -> float:
        """Ensure the TTL is at least one nanosecond once converted."""
        if int(v * NANOSECONDS_PER_SECOND) <= 0:
            raise ValueError("Token TTL must be positive")
        return v

    @property
    def token_ttl_ns(self) -> int:
        """Token lifetime in nanoseconds."""
        return int(self.token_ttl_seconds * NANOSECONDS_PER_SECOND)


class LoginResult(BaseModel):
    """Outcome of a successful login.

    Attributes:
        token: Fixed-length bearer token for subsequent requests
        expires_at: Expiry instant in Unix nanoseconds
    """

    token: bytes = Field(description="Fixed-length bearer token")

    expires_at: int = Field(description="Expiry instant in Unix nanoseconds")
