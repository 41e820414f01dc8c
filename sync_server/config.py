"""
Remote Sync Server Configuration.

Configuration models for the server, loadable from a TOML file.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from syncstore.core.errors import ConfigValidationError
from syncstore.core.models import RegistryPolicy
from syncstore.core.storage import StorageBackend


class StorageConfig(BaseModel):
    """Where and how user files are stored."""

    storage_dir: Path = Path("storage")
    backend: StorageBackend = StorageBackend.FILE


class SessionsConfig(BaseModel):
    """Configuration for session lifetime and reclamation."""

    token_ttl_seconds: float = Field(default=3600.0, gt=0)
    sweep_interval_seconds: float = Field(
        default=0.0,
        ge=0,
        description="Seconds between sweeps of expired sessions (0 = reclaim on access only)",
    )


class CredentialsConfig(BaseModel):
    """Location of the two-column username/password table."""

    csv_path: Path | None = None


class TransportConfig(BaseModel):
    """Configuration for the HTTPS transport."""

    host: str = "0.0.0.0"
    port: int = Field(default=22841, ge=1, le=65535)
    signed_cert_path: Path | None = None
    signed_key_path: Path | None = None
    max_concurrent_requests: int = Field(default=64, ge=1)

    @model_validator(mode="after")
    def check_tls_pair(self) -> TransportConfig:
        """Certificate and key must be given together."""
        if (self.signed_cert_path is None) != (self.signed_key_path is None):
            raise ValueError("signed_cert_path and signed_key_path must be set together")
        return self

    @property
    def tls_enabled(self) -> bool:
        return self.signed_cert_path is not None


class LoggingConfig(BaseModel):
    """Configuration for server logging."""

    level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    json_output: bool = Field(default=False, alias="json")
    path: str | None = None

    model_config = {"populate_by_name": True}


class ServerConfig(BaseModel):
    """Main server configuration."""

    storage: StorageConfig = StorageConfig()
    sessions: SessionsConfig = SessionsConfig()
    credentials: CredentialsConfig = CredentialsConfig()
    transport: TransportConfig = TransportConfig()
    logging: LoggingConfig = LoggingConfig()

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid server configuration: {e}") from e

    def registry_policy(self) -> RegistryPolicy:
        """Registry settings derived from this configuration."""
        return RegistryPolicy(
            storage_dir=self.storage.storage_dir,
            token_ttl_seconds=self.sessions.token_ttl_seconds,
            backend=self.storage.backend,
        )

    @classmethod
    def from_file(cls, path: Path | str) -> ServerConfig:
        """Load configuration from TOML file."""
        import tomllib

        config_path = Path(path).expanduser()
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigValidationError(f"Invalid TOML in {config_path}: {e}") from e

        return cls(**data)
