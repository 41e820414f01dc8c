"""Shared pytest fixtures for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from syncstore.core.models import NANOSECONDS_PER_SECOND, RegistryPolicy
from syncstore.core.storage import StorageBackend
from syncstore.registry import SessionRegistry
from syncstore.tokens import hash_password

START_NS = 1_700_000_000 * NANOSECONDS_PER_SECOND


class FakeClock:
    """Manually advanced clock returning Unix nanoseconds."""

    def __init__(self, now: int = START_NS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * NANOSECONDS_PER_SECOND)


class TokenSequence:
    """Token generator that replays a fixed list of tokens."""

    def __init__(self, *tokens: bytes) -> None:
        self.tokens = list(tokens)
        self.calls = 0

    def __call__(self) -> bytes:
        token = self.tokens[self.calls]
        self.calls += 1
        return token


def login(registry: SessionRegistry, username: str, password: str, salt: bytes = b"salt"):
    """Log in with a correctly salted hash of ``password``."""
    return registry.login(username, hash_password(password, salt), salt)


@pytest.fixture
def credentials() -> dict[str, str]:
    """Credential ledger with two users."""
    return {"alice": "wonderland", "bob": "builder"}


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def memory_registry(credentials: dict[str, str], clock: FakeClock) -> SessionRegistry:
    """Registry with in-memory handles and a 1 second token TTL."""
    policy = RegistryPolicy(backend=StorageBackend.MEMORY, token_ttl_seconds=1)
    return SessionRegistry(credentials, policy, clock=clock)


@pytest.fixture
def file_registry(
    credentials: dict[str, str], clock: FakeClock, tmp_path: Path
) -> SessionRegistry:
    """Registry with filesystem handles under tmp_path and a 1 second token TTL."""
    policy = RegistryPolicy(
        storage_dir=tmp_path / "storage",
        backend=StorageBackend.FILE,
        token_ttl_seconds=1,
    )
    return SessionRegistry(credentials, policy, clock=clock)


@pytest.fixture(params=["memory", "file"])
def registry(request: pytest.FixtureRequest) -> SessionRegistry:
    """Registry parametrized over both storage backends."""
    return request.getfixturevalue(f"{request.param}_registry")
