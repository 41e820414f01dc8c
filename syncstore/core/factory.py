"""Factory functions for creating storage handles based on backend type.

Maps StorageBackend enum values to concrete StorageHandle implementations.
The session registry never instantiates a backend directly: it is given a
StoreFactory at construction and calls it once per newly logged-in user.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from syncstore.core.storage import (
    FileStorageHandle,
    MemoryStorageHandle,
    StorageBackend,
    StorageHandle,
)

# (storage_dir, username) -> handle scoped to that user's directory
StoreFactory = Callable[[str, str], StorageHandle]

_BACKENDS: dict[StorageBackend, StoreFactory] = {
    StorageBackend.FILE: FileStorageHandle,
    StorageBackend.MEMORY: MemoryStorageHandle,
}


def get_store_factory(backend: StorageBackend = StorageBackend.FILE) -> StoreFactory:
    """Return the factory that builds handles for ``backend``.

    Args:
        backend: StorageBackend enum value (FILE or MEMORY)

    Returns:
        Callable taking ``(storage_dir, username)`` and returning a handle

    Raises:
        ValueError: If backend is not a valid StorageBackend enum value

    Examples:
        >>> factory = get_store_factory(StorageBackend.MEMORY)
        >>> handle = factory("storage", "alice")
        >>> handle.read_dir("")
        []
    """
    if not isinstance(backend, StorageBackend):
        raise ValueError(
            f"Invalid storage backend: {backend}. "
            f"Must be a StorageBackend enum value (FILE or MEMORY)."
        )
    return _BACKENDS[backend]


def create_store(
    username: str,
    storage_dir: Path | str = Path("storage"),
    backend: StorageBackend = StorageBackend.FILE,
) -> StorageHandle:
    """Create a storage handle for one user.

    Args:
        username: User whose directory the handle is scoped to
        storage_dir: Root directory holding one subdirectory per user
        backend: Which backend implementation to use

    Returns:
        StorageHandle scoped to ``<storage_dir>/<username>``

    Raises:
        NonLocalPathError: If ``username`` resolves outside ``storage_dir``
        OSError: If the file backend cannot create the user directory
    """
    return get_store_factory(backend)(str(storage_dir), username)
