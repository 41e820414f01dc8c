"""Pluggable storage handle abstraction for per-user sandboxed file trees.

Provides a small capability interface (read, write, stat, list) scoped to one
base directory, with two interchangeable backends: a persistent
filesystem-backed handle and a volatile in-memory handle. Both enforce the
same sandboxing contract so that no path can escape the handle's base
directory.
"""

from __future__ import annotations

import errno
import os
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from syncstore.core.errors import NonLocalPathError

BASE_DIR_MODE = 0o700


class StorageBackend(str, Enum):
    """Supported storage backend types for user storage handles.

    FILE: Local filesystem storage, one directory per user
    MEMORY: In-memory storage (for testing and ephemeral deployments)
    """
    FILE = "file"
    MEMORY = "memory"


def is_local_path(base_dir: str, path: str) -> bool:
    """Report whether ``path`` lies inside ``base_dir`` (inclusive).

    Purely lexical: the path is made relative to the base directory and
    rejected when the first segment of that relative path is a parent
    directory reference. Symlinks are not followed.

    Args:
        base_dir: Directory acting as the sandbox root
        path: Candidate path, already joined onto ``base_dir``

    Returns:
        True if the path is the base directory or below it
    """
    try:
        rel = os.path.relpath(path, base_dir)
    except ValueError:
        # Paths on different drives have no relative form
        return False
    return rel != os.pardir and not rel.startswith(os.pardir + os.sep)


def ready_path(base_dir: str, path: str) -> str:
    """Join ``path`` onto ``base_dir`` and ensure the result stays local.

    Absolute paths are rejected outright, even when they point inside
    ``base_dir``.

    Args:
        base_dir: Directory acting as the sandbox root
        path: User-supplied path relative to ``base_dir``

    Returns:
        Normalized joined path

    Raises:
        NonLocalPathError: If the joined path escapes ``base_dir``

    Examples:
        >>> ready_path("/srv/store/alice", "a/b/c.txt")
        '/srv/store/alice/a/b/c.txt'
        >>> ready_path("/srv/store/alice", "../../etc/passwd")
        NonLocalPathError: path '../../etc/passwd' is not in the local base directory
    """
    if os.path.isabs(path):
        raise NonLocalPathError(path)
    joined = os.path.normpath(os.path.join(base_dir, path))
    if not is_local_path(base_dir, joined):
        raise NonLocalPathError(path)
    return joined


def user_dir(storage_dir: str, username: str) -> str:
    """Return the directory of ``username`` directly beneath ``storage_dir``.

    The username must be a single path segment, so every user gets their
    own sibling directory and no user directory contains another.

    Raises:
        NonLocalPathError: If ``username`` is empty, "." or "..", or contains
                           a path separator
    """
    separators = [sep for sep in (os.sep, os.altsep) if sep]
    if username in ("", os.curdir, os.pardir) or any(sep in username for sep in separators):
        raise NonLocalPathError(username)
    return ready_path(storage_dir, username)


class StorageHandle(ABC):
    """Abstract base class for per-user storage backends.

    Defines the contract that the session registry depends on. Every
    operation that takes a path sandboxes it against ``base_dir`` first and
    raises NonLocalPathError before touching storage. Implementations must
    be safe to call from several threads at once: writes serialize so the
    last-write bookkeeping stays consistent, reads do not block each other.

    Timestamps are Unix time in nanoseconds.

    Attributes:
        base_dir: Root directory of this handle's sandbox
    """

    def __init__(self, base_dir: str, clock: Callable[[], int] = time.time_ns) -> None:
        """Initialize storage handle with its sandbox root.

        Args:
            base_dir: Root directory that every path is resolved against
            clock: Source of the current time in Unix nanoseconds
        """
        self.base_dir = base_dir
        self._clock = clock

    def _ready_path(self, path: str) -> str:
        return ready_path(self.base_dir, path)

    @property
    @abstractmethod
    def last_write_path(self) -> str | None:
        """Path (relative to ``base_dir``) of the most recent write, if any."""
        pass

    @abstractmethod
    def read(self, path: str) -> bytes:
        """Read the full contents of a file.

        Args:
            path: Path relative to the handle's base directory

        Returns:
            File content as bytes

        Raises:
            NonLocalPathError: If the path escapes the base directory
            FileNotFoundError: If the file doesn't exist
            OSError: If the read fails (backend-specific)
        """
        pass

    @abstractmethod
    def write(self, path: str, data: bytes) -> None:
        """Write a file, replacing any previous contents.

        Creates missing parent directories, stamps the file's modification
        time with the current time and records it as the handle's last
        write. Concurrent writers resolve last-write-wins.

        Args:
            path: Path relative to the handle's base directory
            data: File content as bytes

        Raises:
            NonLocalPathError: If the path escapes the base directory
            OSError: If the write fails (backend-specific)
        """
        pass

    @abstractmethod
    def get_last_modified(self, path: str) -> int:
        """Return a file's last modification time.

        Args:
            path: Path relative to the handle's base directory

        Returns:
            Modification time in Unix nanoseconds

        Raises:
            NonLocalPathError: If the path escapes the base directory
            FileNotFoundError: If the file doesn't exist
        """
        pass

    @abstractmethod
    def get_last_write(self) -> int:
        """Return the modification time of the most recent successful write.

        Returns:
            Modification time in Unix nanoseconds

        Raises:
            FileNotFoundError: If no write has been performed on this handle
        """
        pass

    @abstractmethod
    def read_dir(self, path: str) -> list[str]:
        """List the immediate child directories of a directory.

        Files are filtered out. Names are sorted lexicographically; a
        directory without subdirectories yields an empty list.

        Args:
            path: Directory path relative to the handle's base directory
                  ("" or "." for the base directory itself)

        Returns:
            Sorted list of child directory names

        Raises:
            NonLocalPathError: If the path escapes the base directory
        """
        pass


class FileStorageHandle(StorageHandle):
    """Filesystem-backed storage handle rooted at ``<storage_dir>/<username>``.

    Files are written at exactly their requested relative path beneath the
    user directory. The user directory is created (mode 0700) when the
    handle is constructed.

    Attributes:
        base_dir: Absolute path of the user's directory
    """

    def __init__(
        self,
        storage_dir: str | Path,
        username: str,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        """Initialize file storage handle and create the user directory.

        Args:
            storage_dir: Root directory holding one subdirectory per user
            username: Name of the user directory under ``storage_dir``
            clock: Source of the current time in Unix nanoseconds

        Raises:
            NonLocalPathError: If ``username`` is not a single directory name
            OSError: If the user directory cannot be created
        """
        root = os.path.abspath(storage_dir)
        super().__init__(user_dir(root, username), clock)
        os.makedirs(self.base_dir, mode=BASE_DIR_MODE, exist_ok=True)
        self._last_write_path: Path | None = None
        self._write_lock = threading.Lock()

    @property
    def last_write_path(self) -> str | None:
        last = self._last_write_path
        if last is None:
            return None
        return os.path.relpath(last, self.base_dir)

    def read(self, path: str) -> bytes:
        full_path = Path(self._ready_path(path))
        return full_path.read_bytes()

    def write(self, path: str, data: bytes) -> None:
        full_path = Path(self._ready_path(path))
        with self._write_lock:
            full_path.parent.mkdir(mode=BASE_DIR_MODE, parents=True, exist_ok=True)
            full_path.write_bytes(data)
            # Stamp with our clock so mtime never predates the write call
            now = self._clock()
            os.utime(full_path, ns=(now, now))
            self._last_write_path = full_path

    def get_last_modified(self, path: str) -> int:
        full_path = Path(self._ready_path(path))
        return full_path.stat().st_mtime_ns

    def get_last_write(self) -> int:
        with self._write_lock:
            last = self._last_write_path
            if last is None:
                raise FileNotFoundError(
                    errno.ENOENT, "no write has been performed", self.base_dir
                )
            return last.stat().st_mtime_ns

    def read_dir(self, path: str) -> list[str]:
        full_path = self._ready_path(path)
        with os.scandir(full_path) as entries:
            return sorted(entry.name for entry in entries if entry.is_dir())


@dataclass(frozen=True)
class _MemFile:
    data: bytes
    modified: int


class MemoryStorageHandle(StorageHandle):
    """In-memory storage handle with no real directory structure.

    Files are kept in a dict keyed on their normalized path relative to the
    (virtual) base directory. Directory listings are derived from the parent
    prefixes of the stored keys.
    """

    def __init__(
        self,
        storage_dir: str | Path,
        username: str,
        clock: Callable[[], int] = time.time_ns,
    ) -> None:
        """Initialize memory storage handle.

        Nothing is created on disk; ``storage_dir`` and ``username`` only
        define the virtual base directory used for sandboxing.

        Raises:
            NonLocalPathError: If ``username`` is not a single directory name
        """
        super().__init__(user_dir(os.fspath(storage_dir), username), clock)
        self._files: dict[str, _MemFile] = {}
        self._last_write_path: str | None = None
        self._write_lock = threading.Lock()

    def _key(self, path: str) -> str:
        return os.path.relpath(self._ready_path(path), self.base_dir)

    @property
    def last_write_path(self) -> str | None:
        return self._last_write_path

    def read(self, path: str) -> bytes:
        key = self._key(path)
        if key == os.curdir:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
        f = self._files.get(key)
        if f is None:
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)
        return f.data

    def write(self, path: str, data: bytes) -> None:
        key = self._key(path)
        if key == os.curdir:
            raise IsADirectoryError(errno.EISDIR, os.strerror(errno.EISDIR), path)
        with self._write_lock:
            self._files[key] = _MemFile(bytes(data), self._clock())
            self._last_write_path = key

    def get_last_modified(self, path: str) -> int:
        key = self._key(path)
        f = self._files.get(key)
        if f is None:
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), path)
        return f.modified

    def get_last_write(self) -> int:
        with self._write_lock:
            if self._last_write_path is None:
                raise FileNotFoundError(
                    errno.ENOENT, "no write has been performed", self.base_dir
                )
            return self._files[self._last_write_path].modified

    def read_dir(self, path: str) -> list[str]:
        key = self._key(path)
        prefix = "" if key == os.curdir else key + os.sep

        dirs: set[str] = set()
        for file_key in list(self._files):
            parent = os.path.dirname(file_key)
            if not parent:
                continue
            parent += os.sep
            if not parent.startswith(prefix):
                continue
            child = parent[len(prefix):].split(os.sep, 1)[0]
            if child:
                dirs.add(child)

        return sorted(dirs)
