"""Tests for storage handles and the path sandboxing primitive.

Both backends are exercised against the same contract: sandboxed paths,
exact round-trips, directory listings and last-write bookkeeping.
"""

from __future__ import annotations

import os
import stat
import threading
from pathlib import Path

import pytest

from syncstore.core.errors import NonLocalPathError
from syncstore.core.factory import create_store, get_store_factory
from syncstore.core.storage import (
    FileStorageHandle,
    MemoryStorageHandle,
    StorageBackend,
    StorageHandle,
    is_local_path,
    ready_path,
)


class SteppingClock:
    """Clock that advances by one second on every call."""

    def __init__(self) -> None:
        self.now = 1_700_000_000_000_000_000

    def __call__(self) -> int:
        self.now += 1_000_000_000
        return self.now


@pytest.fixture(params=[StorageBackend.MEMORY, StorageBackend.FILE])
def handle(request: pytest.FixtureRequest, tmp_path: Path) -> StorageHandle:
    """A fresh handle for user 'alice' on each backend."""
    if request.param is StorageBackend.FILE:
        return FileStorageHandle(tmp_path / "storage", "alice", clock=SteppingClock())
    return MemoryStorageHandle(tmp_path / "storage", "alice", clock=SteppingClock())


class TestReadyPath:
    """Test ready_path and is_local_path."""

    def test_relative_path_is_joined(self) -> None:
        """Nested relative paths resolve under the base directory."""
        assert ready_path("/srv/store/alice", "a/b/c.txt") == os.path.normpath(
            "/srv/store/alice/a/b/c.txt"
        )

    def test_inner_parent_references_are_allowed(self) -> None:
        """'..' segments that stay inside the base directory are fine."""
        assert ready_path("/srv/store/alice", "a/../b.txt") == os.path.normpath(
            "/srv/store/alice/b.txt"
        )

    def test_escape_is_rejected(self) -> None:
        """Paths climbing above the base directory raise NonLocalPathError."""
        with pytest.raises(NonLocalPathError, match="not in the local base directory"):
            ready_path("/srv/store/alice", "../../etc/passwd")

    def test_sibling_directory_is_rejected(self) -> None:
        """A sibling whose name shares the base prefix is still outside."""
        with pytest.raises(NonLocalPathError):
            ready_path("/srv/store/alice", "../alice2/secret")

    def test_absolute_path_is_rejected(self) -> None:
        """Absolute paths outside the base directory are rejected."""
        with pytest.raises(NonLocalPathError):
            ready_path("/srv/store/alice", "/etc/passwd")

    def test_absolute_path_inside_base_is_rejected(self) -> None:
        """Absolute paths are refused even when they point into the base directory."""
        with pytest.raises(NonLocalPathError):
            ready_path("/srv/store/alice", "/srv/store/alice/x")

    def test_empty_path_is_base_directory(self) -> None:
        """The empty path refers to the base directory itself."""
        assert ready_path("/srv/store/alice", "") == os.path.normpath("/srv/store/alice")

    def test_non_local_path_error_is_value_error(self) -> None:
        """Sandbox violations can be caught as ValueError and carry the path."""
        with pytest.raises(ValueError) as exc_info:
            ready_path("/srv/store/alice", "..")
        assert exc_info.value.path == ".."

    def test_is_local_path(self) -> None:
        """is_local_path is inclusive of the base directory."""
        assert is_local_path("/base", "/base")
        assert is_local_path("/base", "/base/x/y")
        assert not is_local_path("/base", "/")
        assert not is_local_path("/base", "/base2")


class TestHandleContract:
    """Behaviour shared by every backend."""

    def test_write_then_read_round_trips(self, handle: StorageHandle) -> None:
        """Written bytes are read back exactly."""
        data = b"\x00\x01binary\xff"
        handle.write("a/b/c.txt", data)
        assert handle.read("a/b/c.txt") == data

    def test_write_replaces_contents(self, handle: StorageHandle) -> None:
        """A second write to the same path replaces the first."""
        handle.write("f.txt", b"long original content")
        handle.write("f.txt", b"short")
        assert handle.read("f.txt") == b"short"

    def test_empty_write(self, handle: StorageHandle) -> None:
        """Empty files are stored and read back as empty bytes."""
        handle.write("empty", b"")
        assert handle.read("empty") == b""

    def test_escaping_write_is_rejected(self, handle: StorageHandle) -> None:
        """Writes outside the base directory fail before touching storage."""
        with pytest.raises(NonLocalPathError):
            handle.write("../../etc/passwd", b"root::0:0")
        assert handle.last_write_path is None

    @pytest.mark.parametrize(
        "operation",
        ["read", "get_last_modified", "read_dir"],
    )
    def test_escaping_path_is_rejected(self, handle: StorageHandle, operation: str) -> None:
        """Every path-taking operation enforces the sandbox."""
        with pytest.raises(NonLocalPathError):
            getattr(handle, operation)("../bob/file")

    def test_read_missing_file(self, handle: StorageHandle) -> None:
        """Reading a file that was never written raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            handle.read("missing.txt")

    def test_last_modified_missing_file(self, handle: StorageHandle) -> None:
        """Stat of a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            handle.get_last_modified("missing.txt")

    def test_read_base_directory(self, handle: StorageHandle) -> None:
        """The base directory itself cannot be read as a file."""
        handle.write("x", b"1")
        with pytest.raises(IsADirectoryError):
            handle.read("")

    def test_last_write_before_any_write(self, handle: StorageHandle) -> None:
        """GetLastWrite fails with not-found until something is written."""
        with pytest.raises(FileNotFoundError):
            handle.get_last_write()

    def test_last_write_tracks_most_recent_write(self, handle: StorageHandle) -> None:
        """GetLastWrite equals the modification time of the latest write."""
        handle.write("first", b"1")
        handle.write("second", b"2")
        assert handle.last_write_path == "second"
        assert handle.get_last_write() == handle.get_last_modified("second")
        assert handle.get_last_write() > handle.get_last_modified("first")

    def test_last_write_is_monotonic(self, handle: StorageHandle) -> None:
        """Successive writes never move GetLastWrite backwards."""
        previous = 0
        for i in range(5):
            handle.write(f"f{i % 2}", b"x")
            current = handle.get_last_write()
            assert current >= previous
            previous = current

    def test_read_dir_lists_sorted_child_directories(self, handle: StorageHandle) -> None:
        """Only immediate child directories are listed, sorted, without files."""
        for path in ["dir1/dirA/a", "dir1/dirB/dirB1/a", "dir1/dirB/dirB2/a", "dir1/dirC/file"]:
            handle.write(path, b"data")
        handle.write("dir1/top-level-file", b"data")

        assert handle.read_dir("dir1") == ["dirA", "dirB", "dirC"]
        assert handle.read_dir("dir1/dirB") == ["dirB1", "dirB2"]
        assert handle.read_dir("dir1/dirB/dirB2") == []

    def test_read_dir_base_directory(self, handle: StorageHandle) -> None:
        """The empty path lists the user's root."""
        handle.write("zeta/a", b"")
        handle.write("alpha/b", b"")
        handle.write("root-file", b"")
        assert handle.read_dir("") == ["alpha", "zeta"]

    def test_read_dir_does_not_match_name_prefixes(self, handle: StorageHandle) -> None:
        """A directory named like a prefix of another is not confused with it."""
        handle.write("dir/a/file", b"")
        handle.write("dir2/b/file", b"")
        assert handle.read_dir("dir") == ["a"]

    def test_concurrent_writes_to_distinct_paths(self, handle: StorageHandle) -> None:
        """Parallel writers all land and the last-write record stays readable."""

        def writer(n: int) -> None:
            for i in range(20):
                handle.write(f"t{n}/f{i}", bytes([n, i]))

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        for n in range(4):
            for i in range(20):
                assert handle.read(f"t{n}/f{i}") == bytes([n, i])
        assert handle.get_last_write() > 0
        assert handle.read_dir("") == ["t0", "t1", "t2", "t3"]


class TestFileStorageHandle:
    """Filesystem-specific behaviour."""

    def test_user_directory_created_with_private_mode(self, tmp_path: Path) -> None:
        """The user directory is created on construction, owner-only."""
        handle = FileStorageHandle(tmp_path / "storage", "alice")
        base = Path(handle.base_dir)
        assert base == Path(os.path.abspath(tmp_path / "storage" / "alice"))
        assert base.is_dir()
        if os.name == "posix":
            assert stat.S_IMODE(base.stat().st_mode) & 0o077 == 0

    def test_username_escaping_storage_dir_is_rejected(self, tmp_path: Path) -> None:
        """A username that resolves outside the storage root is refused."""
        with pytest.raises(NonLocalPathError):
            FileStorageHandle(tmp_path / "storage", "../escape")
        assert not (tmp_path / "escape").exists()

    @pytest.mark.parametrize("username", ["", ".", "..", "a/b", "a/../alice"])
    def test_username_must_be_single_directory_name(
        self, tmp_path: Path, username: str
    ) -> None:
        """Usernames that are not one plain directory name are refused."""
        FileStorageHandle(tmp_path / "storage", "alice").write("secret.txt", b"alice-secret")

        with pytest.raises(NonLocalPathError):
            FileStorageHandle(tmp_path / "storage", username)
        assert sorted(p.name for p in (tmp_path / "storage").iterdir()) == ["alice"]

    def test_absolute_path_to_own_file_is_rejected(self, tmp_path: Path) -> None:
        """A client cannot address its own files by their server-side path."""
        handle = FileStorageHandle(tmp_path / "storage", "alice")
        with pytest.raises(NonLocalPathError):
            handle.write(os.path.join(handle.base_dir, "x"), b"ok")
        assert handle.last_write_path is None

    def test_files_written_at_requested_path(self, tmp_path: Path) -> None:
        """Files appear on disk at exactly their relative path."""
        handle = FileStorageHandle(tmp_path / "storage", "alice")
        handle.write("notes/today.txt", b"hello")
        assert (tmp_path / "storage" / "alice" / "notes" / "today.txt").read_bytes() == b"hello"

    def test_mtime_stamped_from_clock(self, tmp_path: Path) -> None:
        """Writes stamp the file with the handle's clock."""
        stamp = 1_234_567_000_000_000_000
        handle = FileStorageHandle(tmp_path / "storage", "alice", clock=lambda: stamp)
        handle.write("f", b"x")
        assert handle.get_last_modified("f") == stamp
        assert handle.get_last_write() == stamp

    def test_handles_share_user_directory(self, tmp_path: Path) -> None:
        """A second handle for the same user sees files written by the first."""
        FileStorageHandle(tmp_path / "storage", "alice").write("shared", b"1")
        assert FileStorageHandle(tmp_path / "storage", "alice").read("shared") == b"1"

    def test_read_dir_missing_directory(self, tmp_path: Path) -> None:
        """Listing a directory that does not exist raises FileNotFoundError."""
        handle = FileStorageHandle(tmp_path / "storage", "alice")
        with pytest.raises(FileNotFoundError):
            handle.read_dir("nope")


class TestMemoryStorageHandle:
    """In-memory specific behaviour."""

    @pytest.mark.parametrize("username", ["", ".", "a/b"])
    def test_username_must_be_single_directory_name(self, username: str) -> None:
        """The virtual user directory follows the same naming rule as on disk."""
        with pytest.raises(NonLocalPathError):
            MemoryStorageHandle("storage", username)

    def test_nothing_written_to_disk(self, tmp_path: Path) -> None:
        """The memory backend never creates the user directory."""
        handle = MemoryStorageHandle(tmp_path / "storage", "alice")
        handle.write("a/b", b"1")
        assert not (tmp_path / "storage").exists()

    def test_modified_time_comes_from_clock(self) -> None:
        """Modification times are the clock reading at write time."""
        handle = MemoryStorageHandle("storage", "alice", clock=lambda: 42)
        handle.write("f", b"x")
        assert handle.get_last_modified("f") == 42

    def test_equivalent_paths_share_a_key(self) -> None:
        """Paths that normalize to the same location address the same file."""
        handle = MemoryStorageHandle("storage", "alice")
        handle.write("a/./b/../c.txt", b"1")
        assert handle.read("a/c.txt") == b"1"

    def test_read_dir_missing_directory(self) -> None:
        """Listing a directory nothing was written under yields []."""
        handle = MemoryStorageHandle("storage", "alice")
        assert handle.read_dir("nope") == []

    def test_write_base_directory(self) -> None:
        """The base directory cannot be written as a file."""
        handle = MemoryStorageHandle("storage", "alice")
        with pytest.raises(IsADirectoryError):
            handle.write(".", b"x")


class TestFactory:
    """Test get_store_factory and create_store."""

    def test_factory_per_backend(self) -> None:
        """Each backend maps to its handle class."""
        assert get_store_factory(StorageBackend.FILE) is FileStorageHandle
        assert get_store_factory(StorageBackend.MEMORY) is MemoryStorageHandle

    def test_invalid_backend(self) -> None:
        """Non-enum backends are rejected."""
        with pytest.raises(ValueError, match="Invalid storage backend"):
            get_store_factory("memory")  # type: ignore[arg-type]

    def test_create_store(self, tmp_path: Path) -> None:
        """create_store builds a handle scoped to the user directory."""
        handle = create_store("bob", tmp_path, StorageBackend.FILE)
        assert isinstance(handle, FileStorageHandle)
        assert Path(handle.base_dir) == Path(os.path.abspath(tmp_path / "bob"))

    def test_backend_from_string_value(self) -> None:
        """Backends can be looked up by their configuration value."""
        assert StorageBackend("memory") is StorageBackend.MEMORY
