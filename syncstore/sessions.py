"""Sessions and the credential ledger.

Session Model
-------------
A session binds one username to its current token, an issue/expiry window
and the user's storage handle. Sessions are owned by the SessionRegistry;
on re-login the registry rotates the token and extends the window but keeps
the same handle, so anything the handle has accumulated (such as its last
write) survives the rotation.

Credential Ledger
-----------------
The ledger is a read-only mapping of username to clear-text password, built
once at startup from a two-column table (typically a CSV file). Only salted
hashes of these passwords are ever compared against client input.

Usage Examples
--------------
    >>> from syncstore.sessions import load_credentials
    >>> credentials = load_credentials("~/remote-sync/users.csv")
    >>> sorted(credentials)
    ['alice', 'bob']
"""

from __future__ import annotations

import csv
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

from syncstore.core.errors import CredentialsFormatError
from syncstore.core.logging import SyncLogger
from syncstore.core.storage import StorageHandle
from syncstore.tokens import Token


@dataclass
class Session:
    """A live binding of a token to a user's storage handle.

    Attributes:
        username: Session owner
        token: Current bearer token
        issued_at: Issue instant of the current token (Unix nanoseconds)
        expires_at: Expiry instant of the current token (Unix nanoseconds)
        handle: The user's storage handle, kept across token rotations
    """

    username: str
    token: Token
    issued_at: int
    expires_at: int
    handle: StorageHandle

    def is_valid(self, now: int) -> bool:
        """Return True while ``now`` is strictly before the expiry instant."""
        return now < self.expires_at

    def rotate(self, token: Token, now: int, ttl_ns: int) -> None:
        """Install a new token and restart the validity window at ``now``."""
        self.token = token
        self.issued_at = now
        self.expires_at = now + ttl_ns


def records_to_credentials(
    records: Sequence[Sequence[str]],
    logger: SyncLogger | None = None,
) -> Mapping[str, str]:
    """Convert username/password rows into a credential ledger.

    Extra columns are ignored. Later rows overwrite earlier rows with the
    same username.

    Args:
        records: Rows of at least two columns (username, password)
        logger: Optional SyncLogger for the import summary

    Returns:
        Read-only mapping of username to clear-text password

    Raises:
        CredentialsFormatError: If any row has fewer than two columns
    """
    users: dict[str, str] = {}
    for i, line in enumerate(records):
        if len(line) < 2:
            raise CredentialsFormatError(
                f"could not process record {i} of {len(records)}: "
                f"expected username and password columns"
            )
        users[line[0]] = line[1]

    if logger is not None:
        logger.log_credentials_imported(len(users), len(records))

    return MappingProxyType(users)


def load_credentials(
    csv_path: str | Path,
    logger: SyncLogger | None = None,
) -> Mapping[str, str]:
    """Read a credential ledger from a two-column CSV file.

    Args:
        csv_path: Path to the CSV file (``~`` is expanded)
        logger: Optional SyncLogger for the import summary

    Returns:
        Read-only mapping of username to clear-text password

    Raises:
        OSError: If the file cannot be opened
        CredentialsFormatError: If the file is not a valid credential table
    """
    path = Path(csv_path).expanduser()
    with open(path, newline="", encoding="utf-8") as f:
        try:
            records = [row for row in csv.reader(f) if row]
        except csv.Error as e:
            raise CredentialsFormatError(f"unable to parse {path} as CSV: {e}") from e
    return records_to_credentials(records, logger)
