"""Exception classes for session, credential and storage failures.

Credential and token errors each carry one fixed message regardless of which
check failed: an unknown user reads the same as a wrong password, and an
unknown token the same as an expired one.
"""

from __future__ import annotations


class SyncStoreError(Exception):
    """Base class for errors raised by the session and storage core."""

    pass


class InvalidCredentialsError(SyncStoreError):
    """Raised when a login's username or salted password hash does not match.

    Raised identically for an unknown username and for a password hash
    mismatch.
    """

    def __init__(self) -> None:
        super().__init__("invalid username or password")


class InvalidTokenError(SyncStoreError):
    """Raised when a token does not map to a live session.

    Covers both tokens that were never issued (or were rotated away) and
    tokens whose session has expired. A new login is required either way.
    """

    def __init__(self) -> None:
        super().__init__("invalid token, login required")


class NonLocalPathError(SyncStoreError, ValueError):
    """Raised when a path resolves outside a storage handle's base directory.

    Also a ValueError.
    """

    def __init__(self, path: str) -> None:
        super().__init__(f"path '{path}' is not in the local base directory")
        self.path = path


class CredentialsFormatError(SyncStoreError):
    """Raised when the username/password table cannot be turned into a ledger."""

    pass


class ConfigValidationError(SyncStoreError):
    """Raised when a configuration model fails validation.

    Wraps pydantic's ValidationError with a domain-specific name.
    """

    pass
