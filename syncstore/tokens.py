"""Session tokens and salted password hashing.

A token is a fixed-length, cryptographically random byte string. It is the
only credential presented after login and doubles as the registry's map key,
so every token handed out has exactly TOKEN_LENGTH bytes.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets

TOKEN_LENGTH = 32

Token = bytes


def generate_token() -> Token:
    """Return a new random token of TOKEN_LENGTH bytes."""
    return secrets.token_bytes(TOKEN_LENGTH)


def unmarshal_token(data: bytes) -> Token:
    """Copy wire bytes into a fixed-length token.

    Longer input is truncated and shorter input is zero-padded, so malformed
    tokens still produce a well-formed key that simply fails lookup.

    Examples:
        >>> unmarshal_token(b"\\x01\\x02") == b"\\x01\\x02" + bytes(30)
        True
    """
    return bytes(data[:TOKEN_LENGTH]).ljust(TOKEN_LENGTH, b"\x00")


def hash_password(password: str, salt: bytes) -> bytes:
    """Hash a clear-text password with a caller-supplied salt.

    BLAKE2b with a 32-byte digest over ``password || salt``. Clients compute
    the same hash and send it with the salt on every login.
    """
    h = hashlib.blake2b(digest_size=32)
    h.update(password.encode("utf-8"))
    h.update(salt)
    return h.digest()


def verify_password(password: str, salt: bytes, password_hash: bytes) -> bool:
    """Constant-time check of a submitted hash against ``password``."""
    return hmac.compare_digest(hash_password(password, salt), password_hash)
