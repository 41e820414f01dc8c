"""Session registry: authentication, token issuance and handle resolution.

The registry is the only owner of sessions. It keeps two maps behind a
single lock:

- ``token -> Session`` for resolving every post-login request
- ``username -> token`` so that each user has at most one live session

Invariant: for every ``(username, token)`` pair in the second map, the first
map holds a session for ``username`` under ``token``, and every session in
the first map is pointed back to by the second.

Expired sessions are reclaimed lazily, inline with the lookup that finds
them. ``sweep_expired()`` is available for callers that want a periodic
sweep on top of that.

The lock only guards map lookups and mutations. Storage I/O happens after
the lock is released, on the handle, which does its own locking.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping

from syncstore.core.errors import InvalidCredentialsError, InvalidTokenError
from syncstore.core.factory import StoreFactory, get_store_factory
from syncstore.core.logging import SyncLogger
from syncstore.core.models import LoginResult, RegistryPolicy
from syncstore.core.storage import StorageHandle
from syncstore.sessions import Session
from syncstore.tokens import Token, generate_token, verify_password


class SessionRegistry:
    """Authenticates users and maps their tokens to storage handles.

    Args:
        credentials: Read-only username to clear-text password ledger
        policy: Storage root, token TTL and backend (defaults if None)
        store_factory: Builds a handle from ``(storage_dir, username)``.
                       Defaults to the factory for ``policy.backend``.
        clock: Current time in Unix nanoseconds
        token_generator: Produces candidate tokens
        logger: Optional SyncLogger
    """

    def __init__(
        self,
        credentials: Mapping[str, str],
        policy: RegistryPolicy | None = None,
        store_factory: StoreFactory | None = None,
        clock: Callable[[], int] = time.time_ns,
        token_generator: Callable[[], Token] = generate_token,
        logger: SyncLogger | None = None,
    ) -> None:
        self.policy = policy or RegistryPolicy()
        self._credentials = credentials
        self._store_factory = store_factory or get_store_factory(self.policy.backend)
        self._clock = clock
        self._token_generator = token_generator
        self.logger = logger or SyncLogger()

        self._sessions: dict[Token, Session] = {}
        self._user_tokens: dict[str, Token] = {}
        self._lock = threading.Lock()

    @property
    def token_ttl_ns(self) -> int:
        return self.policy.token_ttl_ns

    def login(self, username: str, password_hash: bytes, salt: bytes) -> LoginResult:
        """Authenticate a user and issue a fresh token.

        On first login a new storage handle is allocated for the user. On
        later logins the existing session keeps its handle; only the token
        is rotated and the expiry extended. The previous token stops
        resolving immediately.

        Args:
            username: User to authenticate
            password_hash: ``hash_password(password, salt)`` computed by the client
            salt: Per-request salt chosen by the client

        Returns:
            LoginResult with the new token and its expiry (Unix nanoseconds)

        Raises:
            InvalidCredentialsError: Unknown username or hash mismatch
            NonLocalPathError: If the username cannot be used as a directory
            OSError: If the storage handle cannot be created
        """
        self._verify_user(username, password_hash, salt)
        session = self._add_session(username)
        result = LoginResult(token=session.token, expires_at=session.expires_at)
        self.logger.log_login_succeeded(username, result.token, result.expires_at)
        return result

    def resolve(self, token: Token) -> Session:
        """Return the live session for ``token``.

        An expired session is removed from both maps before the error is
        raised.

        Raises:
            InvalidTokenError: Unknown, superseded or expired token
        """
        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                raise InvalidTokenError()

            if not session.is_valid(self._clock()):
                self._remove(session)
                self.logger.log_session_expired(
                    session.username, token, session.expires_at
                )
                raise InvalidTokenError()

            return session

    def read(self, token: Token, path: str) -> bytes:
        session = self.resolve(token)
        data = session.handle.read(path)
        self.logger.log_file_operation("read", session.username, path, file_size=len(data))
        return data

    def write(self, token: Token, path: str, data: bytes) -> None:
        session = self.resolve(token)
        session.handle.write(path, data)
        self.logger.log_file_operation("write", session.username, path, file_size=len(data))

    def get_last_modified(self, token: Token, path: str) -> int:
        session = self.resolve(token)
        modified = session.handle.get_last_modified(path)
        self.logger.log_file_operation("last_modified", session.username, path)
        return modified

    def get_last_write(self, token: Token) -> int:
        session = self.resolve(token)
        return session.handle.get_last_write()

    def read_dir(self, token: Token, path: str) -> list[str]:
        session = self.resolve(token)
        dirs = session.handle.read_dir(path)
        self.logger.log_file_operation(
            "read_dir", session.username, path, entry_count=len(dirs)
        )
        return dirs

    def sweep_expired(self) -> int:
        """Remove every expired session.

        Returns:
            Number of sessions reclaimed
        """
        with self._lock:
            now = self._clock()
            expired = [s for s in self._sessions.values() if not s.is_valid(now)]
            for session in expired:
                self._remove(session)
            remaining = len(self._sessions)

        self.logger.log_sweep_completed(len(expired), remaining)
        return len(expired)

    def active_session_count(self) -> int:
        """Number of sessions currently held, expired ones included until reclaimed."""
        with self._lock:
            return len(self._sessions)

    def _verify_user(self, username: str, password_hash: bytes, salt: bytes) -> None:
        password = self._credentials.get(username)
        if password is None or not verify_password(password, salt, password_hash):
            self.logger.log_security_event("login_rejected", {"username": username})
            raise InvalidCredentialsError()

    def _new_token(self) -> Token:
        # Caller holds the lock
        token = self._token_generator()
        while token in self._sessions:
            token = self._token_generator()
        return token

    def _add_session(self, username: str) -> Session:
        with self._lock:
            session = self._install(username, None)
        if session is not None:
            return session

        # First login: build the handle without holding the lock
        handle = self._store_factory(str(self.policy.storage_dir), username)

        with self._lock:
            # A concurrent login may have installed a session meanwhile, in
            # which case that session's handle wins and ours is dropped
            session = self._install(username, handle)
        assert session is not None
        return session

    def _install(self, username: str, handle: StorageHandle | None) -> Session | None:
        # Caller holds the lock
        old_token = self._user_tokens.get(username)
        if old_token is None and handle is None:
            return None

        token = self._new_token()
        now = self._clock()

        if old_token is not None:
            session = self._sessions.pop(old_token)
            session.rotate(token, now, self.token_ttl_ns)
            self.logger.log_session_rotated(username, old_token, token)
        else:
            assert handle is not None
            session = Session(
                username=username,
                token=token,
                issued_at=now,
                expires_at=now + self.token_ttl_ns,
                handle=handle,
            )
            self.logger.log_session_created(username, handle.base_dir)

        self._sessions[token] = session
        self._user_tokens[username] = token
        return session

    def _remove(self, session: Session) -> None:
        # Caller holds the lock
        self._sessions.pop(session.token, None)
        if self._user_tokens.get(session.username) == session.token:
            del self._user_tokens[session.username]
