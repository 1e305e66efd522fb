"""
Session Store Module

Server-side sessions for the authentication flow. A browser session is
identified by an opaque random id (sent as a cookie by the API layer) and
holds two things:

- user_id: the authenticated principal, if any
- login: where the session is in the login state machine

The login state is a tagged value so that a challenge can never exist
without the user it was issued for:

    LoginIdle -> ChallengeIssued(user_id, challenge) -> FaceMatched(user_id, challenge)

Updates go through `transaction()`, which holds a per-session lock for the
whole read-modify-write. Two concurrent requests for the same session are
therefore serialized, and at most one of them can consume a challenge.

Usage:
    store = SessionStore(max_age=86400)
    session_id = store.new_id()

    with store.transaction(session_id) as session:
        session.login = ChallengeIssued(user_id=1, challenge="ab12...")
"""

import secrets
import threading
import time
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterator, Optional, Union

logger = logging.getLogger(__name__)

DEFAULT_MAX_AGE = 24 * 60 * 60


@dataclass(frozen=True)
class LoginIdle:
    """No login attempt in progress."""


@dataclass(frozen=True)
class ChallengeIssued:
    """A challenge was issued for `user_id`; face check not yet passed."""

    user_id: int
    challenge: str


@dataclass(frozen=True)
class FaceMatched:
    """The face check passed; the challenge is waiting for a signature."""

    user_id: int
    challenge: str


LoginState = Union[LoginIdle, ChallengeIssued, FaceMatched]

LOGIN_IDLE = LoginIdle()


@dataclass
class SessionData:
    """
    Mutable view of one session, valid inside a transaction.

    Attributes:
        user_id: ID of the authenticated user, or None.
        login: Current login flow state.
    """

    user_id: Optional[int] = None
    login: LoginState = LOGIN_IDLE

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


@dataclass
class _Entry:
    data: SessionData = field(default_factory=SessionData)
    lock: threading.Lock = field(default_factory=threading.Lock)
    last_seen: float = 0.0


class SessionStore:
    """
    In-memory, per-process session store.

    Attributes:
        max_age: Seconds of inactivity after which a session is pruned.
    """

    def __init__(self, max_age: int = DEFAULT_MAX_AGE, clock: Callable[[], float] = time.time):
        self.max_age = max_age
        self._clock = clock
        self._sessions: Dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def _is_expired(self, entry: _Entry, now: float) -> bool:
        return now - entry.last_seen > self.max_age

    def _lookup(self, session_id: str) -> Optional[_Entry]:
        """Return the live entry for `session_id`. Caller holds self._lock."""
        entry = self._sessions.get(session_id)
        if entry is not None and self._is_expired(entry, self._clock()):
            del self._sessions[session_id]
            logger.debug("Dropped expired session")
            return None
        return entry

    @staticmethod
    def new_id() -> str:
        """Mint an unguessable session id without storing anything."""
        return secrets.token_urlsafe(32)

    def exists(self, session_id: Optional[str]) -> bool:
        """Return True if `session_id` names a live session."""
        if not session_id:
            return False
        with self._lock:
            return self._lookup(session_id) is not None

    def get(self, session_id: str) -> SessionData:
        """
        Return a snapshot of the session.

        Unknown sessions read as an empty, anonymous session.
        """
        with self._lock:
            entry = self._lookup(session_id)
        if entry is None:
            return SessionData()
        with entry.lock:
            return replace(entry.data)

    @contextmanager
    def transaction(self, session_id: str) -> Iterator[SessionData]:
        """
        Atomically read, modify and write one session.

        Yields a copy of the session data. Changes are stored when the
        block exits normally and discarded if it raises. The session is
        created on demand.
        """
        with self._lock:
            entry = self._lookup(session_id)
            if entry is None:
                entry = _Entry(last_seen=self._clock())
                self._sessions[session_id] = entry

        with entry.lock:
            working = replace(entry.data)
            yield working

            with self._lock:
                # A concurrent destroy() wins; don't resurrect the session
                if self._sessions.get(session_id) is entry:
                    entry.data = working
                    entry.last_seen = self._clock()

    def destroy(self, session_id: Optional[str]) -> None:
        """Remove a session unconditionally."""
        if not session_id:
            return
        with self._lock:
            self._sessions.pop(session_id, None)

    def prune(self) -> int:
        """
        Remove expired sessions.

        Returns:
            Number of sessions removed.
        """
        now = self._clock()
        with self._lock:
            expired = [sid for sid, entry in self._sessions.items() if self._is_expired(entry, now)]
            for sid in expired:
                del self._sessions[sid]

        if expired:
            logger.info(f"Pruned {len(expired)} expired session(s)")
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


# Singleton instance for the store
_store_instance: Optional[SessionStore] = None


def get_session_store() -> SessionStore:
    """Get or create the singleton SessionStore instance."""
    global _store_instance

    if _store_instance is None:
        from core.config import get_session_config

        max_age = get_session_config().get("max_age", DEFAULT_MAX_AGE)
        _store_instance = SessionStore(max_age=max_age)

    return _store_instance
