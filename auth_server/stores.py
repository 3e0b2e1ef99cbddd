"""
In-memory registries for browser sessions and authorization codes.
Both sit on a small key/value store guarded by a lock; expiry is checked lazily on access.
"""
import logging
import secrets
import threading
import time
from collections.abc import Callable, Iterable
from typing import Any

from auth_server.config import CODE_TTL_SECONDS, SESSION_TTL_SECONDS
from auth_server.models import AuthorizationCode, Session

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class MemoryStore:
    """
    Thread-safe dict with get/put/delete and an atomic pop (read-and-delete in one step).
    Swap in another object with the same methods to change the backing store.
    """

    def __init__(self):
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def pop(self, key: str) -> Any | None:
        with self._lock:
            return self._data.pop(key, None)

    def update(self, key: str, fn: Callable[[Any], Any | None]) -> Any | None:
        """Replace the value with fn(value) under the lock; fn returning None deletes the key."""
        with self._lock:
            current = self._data.get(key)
            if current is None:
                return None
            new = fn(current)
            if new is None:
                del self._data[key]
            else:
                self._data[key] = new
            return new

    def delete_where(self, predicate: Callable[[Any], bool]) -> int:
        with self._lock:
            doomed = [k for k, v in self._data.items() if predicate(v)]
            for k in doomed:
                del self._data[k]
            return len(doomed)

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class SessionRegistry:
    """Authenticated browser sessions with sliding expiry."""

    def __init__(self, store: MemoryStore | None = None, ttl_seconds: int = SESSION_TTL_SECONDS, clock: Clock = time.time):
        self._store = store if store is not None else MemoryStore()
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def create(self, user_id: str) -> Session:
        now = self._clock()
        self._store.delete_where(lambda s: s.expired(now))
        session = Session(sid=secrets.token_urlsafe(32), user_id=user_id, expires_at=now + self.ttl_seconds)
        self._store.put(session.sid, session)
        return session

    def get(self, sid: str | None) -> Session | None:
        if not sid:
            return None
        session = self._store.get(sid)
        if session is None:
            return None
        if session.expired(self._clock()):
            self._store.delete(sid)
            return None
        return session

    def touch(self, sid: str | None) -> Session | None:
        """Push expiry out to now + TTL. Returns None if the session is missing or expired."""
        if not sid:
            return None
        now = self._clock()

        def _slide(session: Session) -> Session | None:
            if session.expired(now):
                return None
            return Session(sid=session.sid, user_id=session.user_id, expires_at=now + self.ttl_seconds)

        return self._store.update(sid, _slide)

    def destroy(self, sid: str | None) -> None:
        if sid:
            self._store.delete(sid)


class AuthorizationCodeRegistry:
    """Short-lived, single-use authorization codes."""

    def __init__(self, store: MemoryStore | None = None, ttl_seconds: int = CODE_TTL_SECONDS, clock: Clock = time.time):
        self._store = store if store is not None else MemoryStore()
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(
        self,
        *,
        client_id: str,
        redirect_uri: str,
        scope: Iterable[str],
        user_id: str,
        code_challenge: str | None = None,
        code_challenge_method: str | None = None,
    ) -> AuthorizationCode:
        now = self._clock()
        self._store.delete_where(lambda c: c.expired(now))
        auth_code = AuthorizationCode(
            code=secrets.token_urlsafe(32),
            client_id=client_id,
            redirect_uri=redirect_uri,
            user_id=user_id,
            scope=tuple(scope),
            created_at=now,
            expires_at=now + self.ttl_seconds,
            code_challenge=code_challenge or None,
            code_challenge_method=code_challenge_method or None,
        )
        self._store.put(auth_code.code, auth_code)
        return auth_code

    def consume(self, code: str | None) -> AuthorizationCode | None:
        """
        Remove the code and return it. The entry is gone after this call whatever the caller
        does next; an expired entry is removed too but yields None.
        """
        if not code:
            return None
        auth_code = self._store.pop(code)
        if auth_code is None:
            return None
        if auth_code.expired(self._clock()):
            logger.debug("Authorization code for client_id=%s expired before redemption", auth_code.client_id)
            return None
        return auth_code
