"""Rolling user session with a fixed lifetime."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict, Field, field_validator

from pyreleva._constants import SESSION_TTL
from pyreleva.models._base import ensure_utc, utcnow
from pyreleva.storage import StorageService

_logger = logging.getLogger(__name__)

SessionListener = Callable[["Session"], None]


def _new_session_id() -> str:
    return str(uuid.uuid4()).lower()


class Session(BaseModel):
    """Immutable session identity.

    Parameters
    ----------
    session_id : str
        Lowercase UUID4 string.
    created_at : datetime
        Creation time (UTC). The lifetime is measured from here and is not
        extended by activity.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    session_id: str = Field(default_factory=_new_session_id)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def age(self, now: datetime) -> timedelta:
        return ensure_utc(now) - self.created_at

    def is_expired(self, now: datetime, ttl: timedelta = SESSION_TTL) -> bool:
        """Expired once strictly older than *ttl*."""
        return self.age(now) > ttl


class SessionManager:
    """Owns the current session, minting a new one when it expires.

    Access is serialized with a lock so concurrent callers observe a single
    session. Listeners are called after a session is minted or restored
    from storage.
    """

    def __init__(
        self,
        storage: StorageService,
        *,
        clock: Callable[[], datetime] = utcnow,
        ttl: timedelta = SESSION_TTL,
    ) -> None:
        self._storage = storage
        self._clock = clock
        self._ttl = ttl
        self._lock = threading.RLock()
        self._session: Session | None = None
        self._listeners: list[SessionListener] = []

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, session: Session) -> None:
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception:
                _logger.debug("Session listener raised", exc_info=True)

    def _restore(self) -> Session | None:
        stored = self._storage.get_session()
        if stored is None:
            return None
        session_id, created_at = stored
        return Session(session_id=session_id, created_at=created_at)

    def _mint(self) -> Session:
        session = Session(created_at=self._clock())
        self._storage.save_session(session.session_id, session.created_at)
        _logger.debug("Started new session %s", session.session_id)
        return session

    def current(self) -> Session:
        """Return the active session, restoring or minting one as needed."""
        with self._lock:
            now = self._clock()
            if self._session is not None and not self._session.is_expired(now, self._ttl):
                return self._session

            restored = self._restore()
            if restored is not None and not restored.is_expired(now, self._ttl):
                self._session = restored
                _logger.debug("Restored session %s", restored.session_id)
            else:
                self._session = self._mint()
            session = self._session
        self._notify(session)
        return session

    def force_refresh(self) -> Session:
        """Discard the current session and start a new one."""
        with self._lock:
            self._session = self._mint()
            session = self._session
        self._notify(session)
        return session

    def refresh_if_needed(self) -> bool:
        """Mint a new session if the current one has expired.

        Returns ``True`` when a new session was started.
        """
        with self._lock:
            if self._session is not None and not self._session.is_expired(self._clock(), self._ttl):
                return False
            previous = self._session.session_id if self._session is not None else None
        return self.current().session_id != previous

    def clear(self) -> None:
        with self._lock:
            self._session = None
            self._storage.clear_session()

    def age(self) -> timedelta | None:
        with self._lock:
            if self._session is None:
                return None
            return self._session.age(self._clock())

    def is_expired(self) -> bool:
        with self._lock:
            return self._session is None or self._session.is_expired(self._clock(), self._ttl)
