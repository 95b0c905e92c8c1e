"""
Session Store

Conversation history storage for chat sessions.

Design choices
--------------
- Storage goes through a small key-value backend (get / set / delete /
  scan_expired), so the in-memory dict can be swapped for a distributed store.
- Thread-safe access using a re-entrant lock; append and history truncation
  happen atomically.
- Copy-on-read semantics (callers cannot mutate internal state).
- Expiry sweeps snapshot candidates first and re-check each one under the
  lock, so a sweep never holds the lock for a full scan.
- Injectable clock for tests.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from threading import RLock
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from ..core.errors import SessionNotFound
from .models import Message, Session

logger = logging.getLogger("rag.sessions")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------
# Backends
# ---------------------------------------------------------------------

class SessionBackend(Protocol):
    def get(self, session_id: str) -> Optional[Session]: ...

    def set(self, session: Session) -> None: ...

    def delete(self, session_id: str) -> bool: ...

    def scan_expired(self, cutoff: datetime) -> List[str]: ...

    def keys(self) -> List[str]: ...


class InMemorySessionBackend:
    """Dict-backed backend. Not shared across processes."""

    def __init__(self) -> None:
        self._data: Dict[str, Session] = {}

    def get(self, session_id: str) -> Optional[Session]:
        return self._data.get(session_id)

    def set(self, session: Session) -> None:
        self._data[session.id] = session

    def delete(self, session_id: str) -> bool:
        return self._data.pop(session_id, None) is not None

    def scan_expired(self, cutoff: datetime) -> List[str]:
        return [
            sid for sid, s in list(self._data.items())
            if s.last_activity_at < cutoff
        ]

    def keys(self) -> List[str]:
        return list(self._data)


# ---------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------

class SessionStore:
    """
    Session lifecycle and bounded history.

    Parameters
    ----------
    max_messages : int
        History cap per session; the oldest messages are dropped first.

    ttl_seconds : int
        Idle time after which a session is swept.

    backend : Optional[SessionBackend]
        Storage backend. Defaults to InMemorySessionBackend.

    clock : Optional[Callable[[], datetime]]
        Source of "now". Defaults to UTC wall time.
    """

    def __init__(
        self,
        max_messages: int = 10,
        ttl_seconds: int = 3600,
        backend: Optional[SessionBackend] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        if max_messages <= 0:
            raise ValueError("max_messages must be positive")
        self.max_messages = max_messages
        self.ttl = timedelta(seconds=ttl_seconds)
        self._backend = backend or InMemorySessionBackend()
        self._clock = clock or utcnow
        self._lock = RLock()

    def now(self) -> datetime:
        return self._clock()

    @staticmethod
    def _copy(session: Session) -> Session:
        return session.model_copy(update={"messages": list(session.messages)})

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    def create(self, session_id: Optional[str] = None) -> str:
        """
        Create a session and return its id.

        An existing session under ``session_id`` is left untouched.
        """
        sid = session_id or str(uuid.uuid4())
        with self._lock:
            if self._backend.get(sid) is None:
                now = self._clock()
                self._backend.set(
                    Session(id=sid, created_at=now, last_activity_at=now)
                )
                logger.debug("Created session %s", sid)
        return sid

    def get_or_create(self, session_id: Optional[str] = None) -> Tuple[Session, bool]:
        """
        Return ``(session, created)``; an unknown id creates a session under it.
        """
        with self._lock:
            if session_id:
                existing = self._backend.get(session_id)
                if existing is not None:
                    return self._copy(existing), False
            sid = self.create(session_id)
            return self._copy(self._backend.get(sid)), True

    def append(self, session_id: str, message: Message) -> Session:
        """
        Append a message, bump last activity and enforce the history cap.

        Raises
        ------
        SessionNotFound
            If the session does not exist.
        """
        with self._lock:
            session = self._backend.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)

            messages = list(session.messages)
            messages.append(message)
            excess = len(messages) - self.max_messages
            if excess > 0:
                messages = messages[excess:]

            updated = session.model_copy(
                update={"messages": messages, "last_activity_at": self._clock()}
            )
            self._backend.set(updated)
            return self._copy(updated)

    def get(self, session_id: str) -> Optional[Session]:
        with self._lock:
            session = self._backend.get(session_id)
            return self._copy(session) if session is not None else None

    def history(self, session_id: str) -> List[Message]:
        """
        Return the message history for a session.

        Raises
        ------
        SessionNotFound
            If the session does not exist.
        """
        session = self.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session.messages

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._backend.delete(session_id)

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def is_expired(self, session: Session, now: Optional[datetime] = None) -> bool:
        now = now or self._clock()
        return now - session.last_activity_at > self.ttl

    def sweep_expired(self) -> List[str]:
        """
        Remove every session idle for longer than the TTL.

        Returns
        -------
        List[str]
            Ids of the removed sessions.
        """
        now = self._clock()
        with self._lock:
            candidates = self._backend.scan_expired(now - self.ttl)

        removed: List[str] = []
        for sid in candidates:
            with self._lock:
                session = self._backend.get(sid)
                # Activity may have landed between snapshot and delete
                if session is not None and self.is_expired(session, now):
                    self._backend.delete(sid)
                    removed.append(sid)

        if removed:
            logger.info("Swept %d expired sessions", len(removed))
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._backend.keys())
