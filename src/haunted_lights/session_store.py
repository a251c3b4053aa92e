"""Session storage for haunted_lights."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging

from .models import Session

_LOGGER = logging.getLogger(__name__)


class SessionStore(ABC):
    """Maps an opaque session id to vendor tokens and cached devices."""

    @abstractmethod
    def get(self, session_id: str) -> Session | None:
        """Return the session for `session_id`, or None."""

    @abstractmethod
    def put(self, session: Session) -> None:
        """Store a session, replacing any previous one with the same id."""

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Remove a session. Returns True if one was stored."""

    @abstractmethod
    def __len__(self) -> int:
        """Return the number of stored sessions."""


class InMemorySessionStore(SessionStore):
    """Process-local store; sessions live until deleted or the process exits.

    Concurrent writes to the same session are not synchronized, the last
    write wins.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def put(self, session: Session) -> None:
        if session.session_id in self._sessions:
            _LOGGER.debug("Replacing session %s", session.session_id[:8])
        self._sessions[session.session_id] = session

    def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    def __len__(self) -> int:
        return len(self._sessions)
