"""Session table for the streaming-HTTP transport."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum

from vault_mcp.errors import SessionClosedError, UnknownSessionError

logger = logging.getLogger(__name__)

DEFAULT_CLOSED_MEMORY = 256


class SessionState(str, Enum):
    """Lifecycle of an event-stream session."""

    INIT = "init"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class Session:
    """One event-stream session and its outbound frame queue.

    ``None`` on the queue tells the stream writer to finish.
    """

    id: str
    created_at: float = field(default_factory=time.time)
    state: SessionState = SessionState.INIT
    queue: asyncio.Queue[str | None] = field(default_factory=asyncio.Queue)

    @property
    def is_open(self) -> bool:
        """Whether frames can be queued for delivery."""
        return self.state is SessionState.OPEN

    def deliver(self, frame: str) -> bool:
        """Queue an encoded SSE frame; closed sessions drop it silently."""
        if self.state is SessionState.CLOSED:
            return False
        self.queue.put_nowait(frame)
        return True

    def end(self) -> None:
        """Ask the stream writer to finish after draining queued frames."""
        self.queue.put_nowait(None)


class SessionManager:
    """In-memory manager mapping session identifiers to live sessions.

    The table is only touched from the event loop thread. A bounded number of
    recently closed ids is remembered so lookups can tell a closed session
    from one that never existed.
    """

    def __init__(self, closed_memory: int = DEFAULT_CLOSED_MEMORY) -> None:
        """Initialize the session manager with empty state."""
        self._sessions: dict[str, Session] = {}
        self._closed: OrderedDict[str, None] = OrderedDict()
        self._closed_memory = closed_memory

    def __len__(self) -> int:
        return len(self._sessions)

    def create_session(self) -> Session:
        """Register a new session in the INIT state and return it."""
        session = Session(id=str(uuid.uuid4()))
        self._sessions[session.id] = session
        logger.debug("Session %s created", session.id)
        return session

    def get(self, session_id: str) -> Session:
        """Retrieve a live session.

        Raises:
            SessionClosedError: If the session existed but has been closed.
            UnknownSessionError: If the id was never issued.

        """
        session = self._sessions.get(session_id)
        if session is not None:
            return session
        if session_id in self._closed:
            raise SessionClosedError(session_id, f"Session '{session_id}' is closed")
        raise UnknownSessionError(session_id, f"Unknown session_id '{session_id}'")

    def open(self, session_id: str) -> None:
        """Mark a session OPEN once its endpoint event has been sent."""
        self.get(session_id).state = SessionState.OPEN

    def close(self, session_id: str) -> Session | None:
        """Close and remove a session; closing twice is a no-op."""
        session = self._sessions.pop(session_id, None)
        if session is None:
            return None
        session.state = SessionState.CLOSED
        self._closed[session_id] = None
        while len(self._closed) > self._closed_memory:
            self._closed.popitem(last=False)
        logger.debug("Session %s closed", session_id)
        return session

    def open_sessions(self) -> list[Session]:
        """Return every session currently in the OPEN state."""
        return [session for session in self._sessions.values() if session.is_open]

    def all_sessions(self) -> list[Session]:
        """Return every tracked session regardless of state."""
        return list(self._sessions.values())
