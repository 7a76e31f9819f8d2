"""
Session Registry - Owns active conversations and their message logs.

Sessions live in memory for the lifetime of the process. Every mutation is a
plain synchronous method, so on a single event loop each call is atomic with
respect to other coroutines.
"""

import logging
from typing import Any, Dict, List, Optional

from ..models.session import Message, Session, utc_now
from .errors import UnknownSession

logger = logging.getLogger(__name__)

DEFAULT_RETENTION = 50


class SessionRegistry:
    """
    In-memory registry of sessions keyed by session id.

    Each session keeps at most ``retention`` messages; older messages are
    dropped silently once the cap is exceeded.
    """

    def __init__(self, retention: int = DEFAULT_RETENTION):
        if retention < 1:
            raise ValueError("retention must be at least 1")
        self.retention = retention
        self._sessions: Dict[str, Session] = {}

    def get_or_create(
        self,
        session_id: str,
        channel: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Session:
        """
        Return the session for ``session_id``, creating it on first use.

        An existing session keeps its identity and channel. Metadata is
        merged without overwriting values that are already set.
        """
        session = self._sessions.get(session_id)
        if session is None:
            session = Session(
                id=session_id,
                channel=channel,
                metadata={k: v for k, v in (metadata or {}).items() if v is not None},
            )
            self._sessions[session_id] = session
            logger.info(f"Session created: {session_id} (channel={channel})")
            return session

        for key, value in (metadata or {}).items():
            if value in (None, ""):
                continue
            if session.metadata.get(key) in (None, ""):
                session.metadata[key] = value
        return session

    def get(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def require(self, session_id: str) -> Session:
        """Return the session or raise UnknownSession."""
        session = self._sessions.get(session_id)
        if session is None:
            logger.error(
                f"Session {session_id} used before get_or_create",
                extra={"extra_fields": {"session_id": session_id}}
            )
            raise UnknownSession(session_id)
        return session

    def append(self, session_id: str, message: Message) -> Message:
        """
        Append a message to a session's log.

        Timestamps are clamped so they never go backwards within a session.
        """
        session = self.require(session_id)

        if session.messages and message.timestamp < session.messages[-1].timestamp:
            message.timestamp = session.messages[-1].timestamp

        session.messages.append(message)
        session.last_active_at = max(utc_now(), message.timestamp)

        overflow = len(session.messages) - self.retention
        if overflow > 0:
            del session.messages[:overflow]
            logger.debug(f"Session {session_id}: dropped {overflow} old message(s)")

        return message

    def recent_history(self, session_id: str, limit: int) -> List[Message]:
        """
        Return at most ``limit`` recent model-context messages, oldest first.

        Tool results and tool-call messages are left out, so each answered turn
        contributes one user and one assistant message.
        """
        session = self.require(session_id)
        if limit <= 0:
            return []
        context = [m for m in session.messages if m.is_model_context]
        return list(context[-limit:])

    def all(self) -> List[Session]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
