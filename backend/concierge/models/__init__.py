"""Models module."""

from .session import Message, MessageRole, Session, SessionSummary, ToolInvocation
from .tool import ToolResult
from .events import ObserverEvent, IncomingEvent, OutgoingEvent, SessionsSnapshot

__all__ = [
    'Message', 'MessageRole', 'Session', 'SessionSummary', 'ToolInvocation',
    'ToolResult',
    'ObserverEvent', 'IncomingEvent', 'OutgoingEvent', 'SessionsSnapshot'
]
