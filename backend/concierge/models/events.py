"""
Observer Event Models - Events broadcast by the gateway to connected observers.
Serialized with camelCase keys for dashboard clients.
"""

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .session import SessionSummary, utc_now


class ObserverEvent(BaseModel):
    """Base for all observer events."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class IncomingEvent(ObserverEvent):
    """A customer message accepted by the gateway."""
    type: Literal["incoming"] = "incoming"
    channel: str
    session_id: str
    sender_name: Optional[str] = None
    message: str
    timestamp: datetime = Field(default_factory=utc_now)


class OutgoingEvent(ObserverEvent):
    """A reply recorded by the gateway."""
    type: Literal["outgoing"] = "outgoing"
    channel: str
    session_id: str
    response: str
    timestamp: datetime = Field(default_factory=utc_now)


class SessionsSnapshot(ObserverEvent):
    """On-demand snapshot of all known sessions."""
    type: Literal["sessions"] = "sessions"
    sessions: List[SessionSummary]
