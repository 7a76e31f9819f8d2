"""
Session Models - Defines conversation sessions and the messages they hold.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


MessageRole = Literal["user", "assistant", "tool", "system"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ToolInvocation(BaseModel):
    """A single tool call requested by the model."""
    call_id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class Message(BaseModel):
    """One utterance in a session."""
    role: MessageRole
    content: Optional[str] = None  # None only for an assistant tool-invocation turn
    timestamp: datetime = Field(default_factory=utc_now)

    # Assistant turns that act instead of replying
    tool_calls: Optional[List[ToolInvocation]] = None

    # Tool results
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_model_context(self) -> bool:
        """Whether the message belongs in the history handed to the model."""
        if self.role in ("tool", "system"):
            return False
        if self.role == "assistant" and self.tool_calls:
            return False
        return True


class Session(BaseModel):
    """One logical conversation with a customer."""
    id: str
    channel: str
    messages: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    last_active_at: datetime = Field(default_factory=utc_now)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def customer_name(self) -> Optional[str]:
        return self.metadata.get("sender_name") or self.metadata.get("customer_name")


class SessionSummary(BaseModel):
    """Session overview used by observers and the admin API."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True

    id: str
    channel: str
    customer_name: str
    last_active_at: datetime
    message_count: int

    @classmethod
    def from_session(cls, session: Session) -> "SessionSummary":
        return cls(
            id=session.id,
            channel=session.channel,
            customer_name=session.customer_name or "Unknown",
            last_active_at=session.last_active_at,
            message_count=len(session.messages),
        )
