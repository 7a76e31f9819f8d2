"""
Error taxonomy for the gateway, the agent loop and the tool dispatcher.
"""

from typing import Optional


class ConciergeError(Exception):
    """Base class for all concierge errors."""


class UnknownSession(ConciergeError):
    """A session was used before being created through get_or_create."""

    def __init__(self, session_id: str):
        super().__init__(f"Unknown session: {session_id}")
        self.session_id = session_id


class UnknownTool(ConciergeError):
    """The requested tool name is not registered with the dispatcher."""

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class InvalidToolArguments(ConciergeError):
    """Tool arguments did not match the tool's parameter schema."""

    def __init__(self, name: str, detail: str):
        super().__init__(f"Invalid arguments for {name}: {detail}")
        self.name = name
        self.detail = detail


class ModelProviderError(ConciergeError):
    """A language-model call failed or timed out."""

    def __init__(self, provider: str, detail: str, cause: Optional[BaseException] = None):
        super().__init__(f"Model provider '{provider}' failed: {detail}")
        self.provider = provider
        self.detail = detail
        self.cause = cause


class ChannelDeliveryError(ConciergeError):
    """A channel adapter failed to deliver an outbound message."""

    def __init__(self, channel: str, session_id: str, detail: str):
        super().__init__(f"Delivery to {channel}/{session_id} failed: {detail}")
        self.channel = channel
        self.session_id = session_id
        self.detail = detail
