"""Core module - sessions, business configuration, records and customer memory."""

from .errors import (
    ConciergeError,
    UnknownSession,
    UnknownTool,
    InvalidToolArguments,
    ModelProviderError,
    ChannelDeliveryError,
)
from .session_registry import SessionRegistry
from .memory_manager import CustomerMemory

__all__ = [
    'ConciergeError',
    'UnknownSession',
    'UnknownTool',
    'InvalidToolArguments',
    'ModelProviderError',
    'ChannelDeliveryError',
    'SessionRegistry',
    'CustomerMemory',
]
