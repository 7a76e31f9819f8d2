"""
LLM Provider Base - Abstract base for chat-completion providers with tool calling.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field

from ..models.session import Message, ToolInvocation


@dataclass
class LLMMessage:
    """
    A message in the chat-completions conversation.
    Assistant messages may carry tool calls; tool messages answer one call.
    """
    role: str  # "system", "user", "assistant", "tool"
    content: Optional[str]
    tool_calls: List[ToolInvocation] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        """Create a text-only message."""
        return LLMMessage(role=role, content=text)

    @staticmethod
    def from_message(message: Message) -> "LLMMessage":
        """Convert a stored session Message."""
        return LLMMessage(
            role=message.role,
            content=message.content,
            tool_calls=list(message.tool_calls or []),
            tool_call_id=message.tool_call_id,
            name=message.name,
        )


@dataclass
class LLMResponse:
    """Response from an LLM API call."""
    content: Optional[str]
    tool_calls: List[ToolInvocation] = field(default_factory=list)
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class LLMProvider(ABC):
    """
    Abstract base class for LLM API providers.
    All providers must implement chat.
    """

    name = "base"

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 1024):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self.total_usage: Dict[str, int] = {
            "prompt_tokens": 0,
            "completion_tokens": 0,
            "total_tokens": 0,
        }

    @abstractmethod
    async def chat(
        self,
        messages: List[LLMMessage],
        tools: Optional[List[Dict[str, Any]]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: Conversation so far, system prompt first
            tools: Function-tool definitions the model may call
            temperature: Sampling temperature override
            max_tokens: Max tokens override

        Returns:
            LLMResponse with either text content or tool calls

        Raises:
            ModelProviderError: on transport errors, timeouts, or bad responses
        """
        pass

    def record_usage(self, usage: Dict[str, Any]) -> None:
        for key in self.total_usage:
            self.total_usage[key] += int(usage.get(key) or 0)
