"""LLM module - provides a unified interface for chat-completion providers."""

from .base import LLMProvider, LLMMessage, LLMResponse
from .openai_provider import OpenAIProvider, PROVIDER_PRESETS
from .factory import create_llm_provider

__all__ = [
    'LLMProvider',
    'LLMMessage',
    'LLMResponse',
    'OpenAIProvider',
    'PROVIDER_PRESETS',
    'create_llm_provider',
]
