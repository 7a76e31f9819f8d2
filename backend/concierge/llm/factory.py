"""
LLM Provider Factory - Creates the configured LLM provider instances.
"""

from typing import Optional
from .base import LLMProvider
from .openai_provider import OpenAIProvider, PROVIDER_PRESETS

# Local providers that run without an API key
KEYLESS_PROVIDERS = {"ollama"}


def create_llm_provider(
    provider: str = "openrouter",
    api_key: str = "",
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    **kwargs
) -> Optional[LLMProvider]:
    """
    Create an LLM provider instance based on configuration.

    Args:
        provider: Provider name, one of PROVIDER_PRESETS
        api_key: API key for the provider
        model: Model name (uses provider default if not specified)
        base_url: Custom base URL (uses provider default if not specified)
        **kwargs: Additional provider parameters (timeout, default_temperature)

    Returns:
        LLMProvider instance, or None if the provider needs a key and has none
    """
    if not provider:
        return None
    provider = provider.lower()
    if provider not in PROVIDER_PRESETS:
        raise ValueError(f"Unsupported LLM provider: {provider}")
    if not api_key and provider not in KEYLESS_PROVIDERS:
        return None

    return OpenAIProvider(
        api_key=api_key,
        model=model or None,
        base_url=base_url or None,
        provider=provider,
        **kwargs
    )
