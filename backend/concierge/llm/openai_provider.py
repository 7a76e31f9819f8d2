"""
OpenAI-compatible LLM Provider.
Talks to any Chat Completions endpoint that supports function tools:
OpenAI, OpenRouter, DeepSeek, Groq, Ollama and Volcano Engine Ark.
"""

import httpx
import json
import logging
import time
from typing import Optional, List, Dict, Any

from ..core.errors import ModelProviderError
from ..models.session import ToolInvocation
from ..tools.registry import INVALID_JSON_KEY
from .base import LLMProvider, LLMMessage, LLMResponse

logger = logging.getLogger(__name__)

# provider name -> (base_url, default model)
PROVIDER_PRESETS: Dict[str, tuple] = {
    "openai": ("https://api.openai.com/v1", "gpt-4o-mini"),
    "openrouter": ("https://openrouter.ai/api/v1", "deepseek/deepseek-r1-0528:free"),
    "deepseek": ("https://api.deepseek.com/v1", "deepseek-chat"),
    "groq": ("https://api.groq.com/openai/v1", "llama-3.3-70b-versatile"),
    "ollama": ("http://localhost:11434/v1", "llama3.1"),
    "volcengine": ("https://ark.cn-beijing.volces.com/api/v3", "doubao-1-5-pro-32k-250115"),
}


def parse_tool_calls(message: Dict[str, Any]) -> List[ToolInvocation]:
    """
    Extract tool invocations from an assistant message.
    Arguments that are not valid JSON are kept under ``__invalid_json__`` so the
    dispatcher can report them back to the model.
    """
    invocations = []
    for index, call in enumerate(message.get("tool_calls") or []):
        function = call.get("function") or {}
        raw_arguments = function.get("arguments") or "{}"
        if isinstance(raw_arguments, dict):
            arguments = raw_arguments
        else:
            try:
                arguments = json.loads(raw_arguments)
            except json.JSONDecodeError:
                arguments = {INVALID_JSON_KEY: raw_arguments}
            if not isinstance(arguments, dict):
                arguments = {INVALID_JSON_KEY: raw_arguments}
        invocations.append(ToolInvocation(
            call_id=call.get("id") or f"call_{index}",
            name=function.get("name", ""),
            arguments=arguments,
        ))
    return invocations


class OpenAIProvider(LLMProvider):
    """
    Provider for OpenAI-style ``/chat/completions`` endpoints.
    ``provider`` selects the preset base URL and default model.
    """

    def __init__(
        self,
        api_key: str = "",
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        provider: str = "openai",
        default_temperature: float = 0.7,
        default_max_tokens: int = 1024,
        timeout: float = 60.0,
    ):
        preset_url, preset_model = PROVIDER_PRESETS.get(provider, PROVIDER_PRESETS["openai"])
        super().__init__(
            api_key,
            model or preset_model,
            (base_url or preset_url).rstrip("/"),
            default_temperature,
            default_max_tokens,
        )
        self.name = provider
        self.timeout = timeout

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        """Convert LLMMessage list to the chat-completions wire format."""
        formatted = []
        for m in messages:
            item: Dict[str, Any] = {"role": m.role, "content": m.content}
            if m.tool_calls:
                item["tool_calls"] = [
                    {
                        "id": call.call_id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.arguments, ensure_ascii=False),
                        },
                    }
                    for call in m.tool_calls
                ]
            if m.role == "tool":
                item["tool_call_id"] = m.tool_call_id
                if m.name:
                    item["name"] = m.name
            formatted.append(item)
        return formatted

    async def chat(
        self,
        messages: List[LLMMessage],
        tools: Optional[List[Dict[str, Any]]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> LLMResponse:
        """Send request to the Chat Completions endpoint."""
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": self._format_messages(messages),
            "temperature": temperature if temperature is not None else self.default_temperature,
            "max_tokens": max_tokens or self.default_max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"

        # Log request (DEBUG level)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider={self.name}, model={self.model}, "
                f"{len(messages)} messages, {len(tools or [])} tools"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
                resp.raise_for_status()
                data = resp.json()
            message = data["choices"][0]["message"]
        except httpx.TimeoutException as e:
            self._log_failure(start_time, "timeout")
            raise ModelProviderError(self.name, f"timed out after {self.timeout}s", e) from e
        except httpx.HTTPStatusError as e:
            self._log_failure(start_time, f"HTTP {e.response.status_code}")
            raise ModelProviderError(self.name, f"HTTP {e.response.status_code}", e) from e
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            self._log_failure(start_time, str(e))
            raise ModelProviderError(self.name, str(e) or type(e).__name__, e) from e

        usage = data.get("usage") or {}
        self.record_usage(usage)
        tool_calls = parse_tool_calls(message)
        duration_ms = (time.time() - start_time) * 1000

        # Log successful response (INFO level)
        logger.info(
            "LLM API call completed",
            extra={"extra_fields": {
                "provider": self.name,
                "model": data.get("model", self.model),
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
                "total_tokens": usage.get("total_tokens", 0),
                "tool_calls": len(tool_calls),
                "duration_ms": round(duration_ms, 2),
            }}
        )

        return LLMResponse(
            content=message.get("content"),
            tool_calls=tool_calls,
            model=data.get("model", self.model),
            usage=usage,
            raw=data,
        )

    def _log_failure(self, start_time: float, error: str) -> None:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(
            f"LLM API call failed: {error}",
            extra={"extra_fields": {
                "provider": self.name,
                "model": self.model,
                "duration_ms": round(duration_ms, 2),
                "error": error,
            }}
        )
