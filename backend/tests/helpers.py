"""
Test helpers shared across test modules.
"""

from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

from concierge.llm.base import LLMResponse
from concierge.models.session import ToolInvocation

BUSINESS = {
    "name": "Spice Route",
    "type": "restaurant",
    "hours": "Mon-Sun 11:00-22:00",
    "location": {
        "address": "12 Long Street",
        "city": "Cape Town",
    },
    "contact": {"phone": "+27 21 555 0100"},
    "services": [
        "Butter Chicken - R85",
        "Garlic Naan - R25",
        "Mango Lassi - R30",
        "Chef's Special",
    ],
}


def tool_call(name: str, arguments: Optional[Dict[str, Any]] = None, call_id: str = "call_1") -> ToolInvocation:
    return ToolInvocation(call_id=call_id, name=name, arguments=arguments or {})


def model_reply(content: Optional[str] = None, calls: Optional[List[ToolInvocation]] = None) -> LLMResponse:
    return LLMResponse(content=content, tool_calls=list(calls or []), model="test-model")


def mock_provider(*responses, name: str = "mock") -> MagicMock:
    """A provider whose chat() returns (or raises) each item in turn."""
    provider = MagicMock()
    provider.name = name
    provider.total_usage = {"prompt_tokens": 0, "completion_tokens": 0, "total_tokens": 0}
    provider.chat = AsyncMock(side_effect=list(responses))
    return provider


def make_settings(tmp_path, **overrides):
    """Settings pointing at a temporary config and data directory."""
    from concierge.config.settings import Settings

    values = {
        "config_dir": str(tmp_path / "config"),
        "local_storage_path": str(tmp_path / "data"),
        "admin_token": "owner-secret",
        "log_file_enabled": False,
        "llm_api_key": "",
    }
    values.update(overrides)
    return Settings(**values)


def build_test_app(settings, llm_provider=None):
    """FastAPI app with every router and a container built from ``settings``."""
    from contextlib import asynccontextmanager
    from fastapi import FastAPI

    from concierge.api import admin_router, feishu_router, observers_router
    from concierge.container import build_container

    @asynccontextmanager
    async def lifespan(app):
        app.state.container = await build_container(settings, llm_provider=llm_provider)
        yield
        await app.state.container.close()

    app = FastAPI(lifespan=lifespan)
    app.include_router(admin_router)
    app.include_router(feishu_router)
    app.include_router(observers_router)
    return app
