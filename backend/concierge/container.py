"""
Application object graph, built once at startup and kept on ``app.state``.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .agents.orchestrator import AgentOrchestrator
from .channels.feishu import CHANNEL_NAME as FEISHU_CHANNEL, FeishuChannel, RecentEvents
from .config.settings import Settings
from .core.business import BusinessConfig
from .core.ids import IdGenerator
from .core.memory_manager import CustomerMemory
from .core.notifications import OwnerNotifier
from .core.orders import OrdersLedger
from .core.session_registry import SessionRegistry
from .gateway.gateway import Gateway
from .llm.base import LLMProvider
from .llm.factory import create_llm_provider
from .storage import LocalStorage, StorageInterface
from .tools import build_dispatcher
from .tools.registry import ToolDispatcher

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    storage: StorageInterface
    config: BusinessConfig
    registry: SessionRegistry
    gateway: Gateway
    ledger: OrdersLedger
    memory: CustomerMemory
    dispatcher: ToolDispatcher
    orchestrator: AgentOrchestrator
    feishu: Optional[FeishuChannel] = None
    feishu_events: RecentEvents = field(default_factory=RecentEvents)

    async def close(self) -> None:
        await self.gateway.close()


def _build_providers(settings: Settings):
    primary = create_llm_provider(
        provider=settings.llm_provider,
        api_key=settings.llm_api_key or "",
        model=settings.llm_model,
        base_url=settings.llm_base_url,
        timeout=settings.llm_timeout_seconds,
    )
    if primary is None:
        logger.warning(f"LLM provider {settings.llm_provider} has no API key; replies will be apologies")

    fallback: Optional[LLMProvider] = None
    if settings.fallback_llm_provider:
        fallback = create_llm_provider(
            provider=settings.fallback_llm_provider,
            api_key=settings.fallback_llm_api_key or "",
            model=settings.fallback_llm_model,
            base_url=settings.fallback_llm_base_url,
            timeout=settings.llm_timeout_seconds,
        )
    return primary, fallback


async def build_container(
    settings: Settings,
    storage: Optional[StorageInterface] = None,
    llm_provider: Optional[LLMProvider] = None,
    fallback_provider: Optional[LLMProvider] = None,
) -> Container:
    """
    Wire storage, sessions, tools, gateway, agent and channels together.
    Providers passed in explicitly take precedence over the configured ones.
    """
    storage = storage or LocalStorage(settings.local_storage_path)
    config = await BusinessConfig(settings.config_dir).reload()

    registry = SessionRegistry(retention=settings.session_retention)
    gateway = Gateway(registry, turn_timeout=settings.turn_timeout_seconds)

    notifier = OwnerNotifier(gateway, settings.owner_channel, settings.owner_address)
    ledger = OrdersLedger(
        storage,
        notifier=notifier,
        notify_orders=settings.notify_orders,
        notify_complaints=settings.notify_complaints,
    )
    memory = CustomerMemory(storage)
    dispatcher = build_dispatcher(
        config, storage, ledger,
        ids=IdGenerator(),
        timeout_seconds=settings.tool_timeout_seconds,
    )

    if llm_provider is None and fallback_provider is None:
        llm_provider, fallback_provider = _build_providers(settings)

    orchestrator = AgentOrchestrator(
        gateway=gateway,
        registry=registry,
        dispatcher=dispatcher,
        config=config,
        llm_provider=llm_provider,
        fallback_provider=fallback_provider,
        memory=memory,
        max_tool_calls=settings.max_tool_calls,
        history_limit=settings.history_limit,
        model_timeout=settings.llm_timeout_seconds,
    )

    feishu = None
    if settings.feishu_app_id and settings.feishu_app_secret:
        feishu = FeishuChannel(
            app_id=settings.feishu_app_id,
            app_secret=settings.feishu_app_secret,
            verification_token=settings.feishu_verification_token,
            encrypt_key=settings.feishu_encrypt_key,
        )
        gateway.register_channel(FEISHU_CHANNEL, feishu)

    logger.info(
        f"Concierge ready: {config.profile.name}, "
        f"{len(dispatcher.names())} tools, channels={gateway.channel_names or 'none'}"
    )
    return Container(
        settings=settings,
        storage=storage,
        config=config,
        registry=registry,
        gateway=gateway,
        ledger=ledger,
        memory=memory,
        dispatcher=dispatcher,
        orchestrator=orchestrator,
        feishu=feishu,
    )
