"""Tools module - business tools and the dispatcher that runs them."""

from typing import Optional

from ..core.business import BusinessConfig
from ..core.ids import IdGenerator
from ..core.orders import OrdersLedger
from ..storage import StorageInterface
from .base import BaseTool, NoArguments
from .business_tools import (
    CalculatePriceTool,
    CheckAvailabilityTool,
    GetBusinessInfoTool,
    GetDirectionsTool,
    GetMenuTool,
    SearchKnowledgeTool,
)
from .order_tools import (
    CollectFeedbackTool,
    CreateBookingTool,
    EscalateTool,
    HandleComplaintTool,
    TakeOrderTool,
)
from .registry import ToolDispatcher


def build_dispatcher(
    config: BusinessConfig,
    storage: StorageInterface,
    ledger: OrdersLedger,
    ids: Optional[IdGenerator] = None,
    timeout_seconds: Optional[float] = None,
) -> ToolDispatcher:
    """Register the full business tool set and validate its catalogue."""
    ids = ids or IdGenerator()
    escalate = EscalateTool(ledger, ids)

    dispatcher = ToolDispatcher(timeout_seconds=timeout_seconds)
    for tool in (
        GetBusinessInfoTool(config),
        GetMenuTool(config),
        CheckAvailabilityTool(),
        CreateBookingTool(ledger, ids),
        TakeOrderTool(ledger, ids, config),
        HandleComplaintTool(ledger, ids, escalate),
        SearchKnowledgeTool(storage),
        CalculatePriceTool(currency=ledger.currency),
        GetDirectionsTool(config),
        CollectFeedbackTool(ids),
        escalate,
    ):
        dispatcher.register(tool)

    dispatcher.validate_catalogue()
    return dispatcher


__all__ = [
    'BaseTool',
    'NoArguments',
    'ToolDispatcher',
    'build_dispatcher',
]
