"""
Side-effecting tools: bookings, orders, complaints, feedback and escalation.
Each one writes a single record to the orders ledger.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field

from ..core.business import BusinessConfig, parse_price
from ..core.ids import IdGenerator
from ..core.orders import OrdersLedger
from ..models.tool import ToolResult
from .base import BaseTool


NOT_SAVED = (
    "The {record} could not be saved. Nothing was recorded; apologise and ask the "
    "customer to try again shortly or contact the business directly."
)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class BookingArgs(BaseModel):
    date: str = Field(..., description="Date in YYYY-MM-DD format")
    time: str = Field(..., description="Time in HH:MM format")
    guests: int = Field(..., ge=1, description="Number of guests")
    name: str = Field(..., min_length=1, description="Customer name")
    phone: str = Field(..., min_length=1, description="Customer phone number")
    notes: str = Field("", description="Any special requests or notes")


class CreateBookingTool(BaseTool):
    name = "create_booking"
    description = "Create a new table reservation or appointment booking"
    args_model = BookingArgs
    side_effecting = True

    def __init__(self, ledger: OrdersLedger, ids: IdGenerator):
        self.ledger = ledger
        self.ids = ids

    async def run(self, args: BookingArgs) -> ToolResult:
        booking = {
            "id": self.ids.next_id("BK"),
            **args.model_dump(),
            "status": "confirmed",
            "created_at": _now_iso(),
        }
        if not await self.ledger.add_booking(booking):
            return ToolResult.fail(NOT_SAVED.format(record="booking"))

        message = (
            f"✅ Booking {booking['id']} confirmed for {args.name} on {args.date} at {args.time} "
            f"for {args.guests} guests. Confirmation sent to {args.phone}."
        )
        return ToolResult.ok(message, {"booking": booking})


class OrderItem(BaseModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    price: Optional[Union[float, str]] = Field(
        None, description="Unit price; looked up on the menu when omitted"
    )


class OrderArgs(BaseModel):
    items: List[OrderItem] = Field(..., min_length=1, description="Array of {name, quantity, price} objects")
    customer_name: str = Field(..., min_length=1, description="Customer name")
    customer_phone: str = Field(..., min_length=1, description="Customer phone")
    delivery: bool = Field(False, description="Is this for delivery?")
    address: str = Field("", description="Delivery address if applicable")


class TakeOrderTool(BaseTool):
    name = "take_order"
    description = "Record a new order from a customer"
    args_model = OrderArgs
    side_effecting = True

    def __init__(self, ledger: OrdersLedger, ids: IdGenerator, config: BusinessConfig):
        self.ledger = ledger
        self.ids = ids
        self.config = config

    def _menu_matches(self, item: OrderItem) -> List[str]:
        return [m.name for m in self.config.profile.match_menu_items(item.name)]

    def _unit_price(self, item: OrderItem) -> Optional[float]:
        supplied = parse_price(item.price)
        if supplied is not None:
            return supplied
        menu_item = self.config.profile.find_menu_item(item.name)
        return menu_item.unit_price if menu_item else None

    async def run(self, args: OrderArgs) -> ToolResult:
        if args.delivery and not args.address.strip():
            return ToolResult.fail("A delivery address is required for delivery orders.")

        lines = []
        unpriced = []
        for item in args.items:
            if parse_price(item.price) is None:
                matches = self._menu_matches(item)
                if len(matches) > 1:
                    return ToolResult.fail(
                        f"\"{item.name}\" could mean any of: {', '.join(matches)}. "
                        "Check get_menu and use the exact item name."
                    )
            price = self._unit_price(item)
            if price is None:
                unpriced.append(item.name)
                continue
            lines.append({
                "name": item.name,
                "quantity": item.quantity,
                "price": price,
                "total": round(price * item.quantity, 2),
            })
        if unpriced:
            return ToolResult.fail(
                f"No price known for: {', '.join(unpriced)}. "
                "Check get_menu or pass a price for each item."
            )

        total = round(sum(line["total"] for line in lines), 2)
        order = {
            "id": self.ids.next_id("ORD"),
            "items": lines,
            "total": total,
            "customer_name": args.customer_name,
            "customer_phone": args.customer_phone,
            "delivery": args.delivery,
            "address": args.address,
            "status": "pending",
            "created_at": _now_iso(),
        }
        if not await self.ledger.add_order(order):
            return ToolResult.fail(NOT_SAVED.format(record="order"))

        money = self.ledger.money
        summary = "\n".join(f"• {line['quantity']}x {line['name']} - {money(line['total'])}" for line in lines)
        destination = f"🚚 Delivery to: {args.address}" if args.delivery else "🏠 Pickup"
        message = (
            f"📦 Order #{order['id']} received!\n\n{summary}\n\n"
            f"Total: {money(total)}\n\n{destination}\n\nWe'll confirm when ready!"
        )
        return ToolResult.ok(message, {"order": order})


class EscalateArgs(BaseModel):
    reason: str = Field(..., min_length=1, description="Reason for escalation")
    customer_info: str = Field("", description="Customer contact info")
    details: str = Field("", description="Additional details")


class EscalateTool(BaseTool):
    name = "escalate"
    description = "Escalate a critical issue to the business owner immediately"
    args_model = EscalateArgs
    side_effecting = True

    def __init__(self, ledger: OrdersLedger, ids: IdGenerator):
        self.ledger = ledger
        self.ids = ids

    async def escalate(self, args: EscalateArgs) -> Optional[dict]:
        """Store an escalation and alert the owner. None if it was not stored."""
        escalation = {
            "id": self.ids.next_id("ESC"),
            **args.model_dump(),
            "status": "pending",
            "created_at": _now_iso(),
        }
        if not await self.ledger.add_escalation(escalation):
            return None
        return escalation

    async def run(self, args: EscalateArgs) -> ToolResult:
        escalation = await self.escalate(args)
        if escalation is None:
            return ToolResult.fail(NOT_SAVED.format(record="escalation"))
        return ToolResult.ok(
            "⚠️ Your concern has been escalated to our management team. "
            "They will contact you as soon as possible.",
            {"escalation": escalation},
        )


class ComplaintArgs(BaseModel):
    customer_name: str = Field(..., min_length=1, description="Customer name")
    customer_phone: str = Field("", description="Customer phone")
    issue: str = Field(..., min_length=1, description="Description of the issue")
    urgency: Literal["low", "medium", "high"] = Field(..., description="How urgent is this?")


class HandleComplaintTool(BaseTool):
    name = "handle_complaint"
    description = "Record and acknowledge a customer complaint, flagging for owner attention if urgent"
    args_model = ComplaintArgs
    side_effecting = True

    def __init__(self, ledger: OrdersLedger, ids: IdGenerator, escalation: EscalateTool):
        self.ledger = ledger
        self.ids = ids
        self.escalation = escalation

    async def run(self, args: ComplaintArgs) -> ToolResult:
        complaint = {
            "id": self.ids.next_id("CMPL"),
            **args.model_dump(),
            "status": "open",
            "created_at": _now_iso(),
        }
        if not await self.ledger.add_complaint(complaint):
            return ToolResult.fail(NOT_SAVED.format(record="complaint"))

        if args.urgency != "high":
            return ToolResult.ok(
                "I'm truly sorry about your experience. I've logged your feedback and "
                "we'll use it to improve. Thank you for letting us know.",
                {"complaint": complaint, "escalated": False},
            )

        escalation = await self.escalation.escalate(EscalateArgs(
            reason=f"Customer complaint: {args.issue}",
            customer_info=f"{args.customer_name} - {args.customer_phone}".strip(" -"),
            details=f"Complaint {complaint['id']}, urgency: {args.urgency}",
        ))
        if escalation is None:
            return ToolResult.fail(
                f"Complaint {complaint['id']} was recorded but the escalation to management "
                "could not be saved. Apologise and ask the customer to call the business directly."
            )
        contact = f" at {args.customer_phone}" if args.customer_phone else ""
        return ToolResult.ok(
            f"⚠️ I've escalated your concern to our management. We'll contact you shortly{contact}.",
            {"complaint": complaint, "escalated": True, "escalation": escalation},
        )


class FeedbackArgs(BaseModel):
    customer_name: str = Field("", description="Customer name")
    rating: int = Field(..., ge=1, le=5, description="Rating from 1-5")
    comment: str = Field("", description="Optional comment")


class CollectFeedbackTool(BaseTool):
    """
    Acknowledges feedback without storing it. Feedback is echoed back to the
    model only; nothing is written to the ledger.
    """

    name = "collect_feedback"
    description = "Collect customer feedback after a visit or order"
    args_model = FeedbackArgs

    def __init__(self, ids: IdGenerator):
        self.ids = ids

    async def run(self, args: FeedbackArgs) -> ToolResult:
        feedback = {
            "id": self.ids.next_id("FB"),
            **args.model_dump(),
            "created_at": _now_iso(),
        }
        comment = f'\n\nYour comment: "{args.comment}"' if args.comment else ""
        message = (
            f"Thank you for your feedback! {'⭐' * args.rating} ({args.rating}/5)"
            f"{comment}\n\nWe appreciate your business!"
        )
        return ToolResult.ok(message, {"feedback": feedback, "persisted": False})
