"""
Orders Ledger - Durable orders, bookings, complaints and escalations,
plus the owner alerts and statistics built on top of them.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..storage import RecordStore, StorageInterface
from .business import format_money
from .notifications import OwnerNotifier

logger = logging.getLogger(__name__)


class OrdersLedger:
    """
    Append-only business records stored as JSON collections under ``orders/``.
    Each side effect is a single independent append. Owner alerts are sent
    only for records that were stored.
    """

    def __init__(
        self,
        storage: StorageInterface,
        notifier: Optional[OwnerNotifier] = None,
        notify_orders: bool = False,
        notify_complaints: bool = True,
        currency: str = "R",
    ):
        self.orders = RecordStore(storage, "orders/orders.json")
        self.bookings = RecordStore(storage, "orders/bookings.json")
        self.complaints = RecordStore(storage, "orders/complaints.json")
        self.escalations = RecordStore(storage, "orders/escalations.json")
        self.notifier = notifier
        self.notify_orders = notify_orders
        self.notify_complaints = notify_complaints
        self.currency = currency

    def money(self, value: float) -> str:
        return format_money(value, self.currency)

    async def add_order(self, order: Dict[str, Any]) -> bool:
        saved = await self.orders.append(order)
        if saved and self.notify_orders:
            lines = "\n".join(f"• {i['quantity']}x {i['name']}" for i in order["items"])
            destination = f"Delivery to: {order.get('address')}" if order.get("delivery") else "Pickup"
            await self._notify(
                f"🛒 NEW ORDER #{order['id']}\n\n{lines}\n\n"
                f"Total: {self.money(order['total'])}\n"
                f"Customer: {order.get('customer_name')}\n"
                f"{destination}"
            )
        return saved

    async def add_booking(self, booking: Dict[str, Any]) -> bool:
        saved = await self.bookings.append(booking)
        if saved:
            await self._notify(
                f"📅 NEW BOOKING #{booking['id']}\n\n"
                f"Date: {booking['date']} at {booking['time']}\n"
                f"Guests: {booking['guests']}\n"
                f"Name: {booking['name']}\n"
                f"Phone: {booking['phone']}"
            )
        return saved

    async def add_complaint(self, complaint: Dict[str, Any]) -> bool:
        saved = await self.complaints.append(complaint)
        if saved and self.notify_complaints:
            await self._notify(
                f"⚠️ CUSTOMER COMPLAINT #{complaint['id']}\n\n"
                f"Issue: {complaint['issue']}\n"
                f"Customer: {complaint.get('customer_name')}\n"
                f"Phone: {complaint.get('customer_phone') or 'n/a'}\n"
                f"Urgency: {complaint['urgency'].upper()}"
            )
        return saved

    async def add_escalation(self, escalation: Dict[str, Any]) -> bool:
        saved = await self.escalations.append(escalation)
        if saved:
            await self._notify(
                f"🚨 ESCALATION #{escalation['id']}\n\n"
                f"Reason: {escalation['reason']}\n"
                f"Customer: {escalation.get('customer_info') or 'n/a'}\n"
                f"Details: {escalation.get('details') or 'n/a'}"
            )
        return saved

    async def _notify(self, text: str) -> None:
        if self.notifier is None:
            return
        await self.notifier.notify(text)

    async def get_stats(self) -> Dict[str, Any]:
        """Order and complaint counters for the admin API."""
        orders = await self.orders.load_all()
        bookings = await self.bookings.load_all()
        complaints = await self.complaints.load_all()

        today = datetime.now(timezone.utc).date().isoformat()
        today_orders = [o for o in orders if str(o.get("created_at", "")).startswith(today)]

        return {
            "total_orders": len(orders),
            "today_orders": len(today_orders),
            "today_revenue": sum(o.get("total") or 0 for o in today_orders),
            "total_bookings": len(bookings),
            "open_complaints": sum(1 for c in complaints if c.get("status") == "open"),
        }

    async def recent_orders(self, limit: int = 10) -> List[Dict[str, Any]]:
        orders = await self.orders.load_all()
        return list(reversed(orders[-limit:])) if limit > 0 else []

    async def recent_bookings(self, limit: int = 10) -> List[Dict[str, Any]]:
        bookings = await self.bookings.load_all()
        return list(reversed(bookings[-limit:])) if limit > 0 else []
