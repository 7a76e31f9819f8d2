"""
Read-only business tools: profile, menu, availability, directions,
knowledge search and price calculation.
"""

from typing import List, Optional
from urllib.parse import quote

from pydantic import BaseModel, Field

from ..core.business import BusinessConfig, format_money
from ..models.tool import ToolResult
from ..storage import StorageInterface
from .base import BaseTool

KNOWLEDGE_PATH = "business"


class GetBusinessInfoTool(BaseTool):
    name = "get_business_info"
    description = "Get basic business information like name, type, hours, location, and contact details"

    def __init__(self, config: BusinessConfig):
        self.config = config

    async def run(self, args) -> ToolResult:
        profile = self.config.profile
        data = profile.model_dump(exclude={"services"})
        return ToolResult.ok(f"{profile.name} ({profile.type}), open {profile.hours}", data)


class MenuArgs(BaseModel):
    category: Optional[str] = Field(None, description='Optional category filter (e.g., "drinks", "mains")')


class GetMenuTool(BaseTool):
    name = "get_menu"
    description = "Get the complete menu or service list with prices"
    args_model = MenuArgs

    def __init__(self, config: BusinessConfig):
        self.config = config

    async def run(self, args: MenuArgs) -> ToolResult:
        menu = self.config.profile.menu()
        if args.category:
            needle = args.category.lower()
            menu = [item for item in menu if needle in item.name.lower()]

        items = [item.model_dump() for item in menu]
        if not items:
            return ToolResult.ok("No menu items match that request.", {"menu": [], "count": 0})
        lines = "\n".join(f"• {item['name']} - {item['price']}" for item in items)
        return ToolResult.ok(lines, {"menu": items, "count": len(items)})


class AvailabilityArgs(BaseModel):
    date: str = Field(..., description="Date in YYYY-MM-DD format")
    time: str = Field(..., description="Time in HH:MM format (24-hour)")
    guests: int = Field(..., ge=1, description="Number of guests/people")


class CheckAvailabilityTool(BaseTool):
    """
    Always reports availability. There is no capacity model behind it;
    bookings are confirmed as requested and the owner is notified.
    """

    name = "check_availability"
    description = "Check if tables or appointments are available for a specific date and time"
    args_model = AvailabilityArgs

    async def run(self, args: AvailabilityArgs) -> ToolResult:
        message = f"Great news! We have availability for {args.guests} guests on {args.date} at {args.time}."
        return ToolResult.ok(message, {
            "available": True,
            "date": args.date,
            "time": args.time,
            "guests": args.guests,
        })


class GetDirectionsTool(BaseTool):
    name = "get_directions"
    description = "Get directions to the business location with Google Maps link"

    def __init__(self, config: BusinessConfig):
        self.config = config

    async def run(self, args) -> ToolResult:
        profile = self.config.profile
        location = profile.location
        maps_url = location.google_maps_url or (
            "https://www.google.com/maps/search/" + quote(f"{profile.name} {location.address}".strip())
        )
        address_line = ", ".join(part for part in (location.address, location.city) if part)
        message = f"📍 {profile.name}\n{address_line}\n\n[Open in Google Maps]({maps_url})"
        return ToolResult.ok(message, {
            "address": location.address,
            "city": location.city,
            "maps_url": maps_url,
        })


class KnowledgeArgs(BaseModel):
    query: str = Field(..., min_length=1, description="Search query")


class SearchKnowledgeTool(BaseTool):
    name = "search_knowledge"
    description = "Search the knowledge base for information about policies, FAQs, or business details"
    args_model = KnowledgeArgs

    def __init__(self, storage: StorageInterface, path: str = KNOWLEDGE_PATH):
        self.storage = storage
        self.path = path

    async def run(self, args: KnowledgeArgs) -> ToolResult:
        markdown = await self.storage.search(self.path, args.query, file_pattern="*.md")
        text = await self.storage.search(self.path, args.query, file_pattern="*.txt")
        results = [{"file": r["file"], "content": r["content"]} for r in markdown + text]

        if results:
            message = f'Found {len(results)} result(s) for "{args.query}"'
        else:
            message = f'No specific information found for "{args.query}". Please contact us directly.'
        return ToolResult.ok(message, {"query": args.query, "results": results})


class PricedItem(BaseModel):
    name: str
    quantity: int = Field(..., ge=1)
    unit_price: float = Field(..., ge=0)


class PriceArgs(BaseModel):
    items: List[PricedItem] = Field(..., min_length=1, description="Array of {name, quantity, unit_price} objects")


class CalculatePriceTool(BaseTool):
    name = "calculate_price"
    description = "Calculate the total price for a list of items"
    args_model = PriceArgs

    def __init__(self, currency: str = "R"):
        self.currency = currency

    async def run(self, args: PriceArgs) -> ToolResult:
        breakdown = [
            {
                "name": item.name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "subtotal": round(item.quantity * item.unit_price, 2),
            }
            for item in args.items
        ]
        total = round(sum(line["subtotal"] for line in breakdown), 2)
        lines = "\n".join(
            f"• {line['quantity']}x {line['name']} = {format_money(line['subtotal'], self.currency)}" for line in breakdown
        )
        return ToolResult.ok(f"{lines}\n\nTotal: {format_money(total, self.currency)}", {"items": breakdown, "total": total})
