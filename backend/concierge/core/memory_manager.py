"""
Customer Memory - Remembers returning customers across sessions.

Records are keyed by a stable customer id: a normalized phone number where the
channel supplies one, otherwise the channel's own sender id (a Feishu
``open_id``). The whole store is persisted as a single JSON document through
the storage layer. Preferences are picked up passively from conversation text
after every turn.
"""

import asyncio
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from ..storage import StorageInterface

logger = logging.getLogger(__name__)

CUSTOMERS_PATH = "memory/customers.json"

_PHONE_STRIP = re.compile(r"[^\d+]")
_PHONE_LIKE = re.compile(r"^\+?[\d\s().-]+$")
_ALLERGY = re.compile(r"allergy.*?(?:to|is)\s+(\w+)", re.IGNORECASE)


def normalize_phone(phone: Optional[str]) -> str:
    """Keep digits and ``+`` only: ``"+27 82-123 4567"`` -> ``"+27821234567"``."""
    if not phone:
        return ""
    return _PHONE_STRIP.sub("", phone)


def customer_key(customer_id: Optional[str]) -> str:
    """Phone numbers are normalized; other ids are kept as given."""
    if not customer_id:
        return ""
    customer_id = str(customer_id).strip()
    if _PHONE_LIKE.match(customer_id):
        return normalize_phone(customer_id)
    return customer_id


def extract_preferences(texts: Iterable[str]) -> Dict[str, str]:
    """Detect dietary, spice and allergy preferences in free text."""
    text = " ".join(t for t in texts if t).lower()
    preferences = {}
    if "vegetarian" in text or "vegan" in text:
        preferences["dietary"] = "vegetarian/vegan"
    if "spicy" in text:
        preferences["spice_level"] = "prefers spicy"
    if "allergy" in text or "allergic" in text:
        match = _ALLERGY.search(text)
        if match:
            preferences["allergy"] = match.group(1)
    return preferences


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class CustomerMemory:
    """
    JSON-backed customer profiles: name, preferences, visit count and
    first/last seen timestamps.
    """

    def __init__(self, storage: StorageInterface, path: str = CUSTOMERS_PATH):
        self.storage = storage
        self.path = path
        self._customers: Optional[Dict[str, Dict[str, Any]]] = None
        self._lock = asyncio.Lock()

    async def _load(self) -> Dict[str, Dict[str, Any]]:
        if self._customers is not None:
            return self._customers
        raw = await self.storage.load(self.path)
        customers: Dict[str, Dict[str, Any]] = {}
        if raw:
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, dict):
                    customers = parsed
            except json.JSONDecodeError:
                logger.error(f"Customer memory at {self.path} is corrupt, starting empty")
        self._customers = customers
        return customers

    async def _save(self) -> bool:
        content = json.dumps(self._customers or {}, indent=2, ensure_ascii=False)
        return await self.storage.save(self.path, content)

    async def get_customer(self, customer_id: Optional[str]) -> Optional[Dict[str, Any]]:
        """Known customer record, or None for an unknown or missing id."""
        key = customer_key(customer_id)
        if not key:
            return None
        customers = await self._load()
        record = customers.get(key)
        return dict(record) if record else None

    async def remember_customer(self, customer_id: str, name: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Record a visit. A stored name is never replaced."""
        key = customer_key(customer_id)
        if not key:
            return None
        async with self._lock:
            customers = await self._load()
            now = _now_iso()
            record = customers.setdefault(key, {
                "id": key,
                "name": None,
                "preferences": {},
                "first_seen": now,
                "visit_count": 0,
            })
            if name and not record.get("name"):
                record["name"] = name
            record["visit_count"] = int(record.get("visit_count") or 0) + 1
            record["last_seen"] = now
            await self._save()
            return dict(record)

    async def learn_from_conversation(self, customer_id: Optional[str], texts: List[str]) -> Dict[str, str]:
        """
        Merge preferences found in ``texts`` into the customer's record.
        Returns the newly detected preferences.
        """
        key = customer_key(customer_id)
        preferences = extract_preferences(texts)
        if not key or not preferences:
            return preferences
        async with self._lock:
            customers = await self._load()
            record = customers.get(key)
            if record is None:
                return preferences
            record.setdefault("preferences", {}).update(preferences)
            record["last_seen"] = _now_iso()
            await self._save()
        logger.debug(
            "Learned customer preferences",
            extra={"extra_fields": {"preferences": sorted(preferences)}}
        )
        return preferences

    async def forget_customer(self, customer_id: str) -> bool:
        """Delete a customer's record. Returns False if there was none."""
        key = customer_key(customer_id)
        async with self._lock:
            customers = await self._load()
            if customers.pop(key, None) is None:
                return False
            if not await self._save():
                logger.error("Customer record removed in memory but not persisted")
        logger.info("Customer record deleted")
        return True

    async def all_customers(self) -> List[Dict[str, Any]]:
        customers = await self._load()
        return [{"id": key, **record} for key, record in customers.items()]
