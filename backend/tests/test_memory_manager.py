"""
Unit tests for customer memory and the logging helpers.
"""

import json
import logging
import pytest

from concierge.core.logging_config import (
    JSONFormatter,
    LoggerAdapter,
    filter_sensitive_data,
    truncate_large_data,
)
from concierge.core.memory_manager import (
    CUSTOMERS_PATH,
    CustomerMemory,
    customer_key,
    extract_preferences,
    normalize_phone,
)


class TestPreferenceExtraction:
    """Tests for passive preference detection."""

    def test_normalize_phone(self):
        assert normalize_phone("+27 82-123 4567") == "+27821234567"
        assert normalize_phone(None) == ""

    def test_customer_key(self):
        assert customer_key("+27 (82) 123-4567") == "+27821234567"
        assert customer_key(" ou_7d8a6e ") == "ou_7d8a6e"
        assert customer_key(None) == ""

    def test_dietary_and_spice(self):
        prefs = extract_preferences(["I'm Vegetarian", "Make it SPICY please"])
        assert prefs == {"dietary": "vegetarian/vegan", "spice_level": "prefers spicy"}

    def test_allergy(self):
        assert extract_preferences(["My allergy is shellfish"]) == {"allergy": "shellfish"}

    def test_allergy_without_target(self):
        assert extract_preferences(["I'm allergic"]) == {}

    def test_nothing_found(self):
        assert extract_preferences(["Table for two at 7", None]) == {}


class TestCustomerMemory:
    """Tests for the JSON-backed customer store."""

    @pytest.mark.asyncio
    async def test_unknown_customer(self, storage):
        memory = CustomerMemory(storage)
        assert await memory.get_customer("+27821234567") is None
        assert await memory.get_customer("") is None

    @pytest.mark.asyncio
    async def test_visits_accumulate_and_name_is_kept(self, storage):
        memory = CustomerMemory(storage)
        await memory.remember_customer("+27 82 123 4567", "Thandi")
        record = await memory.remember_customer("+27821234567", "Someone Else")

        assert record["name"] == "Thandi"
        assert record["visit_count"] == 2
        assert record["first_seen"] <= record["last_seen"]

    @pytest.mark.asyncio
    async def test_learning_requires_known_customer(self, storage):
        memory = CustomerMemory(storage)
        found = await memory.learn_from_conversation("+27821234567", ["I'm vegan"])
        assert found == {"dietary": "vegetarian/vegan"}
        assert await memory.get_customer("+27821234567") is None

    @pytest.mark.asyncio
    async def test_preferences_persist_across_instances(self, storage):
        memory = CustomerMemory(storage)
        await memory.remember_customer("+27821234567", "Thandi")
        await memory.learn_from_conversation("+27821234567", ["extra spicy for me"])

        reloaded = CustomerMemory(storage)
        customer = await reloaded.get_customer("+27821234567")
        assert customer["preferences"] == {"spice_level": "prefers spicy"}
        assert len(await reloaded.all_customers()) == 1

    @pytest.mark.asyncio
    async def test_channel_sender_id(self, storage):
        memory = CustomerMemory(storage)
        await memory.remember_customer("ou_abc", "Thandi")
        await memory.learn_from_conversation("ou_abc", ["I'm vegetarian"])

        customer = await CustomerMemory(storage).get_customer("ou_abc")
        assert customer["id"] == "ou_abc"
        assert customer["preferences"] == {"dietary": "vegetarian/vegan"}

    @pytest.mark.asyncio
    async def test_forget_customer(self, storage):
        memory = CustomerMemory(storage)
        await memory.remember_customer("+27821234567", "Thandi")

        assert await memory.forget_customer("+27 82 123 4567") is True
        assert await memory.forget_customer("+27821234567") is False
        assert await CustomerMemory(storage).all_customers() == []

    @pytest.mark.asyncio
    async def test_corrupt_file_starts_empty(self, storage):
        await storage.save(CUSTOMERS_PATH, "[not json")
        memory = CustomerMemory(storage)
        assert await memory.all_customers() == []

    @pytest.mark.asyncio
    async def test_returned_records_are_copies(self, storage):
        memory = CustomerMemory(storage)
        await memory.remember_customer("+27821234567", "Thandi")
        customer = await memory.get_customer("+27821234567")
        customer["name"] = "Changed"
        assert (await memory.get_customer("+27821234567"))["name"] == "Thandi"


class TestLoggingHelpers:
    """Tests for log formatting and redaction."""

    def test_filter_sensitive_data(self):
        data = {
            "provider": "deepseek",
            "api_key": "sk-123",
            "nested": {"Authorization": "Bearer abc", "items": [{"token": "x"}]},
        }
        filtered = filter_sensitive_data(data)
        assert filtered["provider"] == "deepseek"
        assert filtered["api_key"] == "***FILTERED***"
        assert filtered["nested"]["Authorization"] == "***FILTERED***"
        assert filtered["nested"]["items"][0]["token"] == "***FILTERED***"

    def test_truncate_large_data(self):
        assert truncate_large_data("short") == "short"
        truncated = truncate_large_data("x" * 600, max_length=100)
        assert truncated.startswith("x" * 100)
        assert "total length: 600" in truncated

    def test_json_formatter_merges_extra_fields(self):
        record = logging.LogRecord(
            "concierge.test", logging.INFO, __file__, 10, "Turn done", None, None
        )
        record.extra_fields = {"session_id": "wa_1", "admin_token": "secret"}

        payload = json.loads(JSONFormatter().format(record))

        assert payload["message"] == "Turn done"
        assert payload["level"] == "INFO"
        assert payload["session_id"] == "wa_1"
        assert payload["admin_token"] == "***FILTERED***"

    def test_logger_adapter_binds_context(self, caplog):
        log = LoggerAdapter(logging.getLogger("concierge.test"), {"session_id": "wa_1"})
        with caplog.at_level(logging.INFO, logger="concierge.test"):
            log.info("Turn started", extra={"extra_fields": {"channel": "whatsapp"}})

        record = caplog.records[-1]
        assert record.extra_fields == {"session_id": "wa_1", "channel": "whatsapp"}
