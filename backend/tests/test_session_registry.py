"""
Unit tests for the session registry.
"""

import pytest
from datetime import timedelta

from concierge.core.errors import UnknownSession
from concierge.core.session_registry import SessionRegistry
from concierge.models.session import Message, SessionSummary, utc_now

from helpers import tool_call


class TestGetOrCreate:
    """Tests for session creation and metadata merging."""

    def test_creates_session_once(self, registry):
        first = registry.get_or_create("wa_1", "whatsapp", {"sender_name": "Thandi"})
        second = registry.get_or_create("wa_1", "whatsapp")
        assert first is second
        assert len(registry) == 1
        assert first.channel == "whatsapp"

    def test_metadata_merge_keeps_existing_values(self, registry):
        registry.get_or_create("wa_1", "whatsapp", {"sender_name": "Thandi"})
        session = registry.get_or_create(
            "wa_1", "whatsapp", {"sender_name": "", "sender_phone": "+27821234567"}
        )
        assert session.metadata["sender_name"] == "Thandi"
        assert session.metadata["sender_phone"] == "+27821234567"

    def test_metadata_merge_does_not_overwrite(self, registry):
        registry.get_or_create("wa_1", "whatsapp", {"sender_name": "Thandi"})
        session = registry.get_or_create("wa_1", "whatsapp", {"sender_name": "Someone Else"})
        assert session.metadata["sender_name"] == "Thandi"

    def test_customer_name(self, registry):
        session = registry.get_or_create("wa_1", "whatsapp", {"sender_name": "Thandi"})
        assert session.customer_name == "Thandi"
        assert SessionSummary.from_session(session).customer_name == "Thandi"

    def test_unnamed_session_summary(self, registry):
        session = registry.get_or_create("wa_2", "whatsapp")
        summary = SessionSummary.from_session(session).model_dump(by_alias=True)
        assert summary["customerName"] == "Unknown"
        assert summary["messageCount"] == 0


class TestAppend:
    """Tests for message appends and retention."""

    def test_append_unknown_session_raises(self, registry):
        with pytest.raises(UnknownSession):
            registry.append("missing", Message(role="user", content="hi"))

    def test_append_updates_last_active(self, registry):
        session = registry.get_or_create("wa_1", "whatsapp")
        before = session.last_active_at
        registry.append("wa_1", Message(role="user", content="hi"))
        assert session.last_active_at >= before
        assert len(session.messages) == 1

    def test_timestamps_never_go_backwards(self, registry):
        registry.get_or_create("wa_1", "whatsapp")
        registry.append("wa_1", Message(role="user", content="first"))
        stale = Message(role="assistant", content="second", timestamp=utc_now() - timedelta(hours=1))
        registry.append("wa_1", stale)
        messages = registry.get("wa_1").messages
        assert messages[1].timestamp >= messages[0].timestamp

    def test_retention_drops_oldest(self):
        registry = SessionRegistry(retention=3)
        registry.get_or_create("wa_1", "whatsapp")
        for i in range(5):
            registry.append("wa_1", Message(role="user", content=f"m{i}"))
        contents = [m.content for m in registry.get("wa_1").messages]
        assert contents == ["m2", "m3", "m4"]

    def test_invalid_retention(self):
        with pytest.raises(ValueError):
            SessionRegistry(retention=0)


class TestRecentHistory:
    """Tests for model-context history."""

    def _fill(self, registry):
        registry.get_or_create("wa_1", "whatsapp")
        registry.append("wa_1", Message(role="user", content="I'd like to order"))
        registry.append("wa_1", Message(
            role="assistant", content=None, tool_calls=[tool_call("get_menu")]
        ))
        registry.append("wa_1", Message(
            role="tool", content='{"success": true}', tool_call_id="call_1", name="get_menu"
        ))
        registry.append("wa_1", Message(role="assistant", content="Here is our menu"))
        registry.append("wa_1", Message(role="user", content="Two naan please"))

    def test_excludes_tool_bookkeeping(self, registry):
        self._fill(registry)
        history = registry.recent_history("wa_1", 10)
        assert [m.role for m in history] == ["user", "assistant", "user"]

    def test_tool_call_with_text_is_excluded(self, registry):
        registry.get_or_create("wa_1", "whatsapp")
        registry.append("wa_1", Message(role="user", content="menu?"))
        registry.append("wa_1", Message(
            role="assistant", content="Let me check", tool_calls=[tool_call("get_menu")]
        ))
        registry.append("wa_1", Message(role="assistant", content="We have tea"))

        history = registry.recent_history("wa_1", 10)

        assert [(m.role, m.content) for m in history] == [("user", "menu?"), ("assistant", "We have tea")]

    def test_limit_keeps_most_recent_oldest_first(self, registry):
        self._fill(registry)
        history = registry.recent_history("wa_1", 2)
        assert [m.content for m in history] == ["Here is our menu", "Two naan please"]

    def test_zero_limit(self, registry):
        self._fill(registry)
        assert registry.recent_history("wa_1", 0) == []

    def test_idempotent_without_appends(self, registry):
        self._fill(registry)
        assert registry.recent_history("wa_1", 10) == registry.recent_history("wa_1", 10)

    def test_unknown_session_raises(self, registry):
        with pytest.raises(UnknownSession):
            registry.recent_history("missing", 10)

    def test_all_sessions(self, registry):
        registry.get_or_create("a", "feishu")
        registry.get_or_create("b", "whatsapp")
        assert {s.id for s in registry.all()} == {"a", "b"}
        assert "a" in registry
