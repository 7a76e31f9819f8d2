"""
Unit tests for the gateway: per-session ordering, timeouts, delivery and
observer fan-out.
"""

import asyncio
import logging
import pytest
from unittest.mock import AsyncMock, MagicMock

from concierge.core.errors import UnknownSession
from concierge.gateway import ADMIN_CHANNEL, APOLOGY, Gateway, SessionTurnQueue, log_turn_failure


@pytest.fixture
def gateway(registry):
    return Gateway(registry)


def make_adapter():
    adapter = MagicMock()
    adapter.send = AsyncMock()
    adapter.send_to = AsyncMock()
    return adapter


def echo_handler(gateway, events=None, delay=0.0):
    async def handler(turn):
        if events is not None:
            events.append(("start", turn.text))
        await asyncio.sleep(delay)
        if events is not None:
            events.append(("end", turn.text))
        reply = f"re: {turn.text}"
        await gateway.send_response(turn.channel, turn.session_id, reply)
        return reply
    return handler


class TestRouting:
    """Tests for route_message and per-session serialization."""

    @pytest.mark.asyncio
    async def test_session_created_immediately(self, gateway, registry):
        gateway.set_turn_handler(echo_handler(gateway))
        future = gateway.route_message("whatsapp", "wa_1", "Hi", {"sender_name": "Thandi"})
        assert "wa_1" in registry
        assert registry.get("wa_1").customer_name == "Thandi"
        assert await future == "re: Hi"

    @pytest.mark.asyncio
    async def test_same_session_turns_do_not_overlap(self, gateway, registry):
        events = []
        gateway.set_turn_handler(echo_handler(gateway, events, delay=0.02))

        first = gateway.route_message("whatsapp", "wa_1", "one")
        second = gateway.route_message("whatsapp", "wa_1", "two")
        await asyncio.gather(first, second)

        assert events == [("start", "one"), ("end", "one"), ("start", "two"), ("end", "two")]
        messages = registry.get("wa_1").messages
        assert [(m.role, m.content) for m in messages] == [
            ("user", "one"),
            ("assistant", "re: one"),
            ("user", "two"),
            ("assistant", "re: two"),
        ]

    @pytest.mark.asyncio
    async def test_different_sessions_run_concurrently(self, gateway):
        b_started = asyncio.Event()

        async def handler(turn):
            if turn.session_id == "a":
                # Only finishes if session b is not stuck behind session a
                await asyncio.wait_for(b_started.wait(), timeout=1)
            else:
                b_started.set()
            await gateway.send_response(turn.channel, turn.session_id, "ok")
            return "ok"

        gateway.set_turn_handler(handler)
        results = await asyncio.gather(
            gateway.route_message("whatsapp", "a", "hi"),
            gateway.route_message("whatsapp", "b", "hi"),
        )
        assert results == ["ok", "ok"]

    @pytest.mark.asyncio
    async def test_no_handler_leaves_message_unanswered(self, gateway, registry):
        assert await gateway.route_message("whatsapp", "wa_1", "Hi") is None
        assert [m.role for m in registry.get("wa_1").messages] == ["user"]


class TestTurnFailures:
    """Timeouts and handler errors end in an apology."""

    @pytest.mark.asyncio
    async def test_turn_timeout_sends_apology_and_frees_queue(self, registry):
        gateway = Gateway(registry, turn_timeout=0.05)
        adapter = make_adapter()
        gateway.register_channel("whatsapp", adapter)

        async def handler(turn):
            if turn.text == "slow":
                await asyncio.sleep(5)
            await gateway.send_response(turn.channel, turn.session_id, "fast reply")
            return "fast reply"

        gateway.set_turn_handler(handler)
        slow = gateway.route_message("whatsapp", "wa_1", "slow")
        fast = gateway.route_message("whatsapp", "wa_1", "quick")

        assert await slow == APOLOGY
        assert await fast == "fast reply"
        adapter.send.assert_any_await("wa_1", APOLOGY)
        contents = [m.content for m in registry.get("wa_1").messages]
        assert contents == ["slow", APOLOGY, "quick", "fast reply"]

    @pytest.mark.asyncio
    async def test_handler_exception_sends_apology(self, gateway, registry):
        async def handler(turn):
            raise RuntimeError("connection string leaked")

        gateway.set_turn_handler(handler)
        reply = await gateway.route_message("whatsapp", "wa_1", "Hi")

        assert reply == APOLOGY
        assert registry.get("wa_1").messages[-1].content == APOLOGY

    @pytest.mark.asyncio
    async def test_no_double_reply_when_already_answered(self, gateway, registry):
        async def handler(turn):
            await gateway.send_response(turn.channel, turn.session_id, "Here you go")
            raise RuntimeError("failed after replying")

        gateway.set_turn_handler(handler)
        await gateway.route_message("whatsapp", "wa_1", "Hi")

        assert [m.content for m in registry.get("wa_1").messages] == ["Hi", "Here you go"]

    @pytest.mark.asyncio
    async def test_background_turn_failure_is_logged(self, gateway, caplog):
        gateway.broadcast = AsyncMock(side_effect=RuntimeError("observer feed down"))
        gateway.set_turn_handler(AsyncMock(return_value=None))

        with caplog.at_level(logging.ERROR, logger="concierge.gateway.gateway"):
            turn = gateway.route_message("whatsapp", "wa_1", "Hi")
            turn.add_done_callback(log_turn_failure("wa_1"))
            with pytest.raises(RuntimeError):
                await turn
            await asyncio.sleep(0)

        record = next(r for r in caplog.records if r.getMessage().startswith("Background turn failed"))
        assert record.extra_fields["session_id"] == "wa_1"
        assert "observer feed down" in record.getMessage()

    @pytest.mark.asyncio
    async def test_cancelled_background_turn_is_not_logged(self, caplog):
        future = asyncio.get_running_loop().create_future()
        future.cancel()
        with caplog.at_level(logging.ERROR, logger="concierge.gateway.gateway"):
            log_turn_failure("wa_1")(future)
        assert caplog.records == []


class TestDelivery:
    """Tests for send_response and deliver."""

    @pytest.mark.asyncio
    async def test_reply_goes_to_originating_adapter(self, gateway, registry):
        adapter = make_adapter()
        gateway.register_channel("feishu", adapter)
        registry.get_or_create("feishu_oc_1", "feishu")

        assert await gateway.send_response("feishu", "feishu_oc_1", "Hello") is True
        adapter.send.assert_awaited_once_with("feishu_oc_1", "Hello")

    @pytest.mark.asyncio
    async def test_unregistered_channel_records_only(self, gateway, registry):
        registry.get_or_create("web_1", "web")
        assert await gateway.send_response("web", "web_1", "Hello") is False
        assert registry.get("web_1").messages[-1].content == "Hello"

    @pytest.mark.asyncio
    async def test_adapter_failure_is_contained(self, gateway, registry):
        adapter = make_adapter()
        adapter.send.side_effect = ConnectionError("socket closed")
        gateway.register_channel("whatsapp", adapter)
        registry.get_or_create("wa_1", "whatsapp")

        assert await gateway.send_response("whatsapp", "wa_1", "Hello") is False
        assert registry.get("wa_1").messages[-1].content == "Hello"

    @pytest.mark.asyncio
    async def test_send_response_unknown_session(self, gateway):
        with pytest.raises(UnknownSession):
            await gateway.send_response("whatsapp", "missing", "Hello")

    @pytest.mark.asyncio
    async def test_re_registration_replaces_adapter(self, gateway, registry):
        old, new = make_adapter(), make_adapter()
        gateway.register_channel("whatsapp", old)
        gateway.register_channel("whatsapp", new)
        registry.get_or_create("wa_1", "whatsapp")

        await gateway.send_response("whatsapp", "wa_1", "Hello")

        old.send.assert_not_awaited()
        new.send.assert_awaited_once()
        assert gateway.channel_names == ["whatsapp"]

    @pytest.mark.asyncio
    async def test_deliver_to_raw_address(self, gateway, registry):
        adapter = make_adapter()
        gateway.register_channel("feishu", adapter)

        assert await gateway.deliver("feishu", "ou_owner", "New order") is True
        adapter.send_to.assert_awaited_once_with("ou_owner", "New order")
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_deliver_failures(self, gateway):
        assert await gateway.deliver("sms", "+27821234567", "Hi") is False

        adapter = make_adapter()
        adapter.send_to.side_effect = RuntimeError("rate limited")
        gateway.register_channel("feishu", adapter)
        assert await gateway.deliver("feishu", "oc_1", "Hi") is False


class TestAdminInjection:
    """Owner messages injected into customer sessions."""

    @pytest.mark.asyncio
    async def test_unknown_session_rejected(self, gateway, registry):
        with pytest.raises(UnknownSession):
            gateway.inject_admin_message("missing", "Hello")
        assert "missing" not in registry

    @pytest.mark.asyncio
    async def test_reply_goes_out_on_session_channel(self, gateway, registry):
        adapter = make_adapter()
        gateway.register_channel("whatsapp", adapter)
        gateway.set_turn_handler(echo_handler(gateway))
        registry.get_or_create("wa_1", "whatsapp", {"sender_name": "Thandi"})

        seen = []
        original = gateway._turn_handler

        async def spy(turn):
            seen.append(turn.channel)
            return await original(turn)

        gateway.set_turn_handler(spy)
        reply = await gateway.inject_admin_message("wa_1", "Your table is ready")

        assert seen == [ADMIN_CHANNEL]
        assert reply == "re: Your table is ready"
        adapter.send.assert_awaited_once_with("wa_1", "re: Your table is ready")
        session = registry.get("wa_1")
        assert session.channel == "whatsapp"
        assert session.metadata["sender_name"] == "Thandi"


class TestObservers:
    """Observer fan-out."""

    @pytest.mark.asyncio
    async def test_observers_receive_incoming_and_outgoing(self, gateway):
        observer = AsyncMock()
        gateway.add_observer(observer)
        gateway.set_turn_handler(echo_handler(gateway))

        await gateway.route_message("whatsapp", "wa_1", "Hi", {"sender_name": "Thandi"})

        events = [call.args[0] for call in observer.await_args_list]
        assert [e["type"] for e in events] == ["incoming", "outgoing"]
        assert events[0]["sessionId"] == "wa_1"
        assert events[0]["senderName"] == "Thandi"
        assert events[0]["message"] == "Hi"
        assert events[1]["response"] == "re: Hi"
        assert "timestamp" in events[1]

    @pytest.mark.asyncio
    async def test_failing_observer_is_dropped(self, gateway):
        healthy = AsyncMock()
        broken = AsyncMock(side_effect=ConnectionError("client went away"))
        gateway.add_observer(broken)
        gateway.add_observer(healthy)
        gateway.set_turn_handler(echo_handler(gateway))

        reply = await gateway.route_message("whatsapp", "wa_1", "Hi")

        assert reply == "re: Hi"
        assert gateway.observer_count == 1
        assert healthy.await_count == 2
        assert broken.await_count == 1

    @pytest.mark.asyncio
    async def test_remove_observer(self, gateway):
        observer = AsyncMock()
        gateway.add_observer(observer)
        gateway.remove_observer(observer)
        gateway.remove_observer(observer)
        assert gateway.observer_count == 0

    def test_sessions_snapshot(self, gateway, registry):
        registry.get_or_create("wa_1", "whatsapp", {"sender_name": "Thandi"})
        wire = gateway.sessions_snapshot().to_wire()
        assert wire["type"] == "sessions"
        assert wire["sessions"][0]["customerName"] == "Thandi"


class TestTurnQueue:
    """Direct tests for the per-session queue."""

    @pytest.mark.asyncio
    async def test_job_exception_propagates_to_future(self):
        queue = SessionTurnQueue()

        async def fail():
            raise ValueError("boom")

        async def succeed():
            return 42

        failed = queue.submit("s", fail)
        after = queue.submit("s", succeed)

        with pytest.raises(ValueError):
            await failed
        assert await after == 42
        assert not queue.is_busy("s")

    @pytest.mark.asyncio
    async def test_close_cancels_pending(self):
        queue = SessionTurnQueue()
        started = asyncio.Event()

        async def block():
            started.set()
            await asyncio.sleep(5)

        running = queue.submit("s", block)
        waiting = queue.submit("s", block)
        await started.wait()
        await queue.close()

        assert running.cancelled()
        assert waiting.cancelled()
        with pytest.raises(RuntimeError):
            queue.submit("s", block)
