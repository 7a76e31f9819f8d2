"""
Gateway - Entry and exit point for every conversation.

Inbound messages from channel adapters are attached to a session and queued
as a turn on that session's run-to-completion queue. Replies are recorded,
broadcast to observers and forwarded to the originating adapter.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

from ..channels.base import ChannelAdapter
from ..core.errors import ChannelDeliveryError
from ..core.session_registry import SessionRegistry
from ..models.events import IncomingEvent, ObserverEvent, OutgoingEvent, SessionsSnapshot
from ..models.session import Message, SessionSummary, utc_now
from .turn_queue import SessionTurnQueue

logger = logging.getLogger(__name__)

ADMIN_CHANNEL = "admin"
APOLOGY = (
    "I apologize, but I encountered an issue processing your request. "
    "Please try again or contact us directly."
)

Observer = Callable[[Dict[str, Any]], Awaitable[None]]


@dataclass
class Turn:
    """One inbound customer message waiting to be answered."""
    channel: str
    session_id: str
    text: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    received_at: Any = field(default_factory=utc_now)


TurnHandler = Callable[[Turn], Awaitable[Optional[str]]]


def log_turn_failure(session_id: str) -> Callable[[asyncio.Future], None]:
    """Done-callback for turns nobody awaits: logs the failure with its session."""
    def _callback(future: asyncio.Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(
                f"Background turn failed: {str(error)}",
                exc_info=error,
                extra={"extra_fields": {"session_id": session_id, "error": str(error)}}
            )
    return _callback


class Gateway:
    """
    Routes messages between channel adapters, the session registry and the
    agent. Turns for one session never overlap; a turn that exceeds
    ``turn_timeout`` is cancelled and answered with an apology.
    """

    def __init__(self, registry: SessionRegistry, turn_timeout: Optional[float] = None):
        self.registry = registry
        self.turn_timeout = turn_timeout
        self.queue = SessionTurnQueue()
        self._channels: Dict[str, ChannelAdapter] = {}
        self._observers: List[Observer] = []
        self._turn_handler: Optional[TurnHandler] = None

    # Channels

    def register_channel(self, name: str, adapter: ChannelAdapter) -> None:
        """Register an adapter; a later registration for the same name replaces it."""
        if name in self._channels:
            logger.warning(f"Channel {name} re-registered, replacing previous adapter")
        self._channels[name] = adapter
        logger.info(f"Channel registered: {name}")

    def channel(self, name: str) -> Optional[ChannelAdapter]:
        return self._channels.get(name)

    @property
    def channel_names(self) -> List[str]:
        return list(self._channels.keys())

    def set_turn_handler(self, handler: TurnHandler) -> None:
        self._turn_handler = handler

    # Inbound

    def route_message(
        self,
        channel: str,
        session_id: str,
        text: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> "asyncio.Future[Optional[str]]":
        """
        Accept an inbound message and schedule its turn.

        The session is created immediately. The user message is appended when
        the turn starts, after any earlier turn for the session has finished.
        Returns a future that resolves to the reply text once the turn is done.
        """
        metadata = dict(metadata or {})
        if channel == ADMIN_CHANNEL:
            # Admin turns never create sessions or change their metadata
            self.registry.require(session_id)
        else:
            self.registry.get_or_create(session_id, channel, metadata)
        turn = Turn(channel=channel, session_id=session_id, text=text, metadata=metadata)

        logger.info(
            f"Message routed: {channel}/{session_id}",
            extra={"extra_fields": {
                "channel": channel,
                "session_id": session_id,
                "queued_behind": self.queue.pending(session_id),
            }}
        )
        return self.queue.submit(session_id, lambda: self._run_turn(turn))

    def inject_admin_message(self, session_id: str, text: str) -> "asyncio.Future[Optional[str]]":
        """
        Run a turn on an existing session on behalf of the business owner.

        Raises:
            UnknownSession: if the session does not exist
        """
        return self.route_message(ADMIN_CHANNEL, session_id, text, {"sender_name": "Admin"})

    async def _run_turn(self, turn: Turn) -> Optional[str]:
        session = self.registry.require(turn.session_id)
        self.registry.append(turn.session_id, Message(role="user", content=turn.text))
        await self.broadcast(IncomingEvent(
            channel=turn.channel,
            session_id=turn.session_id,
            sender_name=turn.metadata.get("sender_name") or session.customer_name,
            message=turn.text,
        ))

        if self._turn_handler is None:
            logger.warning(f"No turn handler registered, message on {turn.session_id} left unanswered")
            return None

        try:
            if self.turn_timeout:
                return await asyncio.wait_for(self._turn_handler(turn), timeout=self.turn_timeout)
            return await self._turn_handler(turn)
        except asyncio.TimeoutError:
            logger.error(
                f"Turn timed out after {self.turn_timeout}s",
                extra={"extra_fields": {"session_id": turn.session_id, "channel": turn.channel}}
            )
        except Exception as e:
            logger.error(
                f"Turn failed: {str(e)}",
                exc_info=True,
                extra={"extra_fields": {"session_id": turn.session_id, "error": str(e)}}
            )

        if self._answered(turn):
            return None
        await self.send_response(turn.channel, turn.session_id, APOLOGY)
        return APOLOGY

    def _answered(self, turn: Turn) -> bool:
        session = self.registry.get(turn.session_id)
        if session is None or not session.messages:
            return False
        last = session.messages[-1]
        return (
            last.role == "assistant"
            and bool(last.content)
            and not last.tool_calls
            and last.timestamp >= turn.received_at
        )

    # Outbound

    async def send_response(self, channel: str, session_id: str, text: str) -> bool:
        """
        Record the assistant reply, broadcast it and hand it to the adapter.
        Returns True if an adapter accepted the message.

        Replies to admin turns go out on the session's own channel.
        """
        session = self.registry.require(session_id)
        self.registry.append(session_id, Message(role="assistant", content=text))
        await self.broadcast(OutgoingEvent(channel=channel, session_id=session_id, response=text))

        target = session.channel if channel == ADMIN_CHANNEL else channel
        adapter = self._channels.get(target)
        if adapter is None:
            logger.debug(f"No adapter for channel {target}, reply recorded only")
            return False

        try:
            await adapter.send(session_id, text)
        except Exception as e:
            error = ChannelDeliveryError(target, session_id, str(e))
            logger.error(
                str(error),
                exc_info=True,
                extra={"extra_fields": {"channel": target, "session_id": session_id}}
            )
            return False
        return True

    async def deliver(self, channel: str, address: str, text: str) -> bool:
        """Send text to a raw address on a channel without touching any session."""
        adapter = self._channels.get(channel)
        if adapter is None:
            logger.warning(f"Cannot deliver to {channel}: channel not registered")
            return False
        try:
            await adapter.send_to(address, text)
        except Exception as e:
            error = ChannelDeliveryError(channel, address, str(e))
            logger.error(str(error), extra={"extra_fields": {"channel": channel}})
            return False
        return True

    # Observers

    def add_observer(self, observer: Observer) -> None:
        self._observers.append(observer)
        logger.info(f"Observer connected ({len(self._observers)} total)")

    def remove_observer(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)
            logger.info(f"Observer disconnected ({len(self._observers)} total)")

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    async def broadcast(self, event: ObserverEvent) -> None:
        """Send an event to every observer. Observers that fail are dropped."""
        if not self._observers:
            return
        payload = event.to_wire()
        for observer in list(self._observers):
            try:
                await observer(payload)
            except Exception as e:
                logger.warning(f"Dropping observer after send failure: {str(e)}")
                self.remove_observer(observer)

    def sessions_snapshot(self) -> SessionsSnapshot:
        return SessionsSnapshot(
            sessions=[SessionSummary.from_session(s) for s in self.registry.all()]
        )

    async def close(self) -> None:
        await self.queue.close()
        self._observers.clear()
