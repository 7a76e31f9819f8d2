"""
Owner Notifications - Pushes order, booking, complaint and escalation alerts
to the business owner over a registered channel.
"""

import logging
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from ..gateway.gateway import Gateway

logger = logging.getLogger(__name__)


class OwnerNotifier:
    """
    Sends a text to the owner's address on the owner channel.
    With no channel or address configured, notifications are only logged.
    """

    def __init__(
        self,
        gateway: "Gateway",
        channel: Optional[str] = None,
        address: Optional[str] = None
    ):
        self.gateway = gateway
        self.channel = channel
        self.address = address

    @property
    def configured(self) -> bool:
        return bool(self.channel and self.address)

    async def notify(self, text: str) -> bool:
        """Deliver ``text`` to the owner. Returns True if it was handed to an adapter."""
        logger.info(
            f"Notifying owner: {text[:100]}",
            extra={"extra_fields": {"owner_channel": self.channel}}
        )
        if not self.configured:
            logger.debug("Owner channel not configured, notification logged only")
            return False
        return await self.gateway.deliver(self.channel, self.address, text)
