"""
Channel adapter interface used by the gateway.
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ChannelAdapter(Protocol):
    """
    Outbound side of a messaging channel. The inbound side calls
    ``Gateway.route_message`` from the adapter's own webhook or client loop.
    """

    async def send(self, session_id: str, text: str) -> None:
        """Deliver ``text`` to the conversation behind ``session_id``."""
        ...

    async def send_to(self, address: str, text: str) -> None:
        """Deliver ``text`` to a raw channel address, e.g. the owner's chat."""
        ...
