"""Delivery channel interface."""

from typing import Protocol


class DeliveryChannel(Protocol):
    """
    Relays message text to an external address.

    Failure is an expected outcome and is reported as False, never raised.
    """

    async def relay(self, address: str, text: str) -> bool:
        ...
