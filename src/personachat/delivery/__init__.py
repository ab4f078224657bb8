"""Out-of-band delivery channels."""

from .base import DeliveryChannel
from .green_api import GreenApiChannel, format_phone_number

__all__ = [
    "DeliveryChannel",
    "GreenApiChannel",
    "format_phone_number",
]
