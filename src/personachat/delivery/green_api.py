"""WhatsApp relay through Green API."""

import logging
import re
from typing import Optional

import httpx

from ..config import settings

logger = logging.getLogger(__name__)


def format_phone_number(phone_number: str) -> str:
    """Strip everything but digits (international format without '+')."""
    return re.sub(r"\D", "", phone_number)


class GreenApiChannel:
    """
    Send WhatsApp messages via a Green API instance.

    Every method reports failure as False: missing credentials, transport
    errors, timeouts and unexpected responses are logged, not raised.
    """

    def __init__(
        self,
        instance_id: Optional[str] = None,
        api_token: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        self.instance_id = instance_id if instance_id is not None else settings.GREEN_API_INSTANCE_ID
        self.api_token = api_token if api_token is not None else settings.GREEN_API_TOKEN
        self.base_url = (base_url or settings.GREEN_API_URL).rstrip("/")
        self.timeout = timeout or settings.DELIVERY_TIMEOUT
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        return bool(self.instance_id and self.api_token)

    async def relay(self, address: str, text: str) -> bool:
        """
        Send a WhatsApp message.

        Args:
            address: Recipient's phone number in international format
            text: Message body

        Returns:
            True if Green API accepted the message
        """
        data = await self._call(
            "sendMessage",
            {"chatId": f"{format_phone_number(address)}@c.us", "message": text},
        )
        if data and data.get("idMessage"):
            logger.info(f"WhatsApp message {data['idMessage']} queued for {address}")
            return True

        logger.warning(f"Failed to send WhatsApp message to {address}: {data}")
        return False

    async def check_availability(self, phone_number: str) -> bool:
        """Check whether a phone number is registered with WhatsApp."""
        data = await self._call(
            "checkWhatsapp", {"phoneNumber": format_phone_number(phone_number)}
        )
        return bool(data and data.get("existsWhatsapp") is True)

    async def _call(self, method: str, payload: dict) -> Optional[dict]:
        if not self.configured:
            logger.error("Green API credentials are not configured")
            return None

        url = f"{self.base_url}/waInstance{self.instance_id}/{method}/{self.api_token}"
        try:
            if self._http_client is not None:
                response = await self._http_client.post(url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Green API {method} failed: {e}")
            return None

        return data if isinstance(data, dict) else None
