# /convers/services/whatsapp_service.py

import httpx
import logging
import re
import tenacity
from typing import Optional

from convers.config.settings import settings
from convers.utils.circuit_breaker import CircuitBreaker
from convers.utils.metrics import outbound_messages_counter

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 4096


def normalize_recipient(to_phone: str) -> str:
    """Keep digits and a leading '+' as accepted by the Cloud API."""
    clean_phone = re.sub(r"[^\d+]", "", to_phone or "")
    if not clean_phone.startswith("+"):
        clean_phone = "+" + clean_phone.lstrip("+")
    return clean_phone


class WhatsAppService:
    """Outbound client for one tenant's WhatsApp Cloud API phone number."""

    def __init__(
        self,
        access_token: str,
        phone_id: str,
        base_url: str = settings.whatsapp_api_base_url,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.access_token = access_token
        self.phone_id = phone_id
        self.base_url = base_url.rstrip("/")
        self.http_client = http_client or httpx.AsyncClient(timeout=settings.send_timeout_seconds)
        self.circuit_breaker = CircuitBreaker(f"whatsapp:{phone_id}")

    @tenacity.retry(
        retry=tenacity.retry_if_exception_type((httpx.RequestError, httpx.TimeoutException)),
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=2, min=1, max=10),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def resilient_api_call(self, func, *args, **kwargs):
        return await self.circuit_breaker.call(func, *args, **kwargs)

    @property
    def is_available(self) -> bool:
        return not self.circuit_breaker.is_open

    async def send_whatsapp_request(self, payload: dict) -> Optional[str]:
        """Generic method to send a request to the WhatsApp messages API."""
        to_phone = payload.get("to")
        try:
            url = f"{self.base_url}/{self.phone_id}/messages"
            headers = {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}
            response = await self.resilient_api_call(self.http_client.post, url, json=payload, headers=headers)

            if response.status_code == 200:
                message_id = (response.json().get("messages") or [{}])[0].get("id")
                logger.info(f"WhatsApp message sent to {to_phone}, wamid: {message_id}")
                outbound_messages_counter.labels(status="sent").inc()
                return message_id

            try:
                error_message = (response.json().get("error") or {}).get("message", "Unknown error")
            except ValueError:
                error_message = response.text[:200]
            logger.error(f"whatsapp_send_failed to {to_phone}: {response.status_code} - {error_message}")
            outbound_messages_counter.labels(status="rejected").inc()
            return None
        except Exception as e:
            logger.error(f"whatsapp_send_error to {to_phone}: {e!r}")
            outbound_messages_counter.labels(status="error").inc()
            return None

    async def send_message(self, to_phone: str, message: str) -> Optional[str]:
        """Sends a plain text message. Returns the message id, or None on failure."""
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": normalize_recipient(to_phone),
            "type": "text",
            "text": {"body": message[:MAX_TEXT_LENGTH]},
        }
        return await self.send_whatsapp_request(payload)

    async def close(self):
        await self.http_client.aclose()
