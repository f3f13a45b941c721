# app/infrastructure/external/twilio_client.py
"""
Twilio WhatsApp transport over the Messages REST API.

Phone numbers travel as ``whatsapp:+<e164>`` on the Twilio side and as bare
``+<e164>`` everywhere else in the app.
"""

import httpx
from loguru import logger

from app.core.config import settings
from app.core.errors import TransportError
from app.core.logging_config import mask_phone

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"
WHATSAPP_PREFIX = "whatsapp:"


def normalize_phone(sender_id: str | None) -> str:
    """``"whatsapp:+9198..."`` -> ``"+9198..."``."""
    value = (sender_id or "").strip()
    if value.lower().startswith(WHATSAPP_PREFIX):
        value = value[len(WHATSAPP_PREFIX):]
    return value.strip()


def to_whatsapp_address(phone: str) -> str:
    return phone if phone.startswith(WHATSAPP_PREFIX) else f"{WHATSAPP_PREFIX}{phone}"


class TwilioWhatsAppClient:
    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.account_sid = account_sid or settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or settings.TWILIO_AUTH_TOKEN
        self.from_number = from_number or settings.TWILIO_WHATSAPP_NUMBER
        self.timeout = timeout or settings.TRANSPORT_TIMEOUT_SECONDS
        self._http = http_client

        if not (self.account_sid and self.auth_token):
            logger.warning("Twilio credentials not configured; outbound messages will fail")

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"

    async def _post(self, data: dict) -> dict:
        if not (self.account_sid and self.auth_token):
            raise TransportError("Twilio client not initialized")

        auth = (self.account_sid, self.auth_token)
        try:
            if self._http is not None:
                resp = await self._http.post(self.messages_url, data=data, auth=auth)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(self.messages_url, data=data, auth=auth)
        except httpx.HTTPError as e:
            raise TransportError(f"Twilio request failed: {e}") from e

        if resp.status_code >= 400:
            raise TransportError(
                f"Twilio rejected message: {resp.status_code} {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp.json()

    async def send_message(self, to: str, body: str) -> str:
        """Send a text message; returns the Twilio message SID."""
        payload = await self._post({
            "From": to_whatsapp_address(self.from_number),
            "To": to_whatsapp_address(to),
            "Body": body,
        })
        sid = payload.get("sid", "")
        logger.info("Sent WhatsApp message to {}, SID: {}", mask_phone(to), sid)
        return sid

    async def send_message_with_media(self, to: str, body: str, media_url: str) -> str:
        payload = await self._post({
            "From": to_whatsapp_address(self.from_number),
            "To": to_whatsapp_address(to),
            "Body": body,
            "MediaUrl": media_url,
        })
        sid = payload.get("sid", "")
        logger.info("Sent WhatsApp media message to {}, SID: {}", mask_phone(to), sid)
        return sid

    async def fetch_media(self, media_url: str) -> bytes:
        """Download inbound media. Twilio media URLs need account auth and redirect."""
        try:
            if self._http is not None:
                resp = await self._http.get(
                    media_url, auth=(self.account_sid, self.auth_token), follow_redirects=True
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.get(
                        media_url, auth=(self.account_sid, self.auth_token), follow_redirects=True
                    )
        except httpx.HTTPError as e:
            raise TransportError(f"Media download failed: {e}") from e

        if resp.status_code >= 400:
            raise TransportError(f"Media download failed: {resp.status_code}", status_code=resp.status_code)
        return resp.content
