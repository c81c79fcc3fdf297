"""
WhatsApp messaging client (Cloud API over httpx).
"""

import logging
import re
from typing import Optional, Protocol

import httpx

from heritage_lanka.config.settings import WhatsAppSettings, get_settings
from heritage_lanka.core.exceptions import UpstreamFailureError, ValidationFailedError

logger = logging.getLogger(__name__)

SERVICE_NAME = "whatsapp"


class Messenger(Protocol):
    def send_message(self, recipient: str, text: str) -> None:
        ...


def normalize_recipient(phone: Optional[str]) -> str:
    """Strip a phone number down to the digits WhatsApp expects (no '+')."""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) < 8:
        raise ValidationFailedError(f"Invalid recipient phone number: {phone!r}")
    return digits


class WhatsAppClient:
    """Sends text and image messages through the WhatsApp Cloud API."""

    def __init__(
        self,
        whatsapp_settings: Optional[WhatsAppSettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = whatsapp_settings or get_settings().whatsapp
        self.transport = transport

    def send_message(self, recipient: str, text: str) -> None:
        self._send(recipient, {"type": "text", "text": {"body": text}})

    def send_media(self, recipient: str, media_url: str, caption: Optional[str] = None) -> None:
        image = {"link": media_url}
        if caption:
            image["caption"] = caption
        self._send(recipient, {"type": "image", "image": image})

    def _send(self, recipient: str, message: dict) -> None:
        if not self.settings.phone_number_id or not self.settings.access_token:
            raise UpstreamFailureError(
                SERVICE_NAME, "WhatsApp client is not configured", retryable=False
            )

        payload = {
            "messaging_product": "whatsapp",
            "to": normalize_recipient(recipient),
            **message,
        }

        try:
            with httpx.Client(
                base_url=self.settings.api_url,
                headers={"Authorization": f"Bearer {self.settings.access_token}"},
                timeout=self.settings.timeout_seconds,
                transport=self.transport,
            ) as client:
                response = client.post(f"/{self.settings.phone_number_id}/messages", json=payload)
        except httpx.TimeoutException as exc:
            raise UpstreamFailureError(SERVICE_NAME, "WhatsApp API timed out") from exc
        except httpx.TransportError as exc:
            raise UpstreamFailureError(SERVICE_NAME, f"WhatsApp API unreachable: {exc}") from exc

        if response.status_code >= 400:
            raise UpstreamFailureError(
                SERVICE_NAME,
                f"WhatsApp API returned {response.status_code}",
                retryable=response.status_code >= 500 or response.status_code == 429,
                details={"status_code": response.status_code},
            )

        logger.debug(f"WhatsApp {message['type']} message sent to {payload['to']}")
