"""
Checkout processor client - creates hosted payment sessions and verifies
webhook signatures. Speaks the Stripe Checkout REST API over httpx.
"""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import httpx

from heritage_lanka.config.settings import PaymentSettings, get_settings
from heritage_lanka.core.exceptions import UpstreamFailureError, ValidationFailedError

logger = logging.getLogger(__name__)

SERVICE_NAME = "checkout"


@dataclass
class CheckoutSession:
    id: str
    url: str


class CheckoutProcessor(Protocol):
    def create_session(
        self,
        amount: float,
        description: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        ...


class CheckoutClient:
    """Hosted checkout sessions via the processor's REST API."""

    def __init__(
        self,
        payment_settings: Optional[PaymentSettings] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.settings = payment_settings or get_settings().payments
        self.transport = transport

    def create_session(
        self,
        amount: float,
        description: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        """
        Create a one-line-item checkout session.

        Args:
            amount: Amount in major currency units
            description: Line item name shown on the checkout page
            metadata: Echoed back on the webhook event
            success_url: Redirect after payment
            cancel_url: Redirect when the traveler abandons checkout

        Returns:
            Session id and hosted checkout URL
        """
        if not self.settings.secret_key:
            raise UpstreamFailureError(
                SERVICE_NAME, "Checkout processor is not configured", retryable=False
            )

        form = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": self.settings.currency,
            "line_items[0][price_data][unit_amount]": str(int(round(amount * 100))),
            "line_items[0][price_data][product_data][name]": description,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = str(value)

        try:
            with httpx.Client(
                base_url=self.settings.api_url,
                auth=(self.settings.secret_key, ""),
                timeout=self.settings.timeout_seconds,
                transport=self.transport,
            ) as client:
                response = client.post("/checkout/sessions", data=form)
        except httpx.TimeoutException as exc:
            raise UpstreamFailureError(SERVICE_NAME, "Checkout processor timed out") from exc
        except httpx.TransportError as exc:
            raise UpstreamFailureError(SERVICE_NAME, f"Checkout processor unreachable: {exc}") from exc

        if response.status_code >= 500:
            raise UpstreamFailureError(
                SERVICE_NAME,
                f"Checkout processor returned {response.status_code}",
                details={"status_code": response.status_code},
            )
        if response.status_code >= 400:
            logger.error(
                f"Checkout session rejected: {response.status_code}",
                extra={"status_code": response.status_code, "body": response.text[:500]},
            )
            raise UpstreamFailureError(
                SERVICE_NAME,
                "Checkout processor rejected the session",
                retryable=False,
                details={"status_code": response.status_code},
            )

        data = response.json()
        logger.info(f"Created checkout session {data['id']}")
        return CheckoutSession(id=data["id"], url=data["url"])


def verify_webhook_signature(
    payload: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> None:
    """
    Check a ``t=<unix>,v1=<hex hmac>`` signature header.

    The signed message is ``"{t}.{payload}"`` under HMAC-SHA256 with the
    webhook secret. Raises ValidationFailedError on any mismatch.
    """
    if not secret:
        raise ValidationFailedError("Webhook secret not configured")
    if not signature_header:
        raise ValidationFailedError("Missing webhook signature")

    parts = {}
    signatures = []
    for item in signature_header.split(","):
        key, _, value = item.strip().partition("=")
        if key == "v1":
            signatures.append(value)
        else:
            parts[key] = value

    timestamp = parts.get("t")
    if not timestamp or not timestamp.isdigit() or not signatures:
        raise ValidationFailedError("Malformed webhook signature")

    current = time.time() if now is None else now
    if tolerance_seconds and abs(current - int(timestamp)) > tolerance_seconds:
        raise ValidationFailedError("Webhook signature timestamp outside tolerance")

    signed = timestamp.encode("utf-8") + b"." + payload
    expected = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise ValidationFailedError("Webhook signature mismatch")


def sign_webhook_payload(payload: bytes, secret: str, timestamp: int) -> str:
    """Build the signature header for ``payload``; used by tests and local replays."""
    signed = str(timestamp).encode("utf-8") + b"." + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"
