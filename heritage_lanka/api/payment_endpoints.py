"""
Checkout processor webhook
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from heritage_lanka.config.settings import get_settings
from heritage_lanka.core.clock import Clock, get_clock
from heritage_lanka.core.db import get_db
from heritage_lanka.core.exceptions import ValidationFailedError
from heritage_lanka.models.payment import Payment
from heritage_lanka.schemas.base import Envelope
from heritage_lanka.services.checkout_client import verify_webhook_signature
from heritage_lanka.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["payments"])


def process_webhook(
    payload: bytes, signature: Optional[str], db: Session, clock: Clock
) -> Optional[Payment]:
    """Verify the signature over the raw body, then parse and dispatch the event"""
    payments = get_settings().payments
    verify_webhook_signature(
        payload,
        signature,
        payments.webhook_secret,
        tolerance_seconds=payments.webhook_tolerance_seconds,
    )
    try:
        event = json.loads(payload)
    except ValueError as exc:
        raise ValidationFailedError("Webhook body is not valid JSON") from exc

    payment = PaymentService(db, clock=clock).handle_webhook_event(event)
    logger.info(
        f"Processed webhook {event.get('type')}",
        extra={"event_type": event.get("type"), "payment_id": payment.id if payment else None},
    )
    return payment


@router.post("/payments", response_model=Envelope[dict])
async def checkout_webhook(
    request: Request,
    signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """
    Receive checkout events. The raw body is read here; verification and the
    database work run in the threadpool like the other routes.
    """
    payload = await request.body()
    payment = await run_in_threadpool(process_webhook, payload, signature, db, clock)
    return Envelope(status="ok", data={"received": True, "payment_id": payment.id if payment else None})
