"""
Payment Service - trip checkout, webhook reconciliation and listings
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from heritage_lanka.config.settings import PaymentSettings, get_settings
from heritage_lanka.core.clock import Clock, system_clock
from heritage_lanka.core.exceptions import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from heritage_lanka.models.event import Event
from heritage_lanka.models.payment import Payment, PaymentStatus
from heritage_lanka.models.trip import Trip, TripStatus
from heritage_lanka.services.checkout_client import CheckoutClient, CheckoutProcessor

logger = logging.getLogger(__name__)

SESSION_COMPLETED = "checkout.session.completed"
SESSION_EXPIRED = "checkout.session.expired"


@dataclass
class CheckoutResult:
    payment: Payment
    checkout_url: str


def calculate_trip_amount(trip: Trip, payment_settings: Optional[PaymentSettings] = None) -> float:
    """
    Price a trip: distance and head count, plus a flat fee when guided.

    Args:
        trip: Trip with ``total_distance`` (km), ``number_of_people`` and ``needs_guide``
        payment_settings: Rates; defaults to configured settings

    Returns:
        Amount in the configured currency, rounded to 2 places
    """
    rates = payment_settings or get_settings().payments
    amount = (trip.total_distance or 0) * rates.rate_per_km
    amount += (trip.number_of_people or 0) * rates.rate_per_person
    if trip.needs_guide:
        amount += rates.guide_fee
    return round(amount, 2)


class PaymentService:
    """Creates checkout sessions and applies processor callbacks"""

    def __init__(
        self,
        db: Session,
        checkout: Optional[CheckoutProcessor] = None,
        clock: Clock = system_clock,
        payment_settings: Optional[PaymentSettings] = None,
    ):
        self.db = db
        self.checkout = checkout
        self.clock = clock
        self.settings = payment_settings or get_settings().payments

    def request_payment(self, trip_id: int, traveler_id: int) -> CheckoutResult:
        """
        Open a checkout session for a confirmed trip.

        A trip holds at most one payment; a cancelled one is reused for the
        retry. The payment row is only written after the processor returns
        a session, so a processor failure leaves nothing behind.
        """
        trip = self.db.execute(
            select(Trip)
            .where(Trip.id == trip_id, Trip.traveler_id == traveler_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if trip is None:
            raise NotFoundError("Trip", trip_id)
        if trip.status != TripStatus.CONFIRMED:
            raise InvalidTransitionError(
                trip.status.value,
                "PAYMENT",
                message=f"Cannot initiate payment for trip with status {trip.status.value}. "
                        "Trip must be CONFIRMED.",
            )

        payment = self.db.execute(
            select(Payment).where(Payment.trip_id == trip.id)
        ).scalar_one_or_none()
        if payment is not None and payment.status != PaymentStatus.CANCELLED:
            raise ConflictError(
                "Payment already exists for this trip",
                details={"trip_id": trip.id, "payment_status": payment.status.value},
            )

        amount = calculate_trip_amount(trip, self.settings)
        session = self._checkout().create_session(
            amount=amount,
            description=f"Heritage Lanka trip #{trip.id}",
            metadata={"trip_id": str(trip.id), "traveler_id": str(traveler_id)},
            success_url=self.settings.success_url,
            cancel_url=self.settings.cancel_url,
        )

        if payment is None:
            payment = Payment(trip_id=trip.id, traveler_id=traveler_id)
            self.db.add(payment)
        payment.amount = amount
        payment.currency = self.settings.currency
        payment.status = PaymentStatus.PENDING
        payment.checkout_session_id = session.id
        payment.paid_at = None
        self.db.commit()
        self.db.refresh(payment)

        logger.info(
            f"Payment {payment.id} pending for trip {trip.id}",
            extra={"trip_id": trip.id, "payment_id": payment.id, "amount": amount},
        )
        return CheckoutResult(payment=payment, checkout_url=session.url)

    def mark_paid(self, session_id: str) -> Payment:
        """
        Record a completed checkout. Safe to call again for the same session.

        Event ticket purchases also take the tickets out of the event's
        remaining count, never going below zero. A ticket purchase the traveler
        already cancelled stays CANCELLED and keeps its tickets on sale. A
        cancelled trip payment is still recorded as PAID so it can be refunded.
        """
        payment = self._get_by_session(session_id)
        if payment.status in (PaymentStatus.PAID, PaymentStatus.RELEASED):
            logger.info(
                f"Payment {payment.id} already settled; ignoring duplicate completion",
                extra={"payment_id": payment.id},
            )
            return payment
        settled = [PaymentStatus.PAID, PaymentStatus.RELEASED]
        if payment.status == PaymentStatus.CANCELLED:
            logger.warning(
                f"Completion received for cancelled payment {payment.id}",
                extra={"payment_id": payment.id, "event_id": payment.event_id},
            )
            if payment.event_id is not None:
                return payment
        if payment.event_id is not None:
            settled.append(PaymentStatus.CANCELLED)

        result = self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status.not_in(settled))
            .values(status=PaymentStatus.PAID, paid_at=self.clock.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount and payment.event_id is not None:
            event = self.db.get(Event, payment.event_id)
            if event is not None:
                event.ticket_count = max(0, event.ticket_count - (payment.ticket_quantity or 0))

        self.db.commit()
        self.db.refresh(payment)
        logger.info(
            f"Payment {payment.id} marked paid",
            extra={"payment_id": payment.id, "trip_id": payment.trip_id, "event_id": payment.event_id},
        )
        return payment

    def expire_session(self, session_id: str) -> Payment:
        """An abandoned checkout: PENDING -> CANCELLED, anything else untouched"""
        payment = self._get_by_session(session_id)
        self.db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == PaymentStatus.PENDING)
            .values(status=PaymentStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def handle_webhook_event(self, event: Dict[str, Any]) -> Optional[Payment]:
        """
        Dispatch a verified processor event.

        Args:
            event: Parsed webhook body with ``type`` and ``data.object.id``

        Returns:
            Affected payment, or None for event types that are ignored
        """
        if not isinstance(event, dict):
            raise ValidationFailedError("Webhook body must be a JSON object")
        event_type = event.get("type")
        data = event.get("data")
        session = data.get("object") if isinstance(data, dict) else None
        session_id = session.get("id") if isinstance(session, dict) else None

        if event_type == SESSION_COMPLETED and session_id:
            return self.mark_paid(session_id)
        if event_type == SESSION_EXPIRED and session_id:
            return self.expire_session(session_id)

        logger.debug(f"Ignoring webhook event {event_type}")
        return None

    def get_trip_payment(self, trip_id: int, traveler_id: int) -> Payment:
        payment = self.db.execute(
            select(Payment)
            .join(Trip, Payment.trip_id == Trip.id)
            .where(Trip.id == trip_id, Trip.traveler_id == traveler_id)
        ).scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment", message="No payment for this trip")
        return payment

    def list_traveler_payments(self, traveler_id: int) -> List[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.traveler_id == traveler_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_payments(
        self, status: Optional[PaymentStatus] = None, limit: int = 100, offset: int = 0
    ) -> List[Payment]:
        stmt = select(Payment)
        if status:
            stmt = stmt.where(Payment.status == status)
        stmt = stmt.order_by(Payment.created_at.desc(), Payment.id.desc()).limit(limit).offset(offset)
        return list(self.db.execute(stmt).scalars().all())

    def _get_by_session(self, session_id: str) -> Payment:
        payment = self.db.execute(
            select(Payment)
            .where(Payment.checkout_session_id == session_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment", session_id, message="Unknown checkout session")
        return payment

    def _checkout(self) -> CheckoutProcessor:
        if self.checkout is None:
            self.checkout = CheckoutClient(self.settings)
        return self.checkout
