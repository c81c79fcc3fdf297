"""
Event Service - cultural events and ticket purchases
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from heritage_lanka.config.settings import PaymentSettings, get_settings
from heritage_lanka.core.clock import Clock, system_clock
from heritage_lanka.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PreconditionFailedError,
    ValidationFailedError,
)
from heritage_lanka.models.event import Event
from heritage_lanka.models.payment import Payment, PaymentStatus
from heritage_lanka.services.checkout_client import CheckoutClient, CheckoutProcessor
from heritage_lanka.services.payment_service import CheckoutResult

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "venue", "event_date", "ticket_price", "ticket_count")


class EventService:
    """Admin-managed events; travelers buy tickets through checkout"""

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

    def create_event(self, **fields: Any) -> Event:
        self._validate(fields)
        event = Event(**{key: fields[key] for key in EDITABLE_FIELDS if key in fields})
        self.db.add(event)
        self.db.commit()
        self.db.refresh(event)
        logger.info(f"Created event {event.id}", extra={"event_id": event.id})
        return event

    def update_event(self, event_id: int, changes: Dict[str, Any]) -> Event:
        event = self.get_event(event_id)
        updates = {key: value for key, value in changes.items() if key in EDITABLE_FIELDS and value is not None}
        self._validate(updates)
        for key, value in updates.items():
            setattr(event, key, value)
        self.db.commit()
        self.db.refresh(event)
        return event

    def get_event(self, event_id: int) -> Event:
        event = self.db.get(Event, event_id)
        if event is None:
            raise NotFoundError("Event", event_id)
        return event

    def list_upcoming_events(self, limit: int = 50) -> List[Event]:
        """Events that have not happened yet, soonest first"""
        stmt = (
            select(Event)
            .where(Event.event_date >= self.clock.now())
            .order_by(Event.event_date.asc(), Event.id.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def purchase_tickets(self, event_id: int, traveler_id: int, quantity: int) -> CheckoutResult:
        """
        Open a checkout for ``quantity`` tickets.

        Tickets are only taken off the event once the checkout completes
        (see ``PaymentService.mark_paid``).

        Args:
            event_id: Event ID
            traveler_id: Buying traveler's profile ID
            quantity: Number of tickets, at least 1

        Returns:
            Pending payment and the hosted checkout URL
        """
        if quantity < 1:
            raise ValidationFailedError("Quantity must be at least 1", details={"quantity": quantity})

        event = self.get_event(event_id)
        if event.event_date < self.clock.now():
            raise PreconditionFailedError("Event has already taken place", details={"event_id": event.id})
        if quantity > event.ticket_count:
            raise PreconditionFailedError(
                "Not enough tickets available",
                details={"event_id": event.id, "requested": quantity, "available": event.ticket_count},
            )

        amount = round(event.ticket_price * quantity, 2)
        session = self._checkout().create_session(
            amount=amount,
            description=f"{event.title} x {quantity}",
            metadata={"event_id": str(event.id), "traveler_id": str(traveler_id), "quantity": str(quantity)},
            success_url=self.settings.success_url,
            cancel_url=self.settings.cancel_url,
        )

        payment = Payment(
            event_id=event.id,
            traveler_id=traveler_id,
            amount=amount,
            currency=self.settings.currency,
            status=PaymentStatus.PENDING,
            checkout_session_id=session.id,
            ticket_quantity=quantity,
        )
        self.db.add(payment)
        self.db.commit()
        self.db.refresh(payment)
        logger.info(
            f"Ticket checkout {payment.id} opened for event {event.id}",
            extra={"event_id": event.id, "payment_id": payment.id, "quantity": quantity},
        )
        return CheckoutResult(payment=payment, checkout_url=session.url)

    def cancel_ticket_purchase(self, payment_id: int, traveler_id: int) -> Payment:
        payment = self.db.execute(
            select(Payment).where(
                Payment.id == payment_id,
                Payment.traveler_id == traveler_id,
                Payment.event_id.is_not(None),
            )
        ).scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment", payment_id)
        if payment.status != PaymentStatus.PENDING:
            raise InvalidTransitionError(
                payment.status.value,
                PaymentStatus.CANCELLED.value,
                message="Only pending ticket purchases can be cancelled",
            )
        payment.status = PaymentStatus.CANCELLED
        self.db.commit()
        self.db.refresh(payment)
        return payment

    def _validate(self, fields: Dict[str, Any]) -> None:
        if fields.get("ticket_price") is not None and fields["ticket_price"] < 0:
            raise ValidationFailedError("Ticket price cannot be negative")
        if fields.get("ticket_count") is not None and fields["ticket_count"] < 0:
            raise ValidationFailedError("Ticket count cannot be negative")

    def _checkout(self) -> CheckoutProcessor:
        if self.checkout is None:
            self.checkout = CheckoutClient(self.settings)
        return self.checkout
