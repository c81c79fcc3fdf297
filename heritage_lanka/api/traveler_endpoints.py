"""
Traveler API endpoints - plans, trip lifecycle, payments, OTP and tickets
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from heritage_lanka.core.clock import Clock, get_clock
from heritage_lanka.core.db import get_db
from heritage_lanka.core.dependencies import (
    get_checkout_client,
    get_current_traveler,
    get_plan_generator,
)
from heritage_lanka.models.trip import TripStatus
from heritage_lanka.models.user import Traveler
from heritage_lanka.schemas.base import Envelope
from heritage_lanka.schemas.payment import CheckoutRead, PaymentRead
from heritage_lanka.schemas.plan import (
    AcceptPlanRequest,
    GeneratePlanRequest,
    ManualPlanRequest,
    PlanCreated,
)
from heritage_lanka.schemas.event import TicketPurchase
from heritage_lanka.schemas.trip import (
    GuideContactRead,
    OtpIssueRequest,
    OtpIssued,
    TripDetailRead,
    TripLocationRead,
    TripRead,
)
from heritage_lanka.services.checkout_client import CheckoutProcessor
from heritage_lanka.services.event_service import EventService
from heritage_lanka.services.payment_service import CheckoutResult, PaymentService
from heritage_lanka.services.plan_generator import PlanGenerator
from heritage_lanka.services.plan_ingestion import create_manual_plan, ingest_ai_plan
from heritage_lanka.services.trip_service import TripDetail, TripService
from heritage_lanka.services.verification_service import VerificationService

router = APIRouter(prefix="/traveler", tags=["traveler"])


def _trip_detail(detail: TripDetail) -> TripDetailRead:
    trip = detail.trip
    return TripDetailRead(
        **TripRead.model_validate(trip).model_dump(),
        ai_summary=trip.ai_summary,
        ai_recommendations=trip.ai_recommendations,
        feasibility_score=trip.feasibility_score,
        daily_itinerary=trip.daily_itinerary,
        locations=[TripLocationRead.model_validate(loc) for loc in trip.locations],
        payment=PaymentRead.model_validate(detail.payment) if detail.payment else None,
        guide=GuideContactRead.model_validate(detail.guide) if detail.guide else None,
    )


def _checkout(result: CheckoutResult) -> CheckoutRead:
    return CheckoutRead(payment=PaymentRead.model_validate(result.payment), checkout_url=result.checkout_url)


# Plans

@router.post("/plans/manual", response_model=Envelope[PlanCreated], status_code=status.HTTP_201_CREATED)
def create_manual(
    payload: ManualPlanRequest,
    db: Session = Depends(get_db),
    traveler: Traveler = Depends(get_current_traveler),
):
    """
    Create a trip from locations the traveler picked.

    - **locations**: stops inside Sri Lanka, optionally with a day number
    """
    trip = create_manual_plan(db, traveler.id, payload)
    return Envelope(
        status="ok",
        data=PlanCreated(
            trip_id=trip.id, total_distance=trip.total_distance, locations_created=len(trip.locations)
        ),
    )


@router.post("/plans/generate", response_model=Envelope[dict])
def generate_plan(
    payload: GeneratePlanRequest,
    traveler: Traveler = Depends(get_current_traveler),
    generator: PlanGenerator = Depends(get_plan_generator),
):
    """Ask the model for an itinerary; nothing is stored until it is accepted"""
    return Envelope(status="ok", data=generator.generate_ai_plan(payload))


@router.post("/plans/accept", response_model=Envelope[PlanCreated], status_code=status.HTTP_201_CREATED)
def accept_plan(
    payload: AcceptPlanRequest,
    db: Session = Depends(get_db),
    traveler: Traveler = Depends(get_current_traveler),
):
    result = ingest_ai_plan(db, traveler.id, payload)
    return Envelope(
        status="ok",
        data=PlanCreated(
            trip_id=result.trip.id,
            total_distance=result.trip.total_distance,
            locations_created=len(result.trip.locations),
            dropped_attractions=result.dropped,
        ),
    )


# Trips

@router.get("/trips", response_model=Envelope[list[TripRead]])
def list_trips(
    status_filter: Optional[TripStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    traveler: Traveler = Depends(get_current_traveler),
):
    trips = TripService(db).list_traveler_trips(traveler.id, status_filter, limit, offset)
    return Envelope(status="ok", data=[TripRead.model_validate(t) for t in trips])


@router.get("/trips/{trip_id}", response_model=Envelope[TripDetailRead])
def get_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    traveler: Traveler = Depends(get_current_traveler),
):
    detail = TripService(db).get_trip_detail(trip_id, traveler.id)
    return Envelope(status="ok", data=_trip_detail(detail))


@router.delete("/trips/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    traveler: Traveler = Depends(get_current_traveler),
):
    TripService(db).delete_trip(trip_id, traveler.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/trips/{trip_id}/confirm", response_model=Envelope[TripRead])
def confirm_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    traveler: Traveler = Depends(get_current_traveler),
):
    trip = TripService(db, clock).confirm_trip(trip_id, traveler.id)
    return Envelope(status="ok", data=TripRead.model_validate(trip))


@router.post("/trips/{trip_id}/start", response_model=Envelope[TripRead])
def start_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    traveler: Traveler = Depends(get_current_traveler),
):
    """Start a paid, confirmed trip; guided trips need the guide's OTP verification first"""
    trip = TripService(db, clock).start_trip(trip_id, traveler.id)
    return Envelope(status="ok", data=TripRead.model_validate(trip))


@router.post("/trips/{trip_id}/complete", response_model=Envelope[TripRead])
def complete_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    traveler: Traveler = Depends(get_current_traveler),
):
    trip = TripService(db, clock).complete_trip(trip_id, traveler.id)
    return Envelope(status="ok", data=TripRead.model_validate(trip))


@router.post("/trips/{trip_id}/cancel", response_model=Envelope[TripRead])
def cancel_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    traveler: Traveler = Depends(get_current_traveler),
):
    trip = TripService(db, clock).cancel_trip(trip_id, traveler.id)
    return Envelope(status="ok", data=TripRead.model_validate(trip))


@router.post("/trips/{trip_id}/otp", response_model=Envelope[OtpIssued], status_code=status.HTTP_201_CREATED)
def issue_otp(
    trip_id: int,
    payload: OtpIssueRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    traveler: Traveler = Depends(get_current_traveler),
):
    """Issue the 4-digit code the guide enters at the meeting point"""
    verification = VerificationService(db, clock).issue_otp(
        trip_id, traveler.id, payload.latitude, payload.longitude
    )
    return Envelope(status="ok", data=OtpIssued.model_validate(verification))


@router.get("/trips/{trip_id}/otp", response_model=Envelope[OtpIssued])
def get_otp(
    trip_id: int,
    db: Session = Depends(get_db),
    traveler: Traveler = Depends(get_current_traveler),
):
    """The current code and whether the guide has redeemed it"""
    verification = VerificationService(db).get_verification(trip_id, traveler.id)
    return Envelope(status="ok", data=OtpIssued.model_validate(verification))


# Payments

@router.post("/trips/{trip_id}/payment", response_model=Envelope[CheckoutRead], status_code=status.HTTP_201_CREATED)
def request_payment(
    trip_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    checkout: CheckoutProcessor = Depends(get_checkout_client),
    traveler: Traveler = Depends(get_current_traveler),
):
    result = PaymentService(db, checkout, clock).request_payment(trip_id, traveler.id)
    return Envelope(status="ok", data=_checkout(result))


@router.get("/trips/{trip_id}/payment", response_model=Envelope[PaymentRead])
def get_trip_payment(
    trip_id: int,
    db: Session = Depends(get_db),
    traveler: Traveler = Depends(get_current_traveler),
):
    payment = PaymentService(db).get_trip_payment(trip_id, traveler.id)
    return Envelope(status="ok", data=PaymentRead.model_validate(payment))


@router.get("/payments", response_model=Envelope[list[PaymentRead]])
def list_payments(
    db: Session = Depends(get_db),
    traveler: Traveler = Depends(get_current_traveler),
):
    payments = PaymentService(db).list_traveler_payments(traveler.id)
    return Envelope(status="ok", data=[PaymentRead.model_validate(p) for p in payments])


# Event tickets

@router.post("/events/{event_id}/purchase", response_model=Envelope[CheckoutRead], status_code=status.HTTP_201_CREATED)
def purchase_tickets(
    event_id: int,
    payload: TicketPurchase,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    checkout: CheckoutProcessor = Depends(get_checkout_client),
    traveler: Traveler = Depends(get_current_traveler),
):
    result = EventService(db, checkout, clock).purchase_tickets(event_id, traveler.id, payload.quantity)
    return Envelope(status="ok", data=_checkout(result))


@router.post("/tickets/{payment_id}/cancel", response_model=Envelope[PaymentRead])
def cancel_ticket_purchase(
    payment_id: int,
    db: Session = Depends(get_db),
    traveler: Traveler = Depends(get_current_traveler),
):
    payment = EventService(db).cancel_ticket_purchase(payment_id, traveler.id)
    return Envelope(status="ok", data=PaymentRead.model_validate(payment))
