"""
Admin API endpoints - oversight of trips and payments, guide review, event management
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from heritage_lanka.core.clock import Clock, get_clock
from heritage_lanka.core.db import get_db
from heritage_lanka.core.dependencies import require_admin
from heritage_lanka.models.payment import PaymentStatus
from heritage_lanka.models.trip import TripStatus
from heritage_lanka.models.user import Guide, GuideVerificationStatus, User
from heritage_lanka.schemas.base import Envelope
from heritage_lanka.schemas.event import EventCreate, EventRead, EventUpdate
from heritage_lanka.schemas.guide import GuideWithVerificationRead, RejectGuideRequest, VerificationStatusRead
from heritage_lanka.schemas.payment import PaymentRead
from heritage_lanka.schemas.trip import TripRead
from heritage_lanka.services.event_service import EventService
from heritage_lanka.services.guide_verification_service import GuideVerificationService, VerificationState
from heritage_lanka.services.payment_service import PaymentService
from heritage_lanka.services.trip_service import TripService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/trips", response_model=Envelope[list[TripRead]])
def list_trips(
    status_filter: Optional[TripStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    trips = TripService(db).list_all_trips(status_filter, limit, offset)
    return Envelope(status="ok", data=[TripRead.model_validate(t) for t in trips])


@router.get("/payments", response_model=Envelope[list[PaymentRead]])
def list_payments(
    status_filter: Optional[PaymentStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    payments = PaymentService(db).list_payments(status_filter, limit, offset)
    return Envelope(status="ok", data=[PaymentRead.model_validate(p) for p in payments])


@router.post("/events", response_model=Envelope[EventRead], status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    admin: User = Depends(require_admin),
):
    event = EventService(db, clock=clock).create_event(**payload.model_dump())
    return Envelope(status="ok", data=EventRead.model_validate(event))


@router.put("/events/{event_id}", response_model=Envelope[EventRead])
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    event = EventService(db).update_event(event_id, payload.model_dump(exclude_unset=True))
    return Envelope(status="ok", data=EventRead.model_validate(event))


# Guide verification

def _guide_row(guide: Guide, state: VerificationState) -> GuideWithVerificationRead:
    user = guide.user
    return GuideWithVerificationRead(
        id=guide.id,
        user_id=guide.user_id,
        name=user.name,
        email=user.email,
        phone=user.phone,
        languages=user.languages or [],
        nic=guide.nic,
        rating=guide.rating,
        total_reviews=guide.total_reviews,
        created_at=guide.created_at,
        verification=VerificationStatusRead.model_validate(state),
    )


@router.get("/guides", response_model=Envelope[list[GuideWithVerificationRead]])
def list_guides(
    status_filter: Optional[GuideVerificationStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Guides with their verification state.

    - **status**: PENDING, VERIFIED or REJECTED; guides with no review record count as VERIFIED
    """
    rows = GuideVerificationService(db).list_guides(status_filter)
    return Envelope(status="ok", data=[_guide_row(guide, state) for guide, state in rows])


@router.post("/guides/{guide_id}/verify", response_model=Envelope[VerificationStatusRead])
def verify_guide(
    guide_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    admin: User = Depends(require_admin),
):
    state = GuideVerificationService(db, clock).verify_guide(guide_id, admin.id)
    return Envelope(status="ok", data=VerificationStatusRead.model_validate(state))


@router.post("/guides/{guide_id}/reject", response_model=Envelope[VerificationStatusRead])
def reject_guide(
    guide_id: int,
    payload: RejectGuideRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    admin: User = Depends(require_admin),
):
    state = GuideVerificationService(db, clock).reject_guide(guide_id, admin.id, payload.reason)
    return Envelope(status="ok", data=VerificationStatusRead.model_validate(state))
