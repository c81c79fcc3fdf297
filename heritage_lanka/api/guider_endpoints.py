"""
Guide API endpoints - open trips, acceptance, OTP verification, account status and job statistics
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from heritage_lanka.core.clock import Clock, get_clock
from heritage_lanka.core.db import get_db
from heritage_lanka.core.dependencies import get_current_guide
from heritage_lanka.models.trip import TripStatus
from heritage_lanka.models.user import Guide
from heritage_lanka.schemas.base import Envelope, Message
from heritage_lanka.schemas.guide import (
    CurrentTripRead,
    GuideDashboardRead,
    GuideJobStatisticsRead,
    VerificationStatusRead,
)
from heritage_lanka.schemas.trip import (
    AvailableTripRead,
    OtpVerifyRequest,
    TripLocationRead,
    TripRead,
    VerificationRead,
)
from heritage_lanka.services.guide_matching_service import GuideMatchingService
from heritage_lanka.services.guide_verification_service import GuideVerificationService
from heritage_lanka.services.trip_service import TripService
from heritage_lanka.services.verification_service import VerificationService

router = APIRouter(prefix="/guider", tags=["guider"])


@router.get("/trips/available", response_model=Envelope[list[AvailableTripRead]])
def list_available_trips(
    db: Session = Depends(get_db),
    guide: Guide = Depends(get_current_guide),
):
    """
    Unassigned guided trips whose traveler shares a language with this guide
    """
    available = GuideMatchingService(db).list_available_trips(guide.id)
    return Envelope(
        status="ok",
        data=[
            AvailableTripRead(
                trip=TripRead.model_validate(item.trip),
                traveler_name=item.traveler_name,
                shared_languages=item.shared_languages,
                locations=[TripLocationRead.model_validate(loc) for loc in item.trip.locations],
            )
            for item in available
        ],
    )


@router.get("/trips", response_model=Envelope[list[TripRead]])
def list_my_trips(
    status_filter: Optional[TripStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    guide: Guide = Depends(get_current_guide),
):
    trips = TripService(db).list_guide_trips(guide.id, status_filter)
    return Envelope(status="ok", data=[TripRead.model_validate(t) for t in trips])


@router.post("/trips/{trip_id}/accept", response_model=Envelope[TripRead])
def accept_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    guide: Guide = Depends(get_current_guide),
):
    trip = GuideMatchingService(db, clock).accept_trip(trip_id, guide.id)
    return Envelope(status="ok", data=TripRead.model_validate(trip))


@router.post("/trips/{trip_id}/decline", response_model=Envelope[Message])
def decline_trip(
    trip_id: int,
    db: Session = Depends(get_db),
    guide: Guide = Depends(get_current_guide),
):
    GuideMatchingService(db).decline_trip(trip_id, guide.id)
    return Envelope(status="ok", data=Message(message="Trip declined"))


@router.post("/trips/{trip_id}/verify", response_model=Envelope[VerificationRead])
def verify_otp(
    trip_id: int,
    payload: OtpVerifyRequest,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    guide: Guide = Depends(get_current_guide),
):
    """Enter the traveler's code at the meeting point"""
    verification = VerificationService(db, clock).verify_otp(
        trip_id, guide.id, payload.otp, payload.latitude, payload.longitude
    )
    return Envelope(status="ok", data=VerificationRead.model_validate(verification))


@router.get("/verification-status", response_model=Envelope[VerificationStatusRead])
def verification_status(
    db: Session = Depends(get_db),
    guide: Guide = Depends(get_current_guide),
):
    """Whether an admin has verified this account; only verified guides can accept trips"""
    state = GuideVerificationService(db).get_status(guide.id)
    return Envelope(status="ok", data=VerificationStatusRead.model_validate(state))


@router.get("/jobs/statistics", response_model=Envelope[GuideJobStatisticsRead])
def job_statistics(
    db: Session = Depends(get_db),
    guide: Guide = Depends(get_current_guide),
):
    stats = TripService(db).guide_job_statistics(guide.id)
    return Envelope(status="ok", data=GuideJobStatisticsRead.model_validate(stats))


@router.get("/dashboard-stats", response_model=Envelope[GuideDashboardRead])
def dashboard_stats(
    db: Session = Depends(get_db),
    guide: Guide = Depends(get_current_guide),
):
    dashboard = TripService(db).guide_dashboard(guide.id)
    current = None
    if dashboard.current_trip is not None:
        current = CurrentTripRead(
            trip=TripRead.model_validate(dashboard.current_trip),
            traveler_name=dashboard.current_traveler_name,
            traveler_phone=dashboard.current_traveler_phone,
            locations=[TripLocationRead.model_validate(loc) for loc in dashboard.current_trip.locations],
        )
    return Envelope(
        status="ok",
        data=GuideDashboardRead(
            statistics=GuideJobStatisticsRead.model_validate(dashboard.statistics),
            rating=dashboard.rating,
            total_reviews=dashboard.total_reviews,
            current_trip=current,
        ),
    )
