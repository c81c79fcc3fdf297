"""
Trip schemas for API requests/responses
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, List, Optional

from heritage_lanka.models.trip import BookingStatus, PlanningMode, TripStatus
from heritage_lanka.schemas.payment import PaymentRead


class TripLocationRead(BaseModel):
    id: int
    title: str
    address: Optional[str] = None
    district: Optional[str] = None
    latitude: float
    longitude: float
    category: Optional[str] = None
    rating: Optional[float] = None
    estimated_duration: Optional[str] = None
    reason_for_selection: Optional[str] = None
    day_number: int
    visit_order: int

    class Config:
        from_attributes = True


class TripRead(BaseModel):
    """Schema for trip read response"""
    id: int
    traveler_id: int
    guide_id: Optional[int] = None
    from_date: datetime
    to_date: datetime
    number_of_people: int
    country: str
    preferences: Optional[List[str]] = None
    plan_description: Optional[str] = None
    planning_mode: PlanningMode
    total_distance: Optional[float] = None
    needs_guide: bool
    status: TripStatus
    booking_status: BookingStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class GuideContactRead(BaseModel):
    guide_id: int
    name: str
    languages: List[str] = []
    rating: float
    phone: Optional[str] = None

    class Config:
        from_attributes = True


class TripDetailRead(TripRead):
    """Trip with its itinerary, payment and guide contact"""
    ai_summary: Optional[str] = None
    ai_recommendations: Optional[Any] = None
    feasibility_score: Optional[int] = None
    daily_itinerary: Optional[Any] = None
    locations: List[TripLocationRead] = []
    payment: Optional[PaymentRead] = None
    guide: Optional[GuideContactRead] = None


class AvailableTripRead(BaseModel):
    trip: TripRead
    traveler_name: str
    shared_languages: List[str]
    locations: List[TripLocationRead] = []


class OtpIssueRequest(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class OtpVerifyRequest(OtpIssueRequest):
    otp: str = Field(..., min_length=4, max_length=4, pattern=r"^\d{4}$")


class VerificationRead(BaseModel):
    trip_id: int
    verified: bool
    expires_at: datetime
    verified_at: Optional[datetime] = None
    distance_km: Optional[float] = None

    class Config:
        from_attributes = True


class OtpIssued(VerificationRead):
    """Shown to the traveler only; the guide must type it in"""
    otp: str
