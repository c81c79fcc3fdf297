"""
Guide account verification and job statistics schemas
"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import List, Optional

from heritage_lanka.models.user import GuideVerificationStatus
from heritage_lanka.schemas.trip import TripLocationRead, TripRead


class VerificationStatusRead(BaseModel):
    status: GuideVerificationStatus
    is_legacy: bool
    verified_at: Optional[datetime] = None
    verified_by: Optional[int] = None
    rejection_reason: Optional[str] = None
    message: Optional[str] = None

    class Config:
        from_attributes = True


class GuideWithVerificationRead(BaseModel):
    """A guide as listed for admin review"""
    id: int
    user_id: int
    name: str
    email: str
    phone: Optional[str] = None
    languages: List[str] = []
    nic: str
    rating: float
    total_reviews: int
    created_at: Optional[datetime] = None
    verification: VerificationStatusRead


class RejectGuideRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)


class GuideJobStatisticsRead(BaseModel):
    in_progress: int
    completed: int
    cancelled: int
    upcoming: int
    total: int

    class Config:
        from_attributes = True


class CurrentTripRead(BaseModel):
    trip: TripRead
    traveler_name: str
    traveler_phone: Optional[str] = None
    locations: List[TripLocationRead] = []


class GuideDashboardRead(BaseModel):
    statistics: GuideJobStatisticsRead
    rating: float
    total_reviews: int
    current_trip: Optional[CurrentTripRead] = None
