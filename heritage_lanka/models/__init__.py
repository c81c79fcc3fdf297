"""
ORM models for the booking backend.

Importing this package registers every table on ``Base.metadata``.
"""

from .user import User, UserRole, Traveler, Guide, GuideVerification, GuideVerificationStatus
from .trip import (
    Trip,
    TripStatus,
    BookingStatus,
    PlanningMode,
    TripLocation,
    TripVerification,
    GuideDeclination,
)
from .payment import Payment, PaymentStatus
from .event import Event
from .review import Review, ReviewerType

__all__ = [
    "User",
    "UserRole",
    "Traveler",
    "Guide",
    "GuideVerification",
    "GuideVerificationStatus",
    "Trip",
    "TripStatus",
    "BookingStatus",
    "PlanningMode",
    "TripLocation",
    "TripVerification",
    "GuideDeclination",
    "Payment",
    "PaymentStatus",
    "Event",
    "Review",
    "ReviewerType",
]
