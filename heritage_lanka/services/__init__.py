# Business logic services

from .trip_lifecycle import TRANSITIONS, apply_transition, can_transition, ensure_transition
from .trip_service import TripService, TripDetail, GuideContact, GuideJobStatistics, GuideDashboard
from .guide_matching_service import GuideMatchingService, AvailableTrip
from .guide_verification_service import GuideVerificationService, VerificationState
from .verification_service import VerificationService
from .payment_service import PaymentService, CheckoutResult, calculate_trip_amount
from .event_service import EventService
from .review_service import ReviewService, ReviewEligibility
from .plan_ingestion import validate_attractions, ingest_ai_plan, create_manual_plan
from .plan_generator import PlanGenerator
from .reminder_job import (
    ReminderScheduler,
    send_trip_start_reminders,
    send_daily_itinerary_reminders,
)
from .checkout_client import CheckoutClient, CheckoutSession
from .messaging_client import WhatsAppClient

__all__ = [
    "TRANSITIONS",
    "apply_transition",
    "can_transition",
    "ensure_transition",
    "TripService",
    "TripDetail",
    "GuideContact",
    "GuideJobStatistics",
    "GuideDashboard",
    "GuideMatchingService",
    "AvailableTrip",
    "GuideVerificationService",
    "VerificationState",
    "VerificationService",
    "PaymentService",
    "CheckoutResult",
    "calculate_trip_amount",
    "EventService",
    "ReviewService",
    "ReviewEligibility",
    "validate_attractions",
    "ingest_ai_plan",
    "create_manual_plan",
    "PlanGenerator",
    "ReminderScheduler",
    "send_trip_start_reminders",
    "send_daily_itinerary_reminders",
    "CheckoutClient",
    "CheckoutSession",
    "WhatsAppClient",
]
