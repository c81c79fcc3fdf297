"""
Verification Service - start-of-trip OTP handshake

The traveler issues a 4-digit code from the meeting point; the guide enters
it on their own device. A verified code is what lets a guided trip start.
"""
import logging
import secrets
from datetime import timedelta
from typing import Optional

from geopy.distance import geodesic
from sqlalchemy import select
from sqlalchemy.orm import Session

from heritage_lanka.config.settings import OtpSettings, get_settings
from heritage_lanka.core.clock import Clock, system_clock
from heritage_lanka.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    OtpExpiredError,
    OtpMismatchError,
    PreconditionFailedError,
    ValidationFailedError,
)
from heritage_lanka.models.payment import Payment, PaymentStatus
from heritage_lanka.models.trip import Trip, TripStatus, TripVerification

logger = logging.getLogger(__name__)


def validate_coordinates(latitude: float, longitude: float) -> None:
    if latitude is None or longitude is None:
        raise ValidationFailedError("Latitude and longitude are required")
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValidationFailedError(
            "Coordinates out of range",
            details={"latitude": latitude, "longitude": longitude},
        )


def generate_otp() -> str:
    return f"{secrets.randbelow(9000) + 1000}"


class VerificationService:
    """Issues and redeems the start-of-trip code"""

    def __init__(
        self,
        db: Session,
        clock: Clock = system_clock,
        otp_settings: Optional[OtpSettings] = None,
    ):
        self.db = db
        self.clock = clock
        self.settings = otp_settings or get_settings().otp

    def issue_otp(
        self, trip_id: int, traveler_id: int, latitude: float, longitude: float
    ) -> TripVerification:
        """
        Create or replace the trip's OTP.

        Issuing again replaces the previous code and resets verification.

        Args:
            trip_id: Trip ID
            traveler_id: Traveler profile ID of the caller
            latitude: Traveler's current latitude
            longitude: Traveler's current longitude

        Returns:
            Verification row holding the new code and its expiry
        """
        validate_coordinates(latitude, longitude)
        trip = self._load_trip(Trip.traveler_id == traveler_id, trip_id)

        if trip.status != TripStatus.CONFIRMED:
            raise InvalidTransitionError(
                trip.status.value,
                TripStatus.IN_PROGRESS.value,
                message="An OTP can only be issued for a confirmed trip",
            )
        if trip.guide_id is None:
            raise PreconditionFailedError(
                "Trip has no guide to verify", details={"trip_id": trip.id}
            )
        payment = self.db.execute(
            select(Payment).where(Payment.trip_id == trip.id)
        ).scalar_one_or_none()
        if payment is None or payment.status != PaymentStatus.PAID:
            raise PreconditionFailedError(
                "Trip payment must be completed before issuing an OTP",
                details={"trip_id": trip.id},
            )

        now = self.clock.now()
        verification = self._get_verification(trip.id)
        if verification is None:
            verification = TripVerification(trip_id=trip.id)
            self.db.add(verification)

        verification.otp = generate_otp()
        verification.traveler_latitude = latitude
        verification.traveler_longitude = longitude
        verification.guide_latitude = None
        verification.guide_longitude = None
        verification.distance_km = None
        verification.verified = False
        verification.verified_at = None
        verification.expires_at = now + timedelta(minutes=self.settings.validity_minutes)

        self.db.commit()
        self.db.refresh(verification)
        logger.info(
            f"Issued start OTP for trip {trip.id}",
            extra={"trip_id": trip.id, "expires_at": verification.expires_at},
        )
        return verification

    def verify_otp(
        self, trip_id: int, guide_id: int, otp: str, latitude: float, longitude: float
    ) -> TripVerification:
        """
        Redeem the OTP as the assigned guide.

        Order of checks: expiry, then already verified, then code match.
        The guide's position and distance to the traveler are recorded; the
        distance is only enforced when a maximum is configured.
        """
        validate_coordinates(latitude, longitude)
        trip = self._load_trip(Trip.guide_id == guide_id, trip_id)

        verification = self._get_verification(trip.id)
        if verification is None:
            raise NotFoundError("TripVerification", trip.id, message="No OTP issued for this trip")

        now = self.clock.now()
        if now > verification.expires_at:
            raise OtpExpiredError(verification.expires_at)
        if verification.verified:
            raise ValidationFailedError(
                "OTP already verified", details={"trip_id": trip.id}
            )
        if not secrets.compare_digest(str(otp).strip(), verification.otp):
            logger.warning(
                f"OTP mismatch for trip {trip.id}",
                extra={"trip_id": trip.id, "guide_id": guide_id},
            )
            raise OtpMismatchError()

        distance_km = geodesic(
            (verification.traveler_latitude, verification.traveler_longitude),
            (latitude, longitude),
        ).kilometers
        max_distance = self.settings.max_distance_km
        if max_distance is not None and distance_km > max_distance:
            raise PreconditionFailedError(
                "Guide is too far from the traveler to verify",
                details={
                    "distance_km": round(distance_km, 3),
                    "max_distance_km": max_distance,
                },
            )

        verification.guide_latitude = latitude
        verification.guide_longitude = longitude
        verification.distance_km = round(distance_km, 3)
        verification.verified = True
        verification.verified_at = now
        self.db.commit()
        self.db.refresh(verification)
        logger.info(
            f"Guide {guide_id} verified trip {trip.id}",
            extra={"trip_id": trip.id, "guide_id": guide_id, "distance_km": verification.distance_km},
        )
        return verification

    def get_verification(self, trip_id: int, traveler_id: int) -> TripVerification:
        trip = self._load_trip(Trip.traveler_id == traveler_id, trip_id)
        verification = self._get_verification(trip.id)
        if verification is None:
            raise NotFoundError("TripVerification", trip.id, message="No OTP issued for this trip")
        return verification

    def _load_trip(self, owner_clause, trip_id: int) -> Trip:
        trip = self.db.execute(
            select(Trip)
            .where(Trip.id == trip_id, owner_clause)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if trip is None:
            raise NotFoundError("Trip", trip_id)
        return trip

    def _get_verification(self, trip_id: int) -> Optional[TripVerification]:
        return self.db.execute(
            select(TripVerification)
            .where(TripVerification.trip_id == trip_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
