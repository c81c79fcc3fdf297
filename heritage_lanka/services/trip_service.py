"""
Trip Service - traveler-side trip lifecycle

Every status change goes through ``apply_transition`` so the check against the
transition table and the write happen as one conditional UPDATE.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload

from heritage_lanka.core.clock import Clock, system_clock
from heritage_lanka.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PreconditionFailedError,
)
from heritage_lanka.models.payment import Payment, PaymentStatus
from heritage_lanka.models.trip import Trip, TripStatus, TripVerification
from heritage_lanka.models.user import Guide, Traveler
from heritage_lanka.services.trip_lifecycle import (
    DELETABLE_STATUSES,
    apply_transition,
    ensure_transition,
)

logger = logging.getLogger(__name__)


@dataclass
class GuideContact:
    guide_id: int
    name: str
    languages: List[str]
    rating: float
    phone: Optional[str] = None


@dataclass
class TripDetail:
    trip: Trip
    payment: Optional[Payment]
    guide: Optional[GuideContact]


@dataclass
class GuideJobStatistics:
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0
    upcoming: int = 0
    total: int = 0


@dataclass
class GuideDashboard:
    statistics: GuideJobStatistics
    rating: float
    total_reviews: int
    current_trip: Optional[Trip] = None
    current_traveler_name: Optional[str] = None
    current_traveler_phone: Optional[str] = None


class TripService:
    """Reads and lifecycle transitions for trips owned by a traveler"""

    def __init__(self, db: Session, clock: Clock = system_clock):
        self.db = db
        self.clock = clock

    def get_trip(self, trip_id: int, traveler_id: int) -> Trip:
        """
        Load a trip scoped to its owner.

        A trip that exists but belongs to someone else is reported as not
        found so other travelers' ids stay hidden.

        Args:
            trip_id: Trip ID
            traveler_id: Traveler profile ID of the caller

        Returns:
            Trip with status read fresh from the database
        """
        stmt = (
            select(Trip)
            .where(Trip.id == trip_id, Trip.traveler_id == traveler_id)
            .options(selectinload(Trip.locations))
            .execution_options(populate_existing=True)
        )
        trip = self.db.execute(stmt).scalar_one_or_none()
        if trip is None:
            raise NotFoundError("Trip", trip_id)
        return trip

    def get_trip_detail(self, trip_id: int, traveler_id: int) -> TripDetail:
        """
        Trip with its ordered stops, payment and guide contact.

        The guide's phone number is only shared while the trip is in progress.
        """
        trip = self.get_trip(trip_id, traveler_id)
        contact = None
        if trip.guide_id is not None:
            guide = self.db.execute(
                select(Guide).where(Guide.id == trip.guide_id).options(selectinload(Guide.user))
            ).scalar_one()
            contact = GuideContact(
                guide_id=guide.id,
                name=guide.user.name,
                languages=list(guide.user.languages or []),
                rating=guide.rating,
                phone=guide.user.phone if trip.status == TripStatus.IN_PROGRESS else None,
            )
        return TripDetail(trip=trip, payment=self._get_payment(trip.id), guide=contact)

    def list_traveler_trips(
        self,
        traveler_id: int,
        status: Optional[TripStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Trip]:
        stmt = select(Trip).where(Trip.traveler_id == traveler_id)
        if status:
            stmt = stmt.where(Trip.status == status)
        stmt = stmt.order_by(Trip.from_date.desc(), Trip.id.desc()).limit(limit).offset(offset)
        return list(self.db.execute(stmt).scalars().all())

    def list_guide_trips(
        self, guide_id: int, status: Optional[TripStatus] = None
    ) -> List[Trip]:
        """Trips assigned to a guide, soonest first"""
        stmt = select(Trip).where(Trip.guide_id == guide_id)
        if status:
            stmt = stmt.where(Trip.status == status)
        stmt = stmt.order_by(Trip.from_date.asc(), Trip.id.asc())
        return list(self.db.execute(stmt).scalars().all())

    def guide_job_statistics(self, guide_id: int) -> GuideJobStatistics:
        """Counts of a guide's trips by status; upcoming means CONFIRMED"""
        rows = self.db.execute(
            select(Trip.status, func.count(Trip.id))
            .where(Trip.guide_id == guide_id)
            .group_by(Trip.status)
        ).all()
        counts = {TripStatus(status): count for status, count in rows}
        return GuideJobStatistics(
            in_progress=counts.get(TripStatus.IN_PROGRESS, 0),
            completed=counts.get(TripStatus.COMPLETED, 0),
            cancelled=counts.get(TripStatus.CANCELLED, 0),
            upcoming=counts.get(TripStatus.CONFIRMED, 0),
            total=sum(counts.values()),
        )

    def guide_dashboard(self, guide_id: int) -> GuideDashboard:
        """
        Job counts, rating and the trip the guide is on right now.

        The traveler's phone is included for the in-progress trip only.
        """
        guide = self.db.get(Guide, guide_id)
        if guide is None:
            raise NotFoundError("Guide", guide_id)

        current = self.db.execute(
            select(Trip)
            .where(Trip.guide_id == guide_id, Trip.status == TripStatus.IN_PROGRESS)
            .options(
                selectinload(Trip.locations),
                selectinload(Trip.traveler).selectinload(Traveler.user),
            )
            .order_by(Trip.from_date.asc())
            .limit(1)
        ).scalar_one_or_none()

        dashboard = GuideDashboard(
            statistics=self.guide_job_statistics(guide_id),
            rating=guide.rating,
            total_reviews=guide.total_reviews,
        )
        if current is not None:
            dashboard.current_trip = current
            dashboard.current_traveler_name = current.traveler.user.name
            dashboard.current_traveler_phone = current.traveler.user.phone
        return dashboard

    def list_all_trips(
        self, status: Optional[TripStatus] = None, limit: int = 100, offset: int = 0
    ) -> List[Trip]:
        stmt = select(Trip)
        if status:
            stmt = stmt.where(Trip.status == status)
        stmt = stmt.order_by(Trip.created_at.desc(), Trip.id.desc()).limit(limit).offset(offset)
        return list(self.db.execute(stmt).scalars().all())

    def confirm_trip(self, trip_id: int, traveler_id: int) -> Trip:
        """
        Confirm a self-guided trip (PLANNING -> CONFIRMED).

        Guided trips are confirmed by a guide accepting them instead.
        """
        trip = self.get_trip(trip_id, traveler_id)
        ensure_transition(trip.status, TripStatus.CONFIRMED)
        if trip.needs_guide:
            raise PreconditionFailedError(
                "Guided trips are confirmed when a guide accepts them",
                details={"trip_id": trip.id},
            )

        apply_transition(self.db, trip, TripStatus.CONFIRMED, self.clock.now())
        self.db.commit()
        self.db.refresh(trip)
        return trip

    def start_trip(self, trip_id: int, traveler_id: int) -> Trip:
        """
        Start a confirmed trip (CONFIRMED -> IN_PROGRESS).

        Requires a PAID payment and, when a guide is assigned, a verified
        start-of-trip OTP. Neither participant may already be on another
        trip. Sets the in-progress flag on both profiles.

        Args:
            trip_id: Trip ID
            traveler_id: Traveler profile ID of the caller

        Returns:
            Updated trip
        """
        trip = self.get_trip(trip_id, traveler_id)
        ensure_transition(trip.status, TripStatus.IN_PROGRESS)

        payment = self._get_payment(trip.id)
        if payment is None or payment.status != PaymentStatus.PAID:
            raise PreconditionFailedError(
                "Trip payment must be completed before starting",
                details={
                    "trip_id": trip.id,
                    "payment_status": payment.status.value if payment else None,
                },
            )

        if trip.guide_id is not None:
            verification = self.db.execute(
                select(TripVerification)
                .where(TripVerification.trip_id == trip.id)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
            if verification is None or not verification.verified:
                raise PreconditionFailedError(
                    "Guide must verify the start-of-trip OTP first",
                    details={"trip_id": trip.id},
                )

        if self._has_other_trip_in_progress(trip, Trip.traveler_id == trip.traveler_id):
            raise PreconditionFailedError(
                "Traveler already has a trip in progress",
                details={"trip_id": trip.id, "traveler_id": trip.traveler_id},
            )
        if trip.guide_id is not None and self._has_other_trip_in_progress(
            trip, Trip.guide_id == trip.guide_id
        ):
            raise PreconditionFailedError(
                "Guide is already on another trip",
                details={"trip_id": trip.id, "guide_id": trip.guide_id},
            )

        apply_transition(self.db, trip, TripStatus.IN_PROGRESS, self.clock.now())
        self._set_in_progress_flags(trip, True)
        self.db.commit()
        self.db.refresh(trip)
        return trip

    def complete_trip(self, trip_id: int, traveler_id: int) -> Trip:
        """
        Finish an in-progress trip (IN_PROGRESS -> COMPLETED).

        Clears both in-progress flags and, for a guided trip, releases the
        held payment to the guide.
        """
        trip = self.get_trip(trip_id, traveler_id)
        now = self.clock.now()
        apply_transition(self.db, trip, TripStatus.COMPLETED, now)
        self._set_in_progress_flags(trip, False)

        if trip.guide_id is not None:
            released = self.db.execute(
                update(Payment)
                .where(Payment.trip_id == trip.id, Payment.status == PaymentStatus.PAID)
                .values(status=PaymentStatus.RELEASED, released_at=now)
                .execution_options(synchronize_session=False)
            )
            if released.rowcount:
                logger.info(
                    f"Released payment for trip {trip.id} to guide {trip.guide_id}",
                    extra={"trip_id": trip.id, "guide_id": trip.guide_id},
                )

        self.db.commit()
        self.db.refresh(trip)
        return trip

    def cancel_trip(self, trip_id: int, traveler_id: int) -> Trip:
        """Cancel from any non-terminal status; open or held payments are cancelled"""
        trip = self.get_trip(trip_id, traveler_id)
        was_in_progress = trip.status == TripStatus.IN_PROGRESS

        apply_transition(self.db, trip, TripStatus.CANCELLED, self.clock.now())
        if was_in_progress:
            self._set_in_progress_flags(trip, False)

        self.db.execute(
            update(Payment)
            .where(
                Payment.trip_id == trip.id,
                Payment.status.in_([PaymentStatus.PENDING, PaymentStatus.PAID]),
            )
            .values(status=PaymentStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        self.db.refresh(trip)
        return trip

    def delete_trip(self, trip_id: int, traveler_id: int) -> None:
        """
        Delete a trip that has not started.

        Only PLANNING or CONFIRMED trips may be deleted, and not once money
        has been collected; cancel those instead.
        """
        trip = self.get_trip(trip_id, traveler_id)
        if trip.status not in DELETABLE_STATUSES:
            raise InvalidTransitionError(
                trip.status.value,
                "DELETED",
                message=f"Cannot delete trip with status {trip.status.value}",
            )

        payment = self._get_payment(trip.id)
        if payment is not None and payment.status in (PaymentStatus.PAID, PaymentStatus.RELEASED):
            raise PreconditionFailedError(
                "Trip has a completed payment; cancel it instead",
                details={"trip_id": trip.id},
            )

        self.db.delete(trip)
        self.db.commit()
        logger.info(f"Deleted trip {trip_id}", extra={"trip_id": trip_id})

    def _get_payment(self, trip_id: int) -> Optional[Payment]:
        stmt = (
            select(Payment)
            .where(Payment.trip_id == trip_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def _has_other_trip_in_progress(self, trip: Trip, participant_clause) -> bool:
        stmt = select(Trip.id).where(
            participant_clause,
            Trip.status == TripStatus.IN_PROGRESS,
            Trip.id != trip.id,
        )
        return self.db.execute(stmt.limit(1)).first() is not None

    def _set_in_progress_flags(self, trip: Trip, value: bool) -> None:
        self.db.execute(
            update(Traveler)
            .where(Traveler.id == trip.traveler_id)
            .values(trip_in_progress=value)
            .execution_options(synchronize_session=False)
        )
        if trip.guide_id is not None:
            self.db.execute(
                update(Guide)
                .where(Guide.id == trip.guide_id)
                .values(trip_in_progress=value)
                .execution_options(synchronize_session=False)
            )
