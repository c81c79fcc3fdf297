"""
Guide Matching Service - open trip feed, accept and decline for guides
"""
import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, aliased, selectinload

from heritage_lanka.core.clock import Clock, system_clock
from heritage_lanka.core.exceptions import ConflictError, NotFoundError, PreconditionFailedError
from heritage_lanka.models.trip import BookingStatus, GuideDeclination, Trip, TripStatus
from heritage_lanka.models.user import Guide, GuideVerificationStatus, Traveler
from heritage_lanka.services.guide_verification_service import verification_state
from heritage_lanka.services.trip_lifecycle import apply_transition

logger = logging.getLogger(__name__)

ACTIVE_GUIDE_STATUSES = (TripStatus.CONFIRMED, TripStatus.IN_PROGRESS)


@dataclass
class AvailableTrip:
    trip: Trip
    traveler_name: str
    shared_languages: List[str] = field(default_factory=list)


def shared_languages(guide_languages, traveler_languages) -> List[str]:
    """Case-insensitive intersection, keeping the guide's spelling and order"""
    wanted = {lang.strip().lower() for lang in traveler_languages or [] if lang}
    return [lang for lang in guide_languages or [] if lang and lang.strip().lower() in wanted]


def guide_is_free(guide_id: int):
    """UPDATE condition: the guide holds no other CONFIRMED or IN_PROGRESS trip"""
    other = aliased(Trip)
    return ~select(other.id).where(
        other.guide_id == guide_id, other.status.in_(ACTIVE_GUIDE_STATUSES)
    ).exists()


class GuideMatchingService:
    """Matches unassigned guided trips to guides by spoken language"""

    def __init__(self, db: Session, clock: Clock = system_clock):
        self.db = db
        self.clock = clock

    def get_guide(self, guide_id: int, for_update: bool = False) -> Guide:
        stmt = select(Guide).where(Guide.id == guide_id).options(
            selectinload(Guide.user), selectinload(Guide.verification)
        )
        if for_update:
            stmt = stmt.with_for_update()
        guide = self.db.execute(stmt).scalar_one_or_none()
        if guide is None:
            raise NotFoundError("Guide", guide_id)
        return guide

    def list_available_trips(self, guide_id: int) -> List[AvailableTrip]:
        """
        Trips this guide could pick up.

        A trip is listed when it needs a guide, has none, is still PLANNING,
        the guide has not declined it, and guide and traveler share at least
        one language.

        Args:
            guide_id: Guide profile ID

        Returns:
            Matching trips ordered by start date
        """
        guide = self.get_guide(guide_id)
        declined = select(GuideDeclination.trip_id).where(GuideDeclination.guide_id == guide.id)

        stmt = (
            select(Trip)
            .where(
                Trip.needs_guide.is_(True),
                Trip.guide_id.is_(None),
                Trip.status == TripStatus.PLANNING,
                Trip.id.not_in(declined),
            )
            .options(
                selectinload(Trip.locations),
                selectinload(Trip.traveler).selectinload(Traveler.user),
            )
            .order_by(Trip.from_date.asc(), Trip.id.asc())
        )

        available = []
        for trip in self.db.execute(stmt).scalars().all():
            traveler_user = trip.traveler.user
            common = shared_languages(guide.user.languages, traveler_user.languages)
            if not common:
                continue
            available.append(
                AvailableTrip(trip=trip, traveler_name=traveler_user.name, shared_languages=common)
            )

        logger.debug(
            f"Guide {guide.id} has {len(available)} available trips",
            extra={"guide_id": guide.id},
        )
        return available

    def accept_trip(self, trip_id: int, guide_id: int) -> Trip:
        """
        Assign the guide and confirm the trip in a single compare-and-swap.

        The UPDATE only matches while the trip is still PLANNING with no
        guide, so of two guides racing for the same trip exactly one wins
        and the other gets ConflictError. The guide row is locked and the
        UPDATE also requires the guide to be free, so one guide accepting two
        trips at once ends up with at most one of them.
        """
        guide = self.get_guide(guide_id, for_update=True)
        verification = verification_state(guide.verification)
        if verification.status != GuideVerificationStatus.VERIFIED:
            raise PreconditionFailedError(
                "Guide account is not verified",
                details={"guide_id": guide.id, "verification_status": verification.status.value},
            )
        trip = self.db.execute(
            select(Trip)
            .where(Trip.id == trip_id, Trip.needs_guide.is_(True))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if trip is None:
            raise NotFoundError("Trip", trip_id)

        if trip.guide_id is not None:
            raise ConflictError(
                "Trip already has a guide", details={"trip_id": trip.id}
            )

        busy = self.db.execute(
            select(Trip.id)
            .where(
                Trip.guide_id == guide.id,
                Trip.status.in_(ACTIVE_GUIDE_STATUSES),
            )
            .limit(1)
        ).first()
        if busy is not None:
            raise ConflictError(
                "Guide already has an active trip",
                details={"guide_id": guide.id, "active_trip_id": busy[0]},
            )

        apply_transition(
            self.db,
            trip,
            TripStatus.CONFIRMED,
            self.clock.now(),
            extra_conditions=[Trip.guide_id.is_(None), guide_is_free(guide.id)],
            guide_id=guide.id,
            booking_status=BookingStatus.ACCEPTED,
        )
        self.db.commit()
        self.db.refresh(trip)
        logger.info(
            f"Guide {guide.id} accepted trip {trip.id}",
            extra={"guide_id": guide.id, "trip_id": trip.id},
        )
        return trip

    def decline_trip(self, trip_id: int, guide_id: int) -> None:
        """Hide a trip from this guide's feed. Declining twice is a no-op."""
        guide = self.get_guide(guide_id)
        if self.db.get(Trip, trip_id) is None:
            raise NotFoundError("Trip", trip_id)

        exists = self.db.execute(
            select(GuideDeclination.id).where(
                GuideDeclination.guide_id == guide.id, GuideDeclination.trip_id == trip_id
            )
        ).first()
        if exists is not None:
            return

        self.db.add(GuideDeclination(guide_id=guide.id, trip_id=trip_id))
        try:
            self.db.commit()
        except IntegrityError:
            # Concurrent decline from the same guide already landed
            self.db.rollback()
            return
        logger.info(
            f"Guide {guide.id} declined trip {trip_id}",
            extra={"guide_id": guide.id, "trip_id": trip_id},
        )
