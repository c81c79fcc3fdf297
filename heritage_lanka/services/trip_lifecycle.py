"""
Trip status transition table.

The only place that decides which status changes are legal. Status order is
PLANNING < CONFIRMED < IN_PROGRESS < {COMPLETED, CANCELLED}; every entry in
the table moves strictly forward.
"""
import logging
from datetime import datetime
from typing import Any, Dict, FrozenSet, Sequence

from sqlalchemy import update
from sqlalchemy.orm import Session

from heritage_lanka.core.exceptions import ConflictError, InvalidTransitionError
from heritage_lanka.models.trip import Trip, TripStatus, BookingStatus

logger = logging.getLogger(__name__)


TRANSITIONS: Dict[TripStatus, FrozenSet[TripStatus]] = {
    TripStatus.PLANNING: frozenset({TripStatus.CONFIRMED, TripStatus.CANCELLED}),
    TripStatus.CONFIRMED: frozenset({TripStatus.IN_PROGRESS, TripStatus.CANCELLED}),
    TripStatus.IN_PROGRESS: frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED}),
    TripStatus.COMPLETED: frozenset(),
    TripStatus.CANCELLED: frozenset(),
}

STATUS_RANK: Dict[TripStatus, int] = {
    TripStatus.PLANNING: 0,
    TripStatus.CONFIRMED: 1,
    TripStatus.IN_PROGRESS: 2,
    TripStatus.COMPLETED: 3,
    TripStatus.CANCELLED: 3,
}

TERMINAL_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})
DELETABLE_STATUSES = frozenset({TripStatus.PLANNING, TripStatus.CONFIRMED})

# Booking track follows the lifecycle on these moves
BOOKING_STATUS_ON_ENTER: Dict[TripStatus, BookingStatus] = {
    TripStatus.IN_PROGRESS: BookingStatus.CONFIRMED,
    TripStatus.COMPLETED: BookingStatus.COMPLETED,
    TripStatus.CANCELLED: BookingStatus.CANCELLED,
}


def can_transition(current: TripStatus, target: TripStatus) -> bool:
    return target in TRANSITIONS[TripStatus(current)]


def ensure_transition(current: TripStatus, target: TripStatus) -> None:
    """Raise InvalidTransitionError unless ``current -> target`` is in the table."""
    current = TripStatus(current)
    target = TripStatus(target)
    if not can_transition(current, target):
        raise InvalidTransitionError(
            current.value,
            target.value,
            message=f"Cannot move trip with status {current.value} to {target.value}",
        )


def is_terminal(status: TripStatus) -> bool:
    return TripStatus(status) in TERMINAL_STATUSES


def apply_transition(
    db: Session,
    trip: Trip,
    target: TripStatus,
    now: datetime,
    extra_conditions: Sequence[Any] = (),
    **values: Any,
) -> None:
    """
    Move ``trip`` to ``target`` with a conditional UPDATE.

    The write only lands if the row still has the status the caller read
    (plus any ``extra_conditions``); otherwise another writer got there
    first and ConflictError is raised. The caller commits and refreshes.
    """
    current = TripStatus(trip.status)
    ensure_transition(current, target)
    if target in BOOKING_STATUS_ON_ENTER:
        values.setdefault("booking_status", BOOKING_STATUS_ON_ENTER[target])

    stmt = (
        update(Trip)
        .where(Trip.id == trip.id, Trip.status == current, *extra_conditions)
        .values(status=target, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        db.rollback()
        logger.warning(
            f"Trip {trip.id} changed concurrently; {current.value} -> {target.value} not applied",
            extra={"trip_id": trip.id},
        )
        raise ConflictError(
            "Trip was modified by another request",
            details={"trip_id": trip.id, "expected_status": current.value},
        )
    logger.info(
        f"Trip {trip.id} moved {current.value} -> {target.value}",
        extra={"trip_id": trip.id, "from_status": current.value, "to_status": target.value},
    )
