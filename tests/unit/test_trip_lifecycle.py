"""
Unit tests for the trip status transition table
"""
import pytest

from heritage_lanka.core.exceptions import ConflictError, InvalidTransitionError
from heritage_lanka.models.trip import BookingStatus, Trip, TripStatus
from heritage_lanka.services.trip_lifecycle import (
    STATUS_RANK,
    TRANSITIONS,
    apply_transition,
    can_transition,
    ensure_transition,
    is_terminal,
)
from tests.factories import NOW, make_traveler, make_trip


def test_every_transition_moves_forward():
    for current, targets in TRANSITIONS.items():
        for target in targets:
            assert STATUS_RANK[target] > STATUS_RANK[current]


@pytest.mark.parametrize("current,target", [
    (TripStatus.PLANNING, TripStatus.CONFIRMED),
    (TripStatus.PLANNING, TripStatus.CANCELLED),
    (TripStatus.CONFIRMED, TripStatus.IN_PROGRESS),
    (TripStatus.CONFIRMED, TripStatus.CANCELLED),
    (TripStatus.IN_PROGRESS, TripStatus.COMPLETED),
    (TripStatus.IN_PROGRESS, TripStatus.CANCELLED),
])
def test_allowed_transitions(current, target):
    assert can_transition(current, target)
    ensure_transition(current, target)


@pytest.mark.parametrize("current,target", [
    (TripStatus.PLANNING, TripStatus.IN_PROGRESS),
    (TripStatus.PLANNING, TripStatus.COMPLETED),
    (TripStatus.CONFIRMED, TripStatus.PLANNING),
    (TripStatus.IN_PROGRESS, TripStatus.CONFIRMED),
    (TripStatus.COMPLETED, TripStatus.CANCELLED),
    (TripStatus.CANCELLED, TripStatus.PLANNING),
])
def test_rejected_transitions(current, target):
    assert not can_transition(current, target)
    with pytest.raises(InvalidTransitionError) as exc_info:
        ensure_transition(current, target)
    assert exc_info.value.details == {
        "current_status": current.value,
        "target_status": target.value,
    }


def test_terminal_statuses():
    assert is_terminal(TripStatus.COMPLETED)
    assert is_terminal(TripStatus.CANCELLED)
    assert not is_terminal(TripStatus.IN_PROGRESS)
    assert TRANSITIONS[TripStatus.COMPLETED] == frozenset()


def test_apply_transition_updates_status_and_booking_track(db):
    trip = make_trip(db, make_traveler(db), status=TripStatus.IN_PROGRESS)

    apply_transition(db, trip, TripStatus.CANCELLED, NOW)
    db.commit()
    db.refresh(trip)

    assert trip.status == TripStatus.CANCELLED
    assert trip.booking_status == BookingStatus.CANCELLED


def test_apply_transition_conflicts_when_status_changed_underneath(db):
    trip = make_trip(db, make_traveler(db))
    stale = db.get(Trip, trip.id)

    # Another writer confirms the trip; our in-memory copy still says PLANNING
    db.execute(
        Trip.__table__.update().where(Trip.id == trip.id).values(status=TripStatus.CONFIRMED)
    )
    db.commit()

    with pytest.raises(ConflictError):
        apply_transition(db, stale, TripStatus.CONFIRMED, NOW)
