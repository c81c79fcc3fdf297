"""
Unit tests for trip service lifecycle operations
"""
import pytest
from sqlalchemy import select

from heritage_lanka.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    PreconditionFailedError,
)
from heritage_lanka.models import (
    BookingStatus,
    Guide,
    Payment,
    PaymentStatus,
    Traveler,
    Trip,
    TripStatus,
    TripVerification,
)
from heritage_lanka.services.trip_service import TripService
from tests.factories import NOW, make_guide, make_payment, make_traveler, make_trip


def _verify(db, trip):
    db.add(TripVerification(
        trip_id=trip.id,
        otp="4821",
        traveler_latitude=7.29,
        traveler_longitude=80.64,
        verified=True,
        verified_at=NOW,
        expires_at=NOW,
    ))
    db.commit()


def test_get_trip_hides_other_travelers_trips(db):
    owner = make_traveler(db)
    other = make_traveler(db)
    trip = make_trip(db, owner)

    service = TripService(db)
    assert service.get_trip(trip.id, owner.id).id == trip.id
    with pytest.raises(NotFoundError):
        service.get_trip(trip.id, other.id)


def test_trip_detail_orders_locations_and_hides_guide_phone_until_started(db):
    traveler = make_traveler(db)
    guide = make_guide(db)
    trip = make_trip(
        db, traveler, status=TripStatus.CONFIRMED, guide=guide,
        locations=[("Sigiriya", 2), ("Temple of the Tooth", 1), ("Dambulla", 2)],
    )

    detail = TripService(db).get_trip_detail(trip.id, traveler.id)

    assert [(loc.day_number, loc.title) for loc in detail.trip.locations] == [
        (1, "Temple of the Tooth"), (2, "Sigiriya"), (2, "Dambulla"),
    ]
    assert detail.guide.name == "Kamal"
    assert detail.guide.phone is None
    assert detail.payment is None


def test_list_traveler_trips_filters_by_status(db):
    traveler = make_traveler(db)
    planning = make_trip(db, traveler)
    make_trip(db, traveler, status=TripStatus.CANCELLED)

    service = TripService(db)
    assert len(service.list_traveler_trips(traveler.id)) == 2
    only_planning = service.list_traveler_trips(traveler.id, TripStatus.PLANNING)
    assert [t.id for t in only_planning] == [planning.id]


def test_confirm_self_guided_trip(db, clock):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler)

    confirmed = TripService(db, clock).confirm_trip(trip.id, traveler.id)

    assert confirmed.status == TripStatus.CONFIRMED


def test_confirm_guided_trip_requires_guide_acceptance(db, clock):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler, needs_guide=True)

    with pytest.raises(PreconditionFailedError):
        TripService(db, clock).confirm_trip(trip.id, traveler.id)


def test_start_requires_paid_payment(db, clock):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler, status=TripStatus.CONFIRMED)
    make_payment(db, trip, status=PaymentStatus.PENDING)

    with pytest.raises(PreconditionFailedError):
        TripService(db, clock).start_trip(trip.id, traveler.id)


def test_start_from_planning_is_invalid_transition(db, clock):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler)

    with pytest.raises(InvalidTransitionError):
        TripService(db, clock).start_trip(trip.id, traveler.id)


def test_start_guided_trip_requires_verified_otp(db, clock):
    traveler = make_traveler(db)
    guide = make_guide(db)
    trip = make_trip(db, traveler, status=TripStatus.CONFIRMED, guide=guide)
    make_payment(db, trip)

    with pytest.raises(PreconditionFailedError):
        TripService(db, clock).start_trip(trip.id, traveler.id)


def test_start_guided_trip_sets_in_progress_flags(db, clock):
    traveler = make_traveler(db)
    guide = make_guide(db)
    trip = make_trip(db, traveler, status=TripStatus.CONFIRMED, guide=guide)
    make_payment(db, trip)
    _verify(db, trip)

    started = TripService(db, clock).start_trip(trip.id, traveler.id)

    assert started.status == TripStatus.IN_PROGRESS
    assert started.booking_status == BookingStatus.CONFIRMED
    db.refresh(traveler)
    db.refresh(guide)
    assert traveler.trip_in_progress is True
    assert guide.trip_in_progress is True

    detail = TripService(db).get_trip_detail(trip.id, traveler.id)
    assert detail.guide.phone == "+94 71 765 4321"


def test_start_refused_while_another_trip_in_progress(db, clock):
    traveler = make_traveler(db)
    make_trip(db, traveler, status=TripStatus.IN_PROGRESS)
    trip = make_trip(db, traveler, status=TripStatus.CONFIRMED)
    make_payment(db, trip)

    with pytest.raises(PreconditionFailedError):
        TripService(db, clock).start_trip(trip.id, traveler.id)


def test_complete_guided_trip_releases_payment_and_clears_flags(db, clock):
    traveler = make_traveler(db)
    guide = make_guide(db)
    trip = make_trip(db, traveler, status=TripStatus.IN_PROGRESS, guide=guide)
    payment = make_payment(db, trip)
    db.execute(Traveler.__table__.update().values(trip_in_progress=True))
    db.execute(Guide.__table__.update().values(trip_in_progress=True))
    db.commit()

    completed = TripService(db, clock).complete_trip(trip.id, traveler.id)

    assert completed.status == TripStatus.COMPLETED
    assert completed.booking_status == BookingStatus.COMPLETED
    db.refresh(payment)
    assert payment.status == PaymentStatus.RELEASED
    assert payment.released_at == NOW
    db.refresh(traveler)
    db.refresh(guide)
    assert traveler.trip_in_progress is False
    assert guide.trip_in_progress is False


def test_complete_self_guided_trip_keeps_payment_paid(db, clock):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler, status=TripStatus.IN_PROGRESS)
    payment = make_payment(db, trip)

    TripService(db, clock).complete_trip(trip.id, traveler.id)

    db.refresh(payment)
    assert payment.status == PaymentStatus.PAID


def test_complete_requires_in_progress(db, clock):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler, status=TripStatus.CONFIRMED)

    with pytest.raises(InvalidTransitionError):
        TripService(db, clock).complete_trip(trip.id, traveler.id)


def test_cancel_cancels_pending_payment(db, clock):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler, status=TripStatus.CONFIRMED)
    payment = make_payment(db, trip, status=PaymentStatus.PENDING)

    cancelled = TripService(db, clock).cancel_trip(trip.id, traveler.id)

    assert cancelled.status == TripStatus.CANCELLED
    db.refresh(payment)
    assert payment.status == PaymentStatus.CANCELLED


def test_cancel_terminal_trip_is_rejected(db, clock):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler, status=TripStatus.COMPLETED)

    with pytest.raises(InvalidTransitionError):
        TripService(db, clock).cancel_trip(trip.id, traveler.id)


def test_delete_planning_trip_removes_locations(db):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler, locations=[("Galle Fort", 1)])

    TripService(db).delete_trip(trip.id, traveler.id)

    assert db.execute(select(Trip).where(Trip.id == trip.id)).first() is None


def test_delete_in_progress_trip_is_rejected(db):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler, status=TripStatus.IN_PROGRESS)

    with pytest.raises(InvalidTransitionError):
        TripService(db).delete_trip(trip.id, traveler.id)


def test_delete_paid_trip_is_rejected(db):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler, status=TripStatus.CONFIRMED)
    make_payment(db, trip)

    with pytest.raises(PreconditionFailedError):
        TripService(db).delete_trip(trip.id, traveler.id)
    assert db.execute(select(Payment).where(Payment.trip_id == trip.id)).first() is not None


def test_guide_job_statistics(db):
    guide = make_guide(db)
    other = make_guide(db)
    for status in (TripStatus.CONFIRMED, TripStatus.CONFIRMED, TripStatus.IN_PROGRESS,
                   TripStatus.COMPLETED, TripStatus.CANCELLED):
        make_trip(db, make_traveler(db), status=status, guide=guide)
    make_trip(db, make_traveler(db), status=TripStatus.COMPLETED, guide=other)

    stats = TripService(db).guide_job_statistics(guide.id)

    assert (stats.in_progress, stats.completed, stats.cancelled, stats.upcoming, stats.total) == (1, 1, 1, 2, 5)


def test_guide_dashboard_shows_current_trip(db):
    guide = make_guide(db)
    traveler = make_traveler(db, name="Sunethra", phone="+94770001111")
    current = make_trip(db, traveler, status=TripStatus.IN_PROGRESS, guide=guide,
                        locations=[("Sigiriya", 1), ("Dambulla", 1)])
    make_trip(db, make_traveler(db), status=TripStatus.CONFIRMED, guide=guide)

    dashboard = TripService(db).guide_dashboard(guide.id)

    assert dashboard.current_trip.id == current.id
    assert dashboard.current_traveler_name == "Sunethra"
    assert dashboard.current_traveler_phone == "+94770001111"
    assert [loc.title for loc in dashboard.current_trip.locations] == ["Sigiriya", "Dambulla"]
    assert dashboard.statistics.upcoming == 1


def test_guide_dashboard_without_active_trip(db):
    guide = make_guide(db)

    dashboard = TripService(db).guide_dashboard(guide.id)

    assert dashboard.current_trip is None
    assert dashboard.statistics.total == 0
    with pytest.raises(NotFoundError):
        TripService(db).guide_dashboard(999)
