"""
Unit tests for the start-of-trip OTP handshake
"""
import pytest

from heritage_lanka.config.settings import OtpSettings
from heritage_lanka.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    OtpExpiredError,
    OtpMismatchError,
    PreconditionFailedError,
    ValidationFailedError,
)
from heritage_lanka.models import PaymentStatus, TripStatus
from heritage_lanka.services.verification_service import VerificationService, generate_otp
from tests.factories import make_guide, make_payment, make_traveler, make_trip

KANDY = (7.2936, 80.6413)
NEAR_KANDY = (7.2950, 80.6420)
COLOMBO = (6.9271, 79.8612)


@pytest.fixture
def guided_trip(db):
    traveler = make_traveler(db)
    guide = make_guide(db)
    trip = make_trip(db, traveler, status=TripStatus.CONFIRMED, guide=guide)
    make_payment(db, trip)
    return trip


def test_generate_otp_is_four_digits():
    for _ in range(50):
        otp = generate_otp()
        assert len(otp) == 4
        assert 1000 <= int(otp) <= 9999


def test_issue_sets_thirty_minute_expiry(db, clock, guided_trip):
    verification = VerificationService(db, clock).issue_otp(guided_trip.id, guided_trip.traveler_id, *KANDY)

    assert verification.verified is False
    assert (verification.expires_at - clock.now()).total_seconds() == 30 * 60
    assert verification.traveler_latitude == KANDY[0]


def test_reissue_replaces_code_and_resets(db, clock, guided_trip):
    service = VerificationService(db, clock)
    first = service.issue_otp(guided_trip.id, guided_trip.traveler_id, *KANDY)
    first_id = first.id
    clock.advance(minutes=10)

    second = service.issue_otp(guided_trip.id, guided_trip.traveler_id, *NEAR_KANDY)

    assert second.id == first_id
    assert second.traveler_latitude == NEAR_KANDY[0]
    assert (second.expires_at - clock.now()).total_seconds() == 30 * 60


def test_issue_requires_confirmed_trip(db, clock):
    traveler = make_traveler(db)
    trip = make_trip(db, traveler, guide=make_guide(db))

    with pytest.raises(InvalidTransitionError):
        VerificationService(db, clock).issue_otp(trip.id, traveler.id, *KANDY)


def test_issue_requires_guide_and_payment(db, clock):
    traveler = make_traveler(db)
    self_guided = make_trip(db, traveler, status=TripStatus.CONFIRMED)
    make_payment(db, self_guided)
    unpaid = make_trip(db, traveler, status=TripStatus.CONFIRMED, guide=make_guide(db))
    make_payment(db, unpaid, status=PaymentStatus.PENDING)

    service = VerificationService(db, clock)
    with pytest.raises(PreconditionFailedError):
        service.issue_otp(self_guided.id, traveler.id, *KANDY)
    with pytest.raises(PreconditionFailedError):
        service.issue_otp(unpaid.id, traveler.id, *KANDY)


def test_issue_rejects_bad_coordinates(db, clock, guided_trip):
    with pytest.raises(ValidationFailedError):
        VerificationService(db, clock).issue_otp(guided_trip.id, guided_trip.traveler_id, 91.0, 80.0)


def test_verify_within_window(db, clock, guided_trip):
    service = VerificationService(db, clock)
    issued = service.issue_otp(guided_trip.id, guided_trip.traveler_id, *KANDY)
    clock.advance(minutes=29)

    verified = service.verify_otp(guided_trip.id, guided_trip.guide_id, issued.otp, *NEAR_KANDY)

    assert verified.verified is True
    assert verified.verified_at == clock.now()
    assert verified.guide_latitude == NEAR_KANDY[0]
    assert 0 < verified.distance_km < 1


def test_verify_after_window_expires(db, clock, guided_trip):
    service = VerificationService(db, clock)
    issued = service.issue_otp(guided_trip.id, guided_trip.traveler_id, *KANDY)
    clock.advance(minutes=31)

    with pytest.raises(OtpExpiredError):
        service.verify_otp(guided_trip.id, guided_trip.guide_id, issued.otp, *NEAR_KANDY)


def test_verify_wrong_code(db, clock, guided_trip):
    service = VerificationService(db, clock)
    issued = service.issue_otp(guided_trip.id, guided_trip.traveler_id, *KANDY)
    wrong = "1000" if issued.otp != "1000" else "1001"

    with pytest.raises(OtpMismatchError):
        service.verify_otp(guided_trip.id, guided_trip.guide_id, wrong, *NEAR_KANDY)


def test_verify_twice_is_rejected(db, clock, guided_trip):
    service = VerificationService(db, clock)
    issued = service.issue_otp(guided_trip.id, guided_trip.traveler_id, *KANDY)
    service.verify_otp(guided_trip.id, guided_trip.guide_id, issued.otp, *NEAR_KANDY)

    with pytest.raises(ValidationFailedError) as exc_info:
        service.verify_otp(guided_trip.id, guided_trip.guide_id, issued.otp, *NEAR_KANDY)
    assert exc_info.value.message == "OTP already verified"


def test_verify_only_by_assigned_guide(db, clock, guided_trip):
    service = VerificationService(db, clock)
    issued = service.issue_otp(guided_trip.id, guided_trip.traveler_id, *KANDY)
    stranger = make_guide(db)

    with pytest.raises(NotFoundError):
        service.verify_otp(guided_trip.id, stranger.id, issued.otp, *NEAR_KANDY)


def test_distance_recorded_but_not_enforced_by_default(db, clock, guided_trip):
    service = VerificationService(db, clock)
    issued = service.issue_otp(guided_trip.id, guided_trip.traveler_id, *KANDY)

    verified = service.verify_otp(guided_trip.id, guided_trip.guide_id, issued.otp, *COLOMBO)

    assert verified.verified is True
    assert verified.distance_km > 80


def test_distance_enforced_when_configured(db, clock, guided_trip):
    service = VerificationService(db, clock, otp_settings=OtpSettings(max_distance_km=1.0))
    issued = service.issue_otp(guided_trip.id, guided_trip.traveler_id, *KANDY)

    with pytest.raises(PreconditionFailedError):
        service.verify_otp(guided_trip.id, guided_trip.guide_id, issued.otp, *COLOMBO)
    verified = service.verify_otp(guided_trip.id, guided_trip.guide_id, issued.otp, *NEAR_KANDY)
    assert verified.verified is True
