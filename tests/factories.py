"""Row builders and collaborator doubles shared by the test suite"""
from datetime import datetime, timedelta
from itertools import count

from heritage_lanka.core.exceptions import UpstreamFailureError
from heritage_lanka.core.security import hash_password
from heritage_lanka.models import (
    Guide,
    GuideVerification,
    GuideVerificationStatus,
    Payment,
    PaymentStatus,
    PlanningMode,
    Traveler,
    Trip,
    TripLocation,
    TripStatus,
    User,
    UserRole,
)
from heritage_lanka.services.checkout_client import CheckoutSession

NOW = datetime(2026, 3, 10, 6, 0)
PASSWORD = "Passw0rd!"

_sequence = count(1)


class FakeCheckout:
    """Checkout processor double that hands out predictable session ids"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sessions = []

    def create_session(self, amount, description, metadata, success_url, cancel_url):
        if self.fail:
            raise UpstreamFailureError("checkout", "Checkout processor timed out")
        session = CheckoutSession(
            id=f"cs_test_{len(self.sessions) + 1}",
            url=f"https://checkout.example.com/pay/{len(self.sessions) + 1}",
        )
        self.sessions.append({"id": session.id, "amount": amount, "metadata": metadata})
        return session


class FakeMessenger:
    """Records messages; recipients listed in ``failing`` raise upstream errors"""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent = []

    def send_message(self, recipient, text):
        if recipient in self.failing:
            raise UpstreamFailureError("whatsapp", "WhatsApp API returned 503")
        self.sent.append((recipient, text))


def make_user(db, role=UserRole.TRAVELER, name="Nimal", email=None, phone="+94 77 123 4567",
              languages=("English",)):
    user = User(
        email=email or f"user{next(_sequence)}@example.com",
        hashed_password=hash_password(PASSWORD),
        name=name,
        phone=phone,
        role=role,
        languages=list(languages),
        country="Sri Lanka",
    )
    db.add(user)
    db.flush()
    return user


def make_traveler(db, name="Nimal", languages=("English",), phone="+94 77 123 4567", email=None):
    user = make_user(db, UserRole.TRAVELER, name=name, email=email, phone=phone, languages=languages)
    traveler = Traveler(user_id=user.id)
    db.add(traveler)
    db.commit()
    db.refresh(traveler)
    return traveler


def make_guide(db, name="Kamal", languages=("English",), phone="+94 71 765 4321", email=None,
               verification=None):
    """A guide; with no ``verification`` status the guide has no review record (legacy)"""
    user = make_user(db, UserRole.GUIDE, name=name, email=email, phone=phone, languages=languages)
    guide = Guide(user_id=user.id, nic=f"NIC{next(_sequence):06d}")
    if verification is not None:
        guide.verification = GuideVerification(verification_status=GuideVerificationStatus(verification))
    db.add(guide)
    db.commit()
    db.refresh(guide)
    return guide


def make_admin(db, name="Admin", email=None):
    user = make_user(db, UserRole.ADMIN, name=name, email=email)
    db.commit()
    db.refresh(user)
    return user


def make_trip(db, traveler, status=TripStatus.PLANNING, guide=None, needs_guide=False,
              from_date=None, days=3, locations=(), total_distance=120.0, number_of_people=2):
    start = from_date or NOW + timedelta(days=7)
    trip = Trip(
        traveler_id=traveler.id,
        guide_id=guide.id if guide else None,
        from_date=start,
        to_date=start + timedelta(days=days - 1),
        number_of_people=number_of_people,
        country="Sri Lanka",
        preferences=["culture"],
        planning_mode=PlanningMode.MANUAL,
        needs_guide=needs_guide or guide is not None,
        total_distance=total_distance,
        status=status,
    )
    for index, (title, day_number) in enumerate(locations, start=1):
        trip.locations.append(
            TripLocation(
                title=title,
                latitude=7.2936,
                longitude=80.6413,
                day_number=day_number,
                visit_order=index,
            )
        )
    db.add(trip)
    db.commit()
    db.refresh(trip)
    return trip


def make_payment(db, trip, status=PaymentStatus.PAID, session_id=None):
    payment = Payment(
        trip_id=trip.id,
        traveler_id=trip.traveler_id,
        amount=6200.0,
        currency="lkr",
        status=status,
        checkout_session_id=session_id or f"cs_seed_{next(_sequence)}",
        paid_at=NOW if status in (PaymentStatus.PAID, PaymentStatus.RELEASED) else None,
    )
    db.add(payment)
    db.commit()
    db.refresh(payment)
    return payment
