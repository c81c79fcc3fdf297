"""
Shared fixtures: in-memory database, fixed clock and fake collaborators.

Environment is set before anything from ``heritage_lanka`` is imported, since
settings and the engine are created at import time.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECURITY_JWT_SECRET", "test-secret")
os.environ.setdefault("SECURITY_BCRYPT_ROUNDS", "4")
os.environ.setdefault("PAYMENT_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("ENVIRONMENT", "testing")

import pytest

from heritage_lanka.core.clock import FixedClock
from heritage_lanka.core.db import Base, SessionLocal, engine
from tests.factories import NOW, FakeCheckout, FakeMessenger


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def checkout():
    return FakeCheckout()


@pytest.fixture
def messenger():
    return FakeMessenger()
