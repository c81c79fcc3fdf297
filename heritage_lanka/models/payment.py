from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Float, Enum as SQLEnum, CheckConstraint, func,
)
from sqlalchemy.orm import relationship
import enum

from heritage_lanka.core.db import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    RELEASED = "RELEASED"
    CANCELLED = "CANCELLED"


class Payment(Base):
    """
    A checkout for either a trip or an event ticket purchase, never both.
    A trip has at most one payment row.
    """
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint(
            "(trip_id IS NULL) <> (event_id IS NULL)",
            name="ck_payment_single_target",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), unique=True, nullable=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=True, index=True)
    traveler_id = Column(Integer, ForeignKey("travelers.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Float, nullable=False)
    currency = Column(String(8), nullable=False, default="lkr")
    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING, index=True)
    checkout_session_id = Column(String(255), unique=True, nullable=True)
    ticket_quantity = Column(Integer, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    released_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    trip = relationship("Trip", back_populates="payment")
    event = relationship("Event")
