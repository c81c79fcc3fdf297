"""
Trip model and its itinerary, verification and declination rows
"""
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Enum as SQLEnum, Text, Boolean, Float,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from heritage_lanka.core.db import Base, JSONType


class TripStatus(str, enum.Enum):
    """Trip lifecycle status"""
    PLANNING = "PLANNING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BookingStatus(str, enum.Enum):
    """Guide request track, separate from the trip lifecycle"""
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PlanningMode(str, enum.Enum):
    MANUAL = "MANUAL"
    AI_GENERATED = "AI_GENERATED"


class Trip(Base):
    """
    A booked itinerary owned by a traveler, optionally assigned a guide.

    Status only moves through the transition gate in
    ``heritage_lanka.services.trip_lifecycle``.
    """
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    traveler_id = Column(Integer, ForeignKey("travelers.id", ondelete="CASCADE"), nullable=False, index=True)
    guide_id = Column(Integer, ForeignKey("guides.id", ondelete="SET NULL"), nullable=True, index=True)
    from_date = Column(DateTime, nullable=False, index=True)
    to_date = Column(DateTime, nullable=False)
    number_of_people = Column(Integer, nullable=False, default=1)
    country = Column(String(100), nullable=False)
    preferences = Column(JSONType, nullable=True)
    plan_description = Column(Text, nullable=True)
    planning_mode = Column(SQLEnum(PlanningMode), nullable=False)

    # AI generated data
    ai_summary = Column(Text, nullable=True)
    ai_recommendations = Column(JSONType, nullable=True)
    feasibility_score = Column(Integer, nullable=True)
    daily_itinerary = Column(JSONType, nullable=True)

    total_distance = Column(Float, nullable=True)  # km
    needs_guide = Column(Boolean, nullable=False, default=False)

    status = Column(SQLEnum(TripStatus), default=TripStatus.PLANNING, nullable=False, index=True)
    booking_status = Column(SQLEnum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    traveler = relationship("Traveler", back_populates="trips")
    guide = relationship("Guide", back_populates="trips")
    locations = relationship(
        "TripLocation",
        back_populates="trip",
        cascade="all, delete-orphan",
        order_by=lambda: [TripLocation.day_number, TripLocation.visit_order],
    )
    verification = relationship(
        "TripVerification", back_populates="trip", uselist=False, cascade="all, delete"
    )
    payment = relationship("Payment", back_populates="trip", uselist=False, cascade="all, delete")
    declinations = relationship("GuideDeclination", cascade="all, delete")


class TripLocation(Base):
    """One stop of the itinerary; (day_number, visit_order) orders stops within a trip"""
    __tablename__ = "trip_locations"
    __table_args__ = (
        UniqueConstraint("trip_id", "day_number", "visit_order", name="uq_trip_location_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    address = Column(String(500), nullable=True)
    district = Column(String(100), nullable=True)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    category = Column(String(100), nullable=True)
    rating = Column(Float, nullable=True)
    estimated_duration = Column(String(100), nullable=True)
    reason_for_selection = Column(Text, nullable=True)
    day_number = Column(Integer, nullable=False)
    visit_order = Column(Integer, nullable=False)

    trip = relationship("Trip", back_populates="locations")


class TripVerification(Base):
    """Start-of-trip OTP issued to the traveler and redeemed by the guide"""
    __tablename__ = "trip_verifications"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), unique=True, nullable=False)
    otp = Column(String(4), nullable=False)
    traveler_latitude = Column(Float, nullable=False)
    traveler_longitude = Column(Float, nullable=False)
    guide_latitude = Column(Float, nullable=True)
    guide_longitude = Column(Float, nullable=True)
    distance_km = Column(Float, nullable=True)
    verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    trip = relationship("Trip", back_populates="verification")


class GuideDeclination(Base):
    """A guide's refusal of a trip; hides it from that guide's available list"""
    __tablename__ = "guide_declinations"
    __table_args__ = (
        UniqueConstraint("guide_id", "trip_id", name="uq_guide_declination"),
    )

    id = Column(Integer, primary_key=True, index=True)
    guide_id = Column(Integer, ForeignKey("guides.id", ondelete="CASCADE"), nullable=False, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
