from sqlalchemy.orm import relationship
from sqlalchemy import Column, String, Integer, DateTime, Boolean, Float, ForeignKey, Text, func, Enum as SQLEnum
import enum

from heritage_lanka.core.db import Base, JSONType


class UserRole(str, enum.Enum):
    TRAVELER = "TRAVELER"
    GUIDE = "GUIDE"
    ADMIN = "ADMIN"


class GuideVerificationStatus(str, enum.Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.TRAVELER)
    languages = Column(JSONType, nullable=False, default=list)
    country = Column(String(100), nullable=False, default="Sri Lanka")
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    traveler = relationship("Traveler", back_populates="user", uselist=False, cascade="all, delete")
    guide = relationship("Guide", back_populates="user", uselist=False, cascade="all, delete")

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} email={self.email} role={self.role}>"


class Traveler(Base):
    """Traveler profile keyed to a base user"""
    __tablename__ = "travelers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    trip_in_progress = Column(Boolean, nullable=False, default=False)
    rating = Column(Float, nullable=False, default=0.0)
    total_reviews = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="traveler")
    trips = relationship("Trip", back_populates="traveler", cascade="all, delete")


class Guide(Base):
    """
    Guide profile keyed to a base user.

    ``trip_in_progress`` mirrors whether one of the guide's trips is
    IN_PROGRESS; it is set and cleared by the trip transition gate.
    """
    __tablename__ = "guides"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    nic = Column(String(20), unique=True, nullable=False)
    rating = Column(Float, nullable=False, default=0.0)
    total_reviews = Column(Integer, nullable=False, default=0)
    trip_in_progress = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="guide")
    trips = relationship("Trip", back_populates="guide")
    verification = relationship(
        "GuideVerification", back_populates="guide", uselist=False, cascade="all, delete-orphan"
    )


class GuideVerification(Base):
    """
    Admin review of a guide account.

    Guides registered before reviews existed have no row and count as
    verified.
    """
    __tablename__ = "guide_verifications"

    id = Column(Integer, primary_key=True, index=True)
    guide_id = Column(Integer, ForeignKey("guides.id", ondelete="CASCADE"), unique=True, nullable=False)
    verification_status = Column(
        SQLEnum(GuideVerificationStatus), nullable=False, default=GuideVerificationStatus.PENDING, index=True
    )
    verified_at = Column(DateTime, nullable=True)
    verified_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    guide = relationship("Guide", back_populates="verification")
