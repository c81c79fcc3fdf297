from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text, Enum as SQLEnum, UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
import enum

from heritage_lanka.core.db import Base


class ReviewerType(str, enum.Enum):
    TRAVELER = "TRAVELER"
    GUIDE = "GUIDE"


class Review(Base):
    """One participant's rating of the other for a finished trip"""
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("trip_id", "reviewer_id", name="uq_review_trip_reviewer"),
    )

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewee_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_type = Column(SQLEnum(ReviewerType), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    trip = relationship("Trip")
    reviewer = relationship("User", foreign_keys=[reviewer_id])
    reviewee = relationship("User", foreign_keys=[reviewee_id])
