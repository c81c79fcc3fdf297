from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from heritage_lanka.models.review import ReviewerType


class ReviewCreate(BaseModel):
    trip_id: int
    rating: int
    comment: Optional[str] = None


class ReviewUpdate(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = Field(None)


class ReviewRead(BaseModel):
    id: int
    trip_id: int
    reviewer_id: int
    reviewee_id: int
    reviewer_type: ReviewerType
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReviewEligibilityRead(BaseModel):
    can_review: bool
    reason: Optional[str] = None
    reviewer_type: Optional[ReviewerType] = None
    reviewee_user_id: Optional[int] = None

    class Config:
        from_attributes = True
