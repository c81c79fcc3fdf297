"""
Review Service - post-trip ratings between traveler and guide
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from heritage_lanka.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PreconditionFailedError,
    ValidationFailedError,
)
from heritage_lanka.models.review import Review, ReviewerType
from heritage_lanka.models.trip import Trip
from heritage_lanka.models.user import Guide, Traveler
from heritage_lanka.services.trip_lifecycle import is_terminal

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 500


@dataclass
class ReviewEligibility:
    can_review: bool
    reason: Optional[str] = None
    reviewer_type: Optional[ReviewerType] = None
    reviewee_user_id: Optional[int] = None


def validate_review_input(rating: Optional[int], comment: Optional[str]) -> None:
    if rating is not None and not 1 <= rating <= 5:
        raise ValidationFailedError("Rating must be between 1 and 5", details={"rating": rating})
    if comment is not None and len(comment) > MAX_COMMENT_LENGTH:
        raise ValidationFailedError(
            f"Comment must be at most {MAX_COMMENT_LENGTH} characters",
            details={"length": len(comment)},
        )


class ReviewService:
    """Participants of a finished guided trip rate each other once"""

    def __init__(self, db: Session):
        self.db = db

    def check_review_eligibility(self, trip_id: int, user_id: int) -> ReviewEligibility:
        """
        Decide whether ``user_id`` may review ``trip_id`` and who the reviewee is.

        Args:
            trip_id: Trip ID
            user_id: Base user ID of the would-be reviewer

        Returns:
            Eligibility with a refusal reason when not allowed
        """
        trip = self.db.execute(
            select(Trip)
            .where(Trip.id == trip_id)
            .options(selectinload(Trip.traveler), selectinload(Trip.guide))
        ).scalar_one_or_none()
        if trip is None:
            return ReviewEligibility(False, "Trip not found")
        if not is_terminal(trip.status):
            return ReviewEligibility(False, "Trip must be completed or cancelled")
        if trip.guide is None:
            return ReviewEligibility(False, "Trip has no guide")

        traveler_user_id = trip.traveler.user_id
        guide_user_id = trip.guide.user_id
        if user_id == traveler_user_id:
            reviewer_type, reviewee = ReviewerType.TRAVELER, guide_user_id
        elif user_id == guide_user_id:
            reviewer_type, reviewee = ReviewerType.GUIDE, traveler_user_id
        else:
            return ReviewEligibility(False, "Not a participant of this trip")

        already = self.db.execute(
            select(Review.id).where(Review.trip_id == trip.id, Review.reviewer_id == user_id)
        ).first()
        if already is not None:
            return ReviewEligibility(False, "Already reviewed")

        return ReviewEligibility(True, reviewer_type=reviewer_type, reviewee_user_id=reviewee)

    def submit_review(
        self, user_id: int, trip_id: int, rating: int, comment: Optional[str] = None
    ) -> Review:
        validate_review_input(rating, comment)
        eligibility = self.check_review_eligibility(trip_id, user_id)
        if not eligibility.can_review:
            if eligibility.reason == "Trip not found":
                raise NotFoundError("Trip", trip_id)
            if eligibility.reason == "Already reviewed":
                raise ConflictError("You have already reviewed this trip", details={"trip_id": trip_id})
            if eligibility.reason == "Not a participant of this trip":
                raise AuthorizationError(eligibility.reason, details={"trip_id": trip_id})
            raise PreconditionFailedError(eligibility.reason, details={"trip_id": trip_id})

        review = Review(
            trip_id=trip_id,
            reviewer_id=user_id,
            reviewee_id=eligibility.reviewee_user_id,
            reviewer_type=eligibility.reviewer_type,
            rating=rating,
            comment=comment,
        )
        self.db.add(review)
        try:
            self.db.flush()
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(
                "You have already reviewed this trip", details={"trip_id": trip_id}
            ) from exc

        self._recalculate_rating(eligibility.reviewee_user_id, eligibility.reviewer_type)
        self.db.commit()
        self.db.refresh(review)
        logger.info(
            f"Review {review.id} submitted for trip {trip_id}",
            extra={"trip_id": trip_id, "reviewer_id": user_id, "rating": rating},
        )
        return review

    def update_review(
        self,
        user_id: int,
        review_id: int,
        rating: Optional[int] = None,
        comment: Optional[str] = None,
    ) -> Review:
        validate_review_input(rating, comment)
        review = self.db.get(Review, review_id)
        if review is None:
            raise NotFoundError("Review", review_id)
        if review.reviewer_id != user_id:
            raise AuthorizationError("You can only edit your own reviews")

        if rating is not None:
            review.rating = rating
        if comment is not None:
            review.comment = comment
        self.db.flush()
        self._recalculate_rating(review.reviewee_id, review.reviewer_type)
        self.db.commit()
        self.db.refresh(review)
        return review

    def list_reviews_given(self, user_id: int) -> List[Review]:
        stmt = select(Review).where(Review.reviewer_id == user_id).order_by(Review.created_at.desc())
        return list(self.db.execute(stmt).scalars().all())

    def list_reviews_received(self, user_id: int) -> List[Review]:
        stmt = select(Review).where(Review.reviewee_id == user_id).order_by(Review.created_at.desc())
        return list(self.db.execute(stmt).scalars().all())

    def _recalculate_rating(self, reviewee_user_id: int, reviewer_type: ReviewerType) -> None:
        """Travelers rate guides and guides rate travelers; refresh that profile's average"""
        average, count = self.db.execute(
            select(func.avg(Review.rating), func.count(Review.id)).where(
                Review.reviewee_id == reviewee_user_id,
                Review.reviewer_type == reviewer_type,
            )
        ).one()

        profile_model = Guide if reviewer_type == ReviewerType.TRAVELER else Traveler
        profile = self.db.execute(
            select(profile_model).where(profile_model.user_id == reviewee_user_id)
        ).scalar_one_or_none()
        if profile is None:
            return
        profile.rating = round(float(average or 0), 2)
        profile.total_reviews = count
