"""
Review API endpoints - post-trip ratings for both participants
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from heritage_lanka.core.db import get_db
from heritage_lanka.core.dependencies import get_current_user
from heritage_lanka.models.user import User
from heritage_lanka.schemas.base import Envelope
from heritage_lanka.schemas.review import (
    ReviewCreate,
    ReviewEligibilityRead,
    ReviewRead,
    ReviewUpdate,
)
from heritage_lanka.services.review_service import ReviewService

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.get("/eligibility/{trip_id}", response_model=Envelope[ReviewEligibilityRead])
def check_eligibility(
    trip_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    eligibility = ReviewService(db).check_review_eligibility(trip_id, user.id)
    return Envelope(status="ok", data=ReviewEligibilityRead.model_validate(eligibility))


@router.post("", response_model=Envelope[ReviewRead], status_code=status.HTTP_201_CREATED)
def submit_review(
    payload: ReviewCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    review = ReviewService(db).submit_review(user.id, payload.trip_id, payload.rating, payload.comment)
    return Envelope(status="ok", data=ReviewRead.model_validate(review))


@router.put("/{review_id}", response_model=Envelope[ReviewRead])
def update_review(
    review_id: int,
    payload: ReviewUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    review = ReviewService(db).update_review(user.id, review_id, payload.rating, payload.comment)
    return Envelope(status="ok", data=ReviewRead.model_validate(review))


@router.get("/given", response_model=Envelope[list[ReviewRead]])
def list_given(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    reviews = ReviewService(db).list_reviews_given(user.id)
    return Envelope(status="ok", data=[ReviewRead.model_validate(r) for r in reviews])


@router.get("/received", response_model=Envelope[list[ReviewRead]])
def list_received(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    reviews = ReviewService(db).list_reviews_received(user.id)
    return Envelope(status="ok", data=[ReviewRead.model_validate(r) for r in reviews])
