"""Authentication endpoints: registration, login and token refresh."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from heritage_lanka.core.db import get_db
from heritage_lanka.core.dependencies import get_current_user
from heritage_lanka.core.exceptions import ConflictError
from heritage_lanka.core.jwt import create_access_token, create_refresh_token, decode_token
from heritage_lanka.core.security import hash_password, verify_password
from heritage_lanka.models.user import (
    Guide,
    GuideVerification,
    GuideVerificationStatus,
    Traveler,
    User,
    UserRole,
)
from heritage_lanka.schemas.base import Envelope
from heritage_lanka.schemas.user import LoginRequest, Token, TokenRefresh, UserCreate, UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


def _envelope(data=None, error: str | None = None, status: str = "ok"):
    return {"status": status, "data": data, "error": error}


def _tokens(user: User) -> Token:
    return Token(
        access_token=create_access_token(str(user.id), user.role.value),
        refresh_token=create_refresh_token(str(user.id)),
    )


@router.post("/register", response_model=Envelope, status_code=status.HTTP_201_CREATED)
def register_user(payload: UserCreate, db: Session = Depends(get_db)):
    existing = db.execute(select(User).where(User.email == payload.email)).scalar_one_or_none()
    if existing:
        raise ConflictError("Email already registered")
    if payload.role == UserRole.GUIDE:
        taken = db.execute(select(Guide.id).where(Guide.nic == payload.nic)).first()
        if taken:
            raise ConflictError("NIC already registered")

    user = User(
        email=payload.email,
        hashed_password=hash_password(payload.password),
        name=payload.name,
        phone=payload.phone,
        role=payload.role,
        languages=payload.languages,
        country=payload.country,
    )
    if payload.role == UserRole.GUIDE:
        # New guides wait for an admin before they can accept trips
        user.guide = Guide(
            nic=payload.nic,
            verification=GuideVerification(verification_status=GuideVerificationStatus.PENDING),
        )
    else:
        user.traveler = Traveler()
    db.add(user)
    db.commit()
    db.refresh(user)
    return _envelope(data={"user": UserRead.model_validate(user), "token": _tokens(user)})


@router.post("/login", response_model=Envelope)
def login_user(payload: LoginRequest, db: Session = Depends(get_db)):
    user = db.execute(select(User).where(User.email == payload.email)).scalar_one_or_none()
    if not user or not verify_password(payload.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _envelope(data={"user": UserRead.model_validate(user), "token": _tokens(user)})


@router.post("/refresh", response_model=Envelope)
def refresh_token(payload: TokenRefresh, db: Session = Depends(get_db)):
    decoded = decode_token(payload.refresh_token, refresh=True)
    if not decoded:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    subject = str(decoded.get("sub", ""))
    user = db.get(User, int(subject)) if subject.isdigit() else None
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return _envelope(data={"token": _tokens(user)})


@router.get("/me", response_model=Envelope)
def get_me(user: User = Depends(get_current_user)):
    return _envelope(data={"user": UserRead.model_validate(user)})
