"""
Dependency providers for FastAPI.

Authentication resolves the bearer token to a user; role guards then load
the caller's traveler or guide profile. Collaborator clients are provided
here so tests can override them.
"""

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session
from typing import Optional
import logging

from heritage_lanka.core.db import get_db
from heritage_lanka.core.exceptions import AuthorizationError, NotFoundError
from heritage_lanka.core.jwt import decode_token
from heritage_lanka.models.user import Guide, Traveler, User, UserRole
from heritage_lanka.services.checkout_client import CheckoutClient, CheckoutProcessor
from heritage_lanka.services.plan_generator import PlanGenerator

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Resolve the bearer token to a user.

    Raises:
        HTTPException: 401 when the token is missing, invalid or orphaned
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = decode_token(credentials.credentials)
    if not payload or "sub" not in payload:
        raise HTTPException(status_code=401, detail="Invalid authentication token")

    user = db.get(User, int(payload["sub"])) if str(payload["sub"]).isdigit() else None
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def require_role(*roles: UserRole):
    """Dependency factory: the caller must hold one of ``roles``"""

    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            logger.warning(
                f"User {user.id} with role {user.role.value} denied",
                extra={"user_id": user.id, "required_roles": [r.value for r in roles]},
            )
            raise AuthorizationError(
                "Insufficient role for this operation",
                details={"required_roles": [r.value for r in roles]},
            )
        return user

    return checker


require_admin = require_role(UserRole.ADMIN)


def get_current_traveler(
    user: User = Depends(require_role(UserRole.TRAVELER)),
    db: Session = Depends(get_db),
) -> Traveler:
    traveler = db.execute(select(Traveler).where(Traveler.user_id == user.id)).scalar_one_or_none()
    if traveler is None:
        raise NotFoundError("Traveler", message="Traveler profile not found")
    return traveler


def get_current_guide(
    user: User = Depends(require_role(UserRole.GUIDE)),
    db: Session = Depends(get_db),
) -> Guide:
    guide = db.execute(select(Guide).where(Guide.user_id == user.id)).scalar_one_or_none()
    if guide is None:
        raise NotFoundError("Guide", message="Guide profile not found")
    return guide


def get_checkout_client() -> CheckoutProcessor:
    return CheckoutClient()


def get_plan_generator() -> PlanGenerator:
    return PlanGenerator()
