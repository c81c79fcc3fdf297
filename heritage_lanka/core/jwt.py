"""JWT issue / verify utilities (access & refresh tokens)"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Any, Optional
import jwt

from heritage_lanka.config.settings import get_settings

ALGORITHM = "HS256"


def _secrets():
    security = get_settings().security
    return security.jwt_secret, security.jwt_refresh_secret or security.jwt_secret


def _build_payload(subject: str, expires_minutes: int, token_type: str, role: Optional[str] = None) -> Dict[str, Any]:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": subject,
        "type": token_type,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }
    if role:
        payload["role"] = role
    return payload


def create_access_token(subject: str, role: str, expires_minutes: Optional[int] = None) -> str:
    minutes = expires_minutes or get_settings().security.access_token_minutes
    secret, _ = _secrets()
    return jwt.encode(_build_payload(subject, minutes, "access", role), secret, algorithm=ALGORITHM)


def create_refresh_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    minutes = expires_minutes or get_settings().security.refresh_token_minutes
    _, refresh_secret = _secrets()
    return jwt.encode(_build_payload(subject, minutes, "refresh"), refresh_secret, algorithm=ALGORITHM)


def decode_token(token: str, refresh: bool = False) -> Dict[str, Any] | None:
    secret, refresh_secret = _secrets()
    try:
        payload = jwt.decode(token, refresh_secret if refresh else secret, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        return None
    if payload.get("type") != ("refresh" if refresh else "access"):
        return None
    return payload
