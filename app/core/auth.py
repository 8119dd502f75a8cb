"""Authentication utilities"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request
from jose import JWTError, jwt

from app.core.config import Settings
from app.exceptions import AuthError

logger = logging.getLogger(__name__)

ANONYMOUS_USER_ID = "anonymous"
ADMIN_ROLES = frozenset({"admin", "super_admin"})


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str, settings: Settings) -> dict:
    """Decode and verify JWT token"""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as e:
        raise AuthError() from e


def extract_token(request: Request) -> Optional[str]:
    """Read the token from ``Authorization``; accepts ``Bearer <t>`` and bare ``<t>``."""
    header = request.headers.get("authorization")
    if not header:
        return None
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return header.strip() or None


def anonymous_user() -> dict:
    return {"user_id": ANONYMOUS_USER_ID, "role": "anonymous", "auth_type": "anonymous"}


def resolve_user(request: Request, settings: Settings) -> dict:
    """
    Identify the caller.

    No token gives the anonymous user.

    Raises:
        AuthError: token present but invalid or without a subject
    """
    token = extract_token(request)
    if token is None:
        return anonymous_user()

    payload = decode_access_token(token, settings)
    user_id = payload.get("sub") or payload.get("id")
    if not user_id:
        raise AuthError("Invalid token format")

    return {
        "user_id": str(user_id),
        "email": payload.get("email"),
        "role": payload.get("role", "user"),
        "auth_type": "jwt",
    }


def try_resolve_user(request: Request, settings: Settings) -> Optional[dict]:
    """Like ``resolve_user`` but returns None for a bad token instead of raising."""
    try:
        return resolve_user(request, settings)
    except AuthError:
        return None


def is_admin(user: Optional[dict]) -> bool:
    return bool(user) and user.get("role") in ADMIN_ROLES
