"""
Security utilities for authentication.

Sign-up and sign-in happen at the external identity provider. This module
only verifies the JWTs it issues and turns them into an explicit session
object that is handed to the services as a plain user id.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from .config import settings


class SessionUser(BaseModel):
    """Identity extracted from a verified access token."""
    user_id: str
    email: Optional[str] = None


def create_access_token(
    data: dict,
    expires_delta: Optional[timedelta] = None
) -> str:
    """
    Create a JWT access token signed with the shared provider secret.

    Used for local development and tests; production tokens come from the
    identity provider.

    Args:
        data: Claims to encode in the token (``sub`` is required).
        expires_delta: Optional custom expiration time.

    Returns:
        str: Encoded JWT token.
    """
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode.update({"exp": expire})
    if settings.jwt_audience and "aud" not in to_encode:
        to_encode["aud"] = settings.jwt_audience

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def decode_access_token(token: str) -> Optional[SessionUser]:
    """
    Decode and validate a JWT access token.

    Args:
        token: JWT token string to decode.

    Returns:
        SessionUser: Decoded session, or None if invalid.
    """
    options = {"verify_aud": settings.jwt_audience is not None}
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options,
        )
    except JWTError:
        return None

    user_id = payload.get("sub")
    if user_id is None or str(user_id).strip() == "":
        return None

    return SessionUser(
        user_id=str(user_id),
        email=payload.get("email"),
    )
