"""
Session gate and cookie helpers.

Protected routes depend on ``get_current_user``, which reads the session
cookie, verifies the signed token and yields a trusted UserContext. Handlers
never look at the cookie themselves.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from fastapi import Response, Security
from fastapi.security import APIKeyCookie

from app.core.config import settings
from app.core.errors import AuthenticationFailure
from app.services.jwt_service import jwt_service

session_cookie = APIKeyCookie(name=settings.COOKIE_NAME, auto_error=False)


@dataclass
class UserContext:
    """
    Identity established by a verified session cookie.

    Attributes:
        user_id: Unique identifier for the user (token ``sub``)
        email: Email stored in the token at issue time
    """

    user_id: str
    email: str | None = None


async def get_current_user(
    token: str | None = Security(session_cookie),
) -> UserContext:
    """
    Verify the session cookie and return the caller's identity.

    Raises:
        AuthenticationFailure: 401 if the cookie is missing, tampered with or expired.
    """
    if not token:
        raise AuthenticationFailure("Token Not Received")

    payload = jwt_service.verify_session_token(token)
    if not payload:
        raise AuthenticationFailure("Token Expired or Malfunctioned")

    return UserContext(user_id=payload["sub"], email=payload.get("email"))


def set_session_cookie(response: Response, token: str) -> None:
    """Attach the session token as an httpOnly, SameSite=Lax cookie valid for SESSION_TTL_DAYS."""
    expires = datetime.now(UTC) + timedelta(days=settings.SESSION_TTL_DAYS)
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        path="/",
        domain=settings.COOKIE_DOMAIN,
        max_age=settings.session_ttl_seconds,
        expires=expires,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    """Expire the session cookie immediately."""
    response.delete_cookie(
        key=settings.COOKIE_NAME,
        path="/",
        domain=settings.COOKIE_DOMAIN,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
