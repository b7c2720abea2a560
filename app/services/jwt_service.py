"""
JWT token service for cookie sessions.

Issues and validates the signed, time-limited token stored in the session cookie.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt

from app.core.config import settings


class JWTService:
    """
    Service for creating and validating session tokens.

    A session token carries the user's id (``sub``) and email and expires
    after ``SESSION_TTL_DAYS`` unless a different ttl is given.
    """

    TOKEN_TYPE_SESSION = "session"

    @staticmethod
    def issue_session_token(
        user_id: str,
        email: str,
        ttl: timedelta | None = None,
    ) -> str:
        """
        Create a session token.

        Args:
            user_id: User's unique identifier.
            email: User's email address.
            ttl: Token lifetime (defaults to SESSION_TTL_DAYS).

        Returns:
            Encoded JWT.
        """
        now = datetime.now(UTC)
        expire = now + (ttl or timedelta(days=settings.SESSION_TTL_DAYS))

        payload = {
            "sub": user_id,
            "email": email,
            "type": JWTService.TOKEN_TYPE_SESSION,
            "exp": expire,
            "iat": now,
        }

        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    @staticmethod
    def verify_token(token: str) -> dict[str, Any] | None:
        """
        Verify and decode a JWT token.

        Returns:
            Decoded payload if valid, None if invalid or expired.
        """
        try:
            return jwt.decode(
                token,
                settings.JWT_SECRET_KEY,
                algorithms=[settings.JWT_ALGORITHM],
            )
        except JWTError:
            return None

    @staticmethod
    def verify_session_token(token: str) -> dict[str, Any] | None:
        """Verify a session token specifically (rejects other token types)."""
        payload = JWTService.verify_token(token)
        if payload and payload.get("type") == JWTService.TOKEN_TYPE_SESSION and payload.get("sub"):
            return payload
        return None


# Global instance
jwt_service = JWTService()
