"""
Account service.

Handles:
- Signup (duplicate email -> Conflict)
- Login (unknown email -> Conflict, wrong password -> CredentialMismatch)
- Session status lookups
- User listing
"""

import logging

import bcrypt

from app.core.config import settings
from app.core.errors import AuthenticationFailure, Conflict, CredentialMismatch
from app.models.user import User
from app.services.database import UserStore, user_store
from app.services.jwt_service import jwt_service

logger = logging.getLogger("chat_relay.auth")


class AuthService:
    """
    Service for account creation, login and session lookups.

    Session tokens are issued here; setting them as cookies is left to the
    HTTP layer.
    """

    def __init__(self, store: UserStore | None = None):
        self.store = store or user_store

    # =========================================================================
    # Password Hashing
    # =========================================================================

    @staticmethod
    def hash_password(password: str) -> str:
        """Hash a password using bcrypt."""
        salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
        hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(plain_password: str, hashed_password: str) -> bool:
        """Verify a password against its hash."""
        try:
            return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
        except ValueError:
            # Malformed stored hash
            return False

    # =========================================================================
    # Signup / Login
    # =========================================================================

    async def signup(self, name: str, email: str, password: str) -> tuple[User, str]:
        """
        Create an account and issue a session token for it.

        Returns:
            Tuple of (created user, session token).

        Raises:
            Conflict: 409 if the email is already registered.
        """
        existing_user = await self.store.find_by_email(email)
        if existing_user:
            logger.info("Signup rejected for %s - email already registered", email)
            raise Conflict("User with same email already exists")

        user = User.new(name=name, email=email, password_hash=self.hash_password(password))
        user = await self.store.create(user)

        logger.info("Signed up user %s", user.id)
        return user, jwt_service.issue_session_token(user.id, user.email)

    async def login(self, email: str, password: str) -> tuple[User, str]:
        """
        Check credentials and issue a session token.

        Raises:
            Conflict: 409 if no account uses this email.
            CredentialMismatch: 403 if the password is wrong.
        """
        user = await self.store.find_by_email(email)
        if not user:
            logger.info("Login failed for %s - no such account", email)
            raise Conflict("No account with given emailID found")

        if not self.verify_password(password, user.password_hash):
            logger.info("Login failed for %s - invalid password", email)
            raise CredentialMismatch("Incorrect Password")

        logger.info("Successful login for user %s", user.id)
        return user, jwt_service.issue_session_token(user.id, user.email)

    # =========================================================================
    # User Lookup
    # =========================================================================

    async def get_verified_user(self, user_id: str) -> User:
        """
        Load the user a verified session points at.

        Raises:
            AuthenticationFailure: 401 if the user no longer exists.
        """
        user = await self.store.find_by_id(user_id)
        if not user:
            raise AuthenticationFailure("User doesn't exist or token malfunctioned")
        return user

    async def list_users(self) -> list[dict[str, str]]:
        """Public projection of every account."""
        users = await self.store.find_all()
        return [user.to_dict() for user in users]
