"""
Database service for user documents.

Every write is a whole-document rewrite conditioned on the document's
version, so two concurrent writers for the same user cannot silently
overwrite each other: the second one gets a Conflict.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings
from app.core.errors import Conflict, UpstreamFailure
from app.models.user import Base, User

logger = logging.getLogger("chat_relay.database")


class UserStore:
    """
    Async store for user documents.

    Features:
    - Async connection pooling
    - Automatic table creation
    - Lookup by id / email, full listing
    - Version-checked whole-document saves
    """

    def __init__(self):
        self.engine = None
        self.session_factory = None
        self._connected = False

    @property
    def is_available(self) -> bool:
        """Check if database is configured and connected."""
        return self._connected and self.engine is not None

    async def connect(self) -> bool:
        """
        Establish connection and create tables if needed.

        Returns:
            True if connection successful, False otherwise.
        """
        if not settings.DATABASE_URL:
            logger.warning("DATABASE_URL not configured - user store disabled")
            return False

        try:
            self.engine = create_async_engine(
                settings.DATABASE_URL,
                echo=False,  # Set to True for SQL debugging
            )

            self.session_factory = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            self._connected = True
            logger.info("Connected to database: %s", settings.sanitize_url(settings.DATABASE_URL))
            return True
        except Exception as e:
            logger.error("Failed to connect to database: %s", e)
            self.engine = None
            self.session_factory = None
            self._connected = False
            return False

    async def close(self) -> None:
        """Close database connection pool."""
        if self.engine:
            await self.engine.dispose()
            self._connected = False
            logger.info("Database connection closed")

    def _require_connection(self) -> None:
        if not self.is_available or not self.session_factory:
            raise UpstreamFailure("Database not available")

    async def find_by_id(self, user_id: str) -> User | None:
        """
        Retrieve a user by ID.

        Returns:
            User if found, None otherwise.

        Raises:
            UpstreamFailure: If the database is unavailable or the query fails.
        """
        self._require_connection()

        try:
            async with self.session_factory() as session:
                result = await session.execute(select(User).where(User.id == user_id))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database get error for user %s: %s", user_id, e)
            raise UpstreamFailure("Failed to load user", detail=str(e)) from e

    async def find_by_email(self, email: str) -> User | None:
        """Retrieve a user by email address (case-insensitive)."""
        self._require_connection()

        try:
            async with self.session_factory() as session:
                result = await session.execute(select(User).where(func.lower(User.email) == email.lower()))
                return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database get error for email lookup: %s", e)
            raise UpstreamFailure("Failed to load user", detail=str(e)) from e

    async def find_all(self) -> list[User]:
        """Retrieve every user, oldest first."""
        self._require_connection()

        try:
            async with self.session_factory() as session:
                result = await session.execute(select(User).order_by(User.created_at))
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Database list error: %s", e)
            raise UpstreamFailure("Failed to list users", detail=str(e)) from e

    async def create(self, user: User) -> User:
        """
        Insert a new user document.

        Raises:
            Conflict: If the email is already taken (unique constraint).
            UpstreamFailure: On any other database error.
        """
        self._require_connection()

        try:
            async with self.session_factory() as session:
                session.add(user)
                await session.commit()
                await session.refresh(user)
                logger.info("Created new user: %s", user.id)
                return user
        except IntegrityError as e:
            # Only the unique email index can reject a fully populated row
            raise Conflict("User with same email already exists") from e
        except SQLAlchemyError as e:
            logger.error("Database create error for user %s: %s", user.email, e)
            raise UpstreamFailure("Failed to create user", detail=str(e)) from e

    async def save(self, user: User) -> User:
        """
        Rewrite the whole user document if nobody else saved it since it was loaded.

        The update only matches when the stored version equals ``user.version``;
        on success the in-memory version is advanced to the stored one.

        Raises:
            Conflict: If the document was modified concurrently.
            UpstreamFailure: On database errors.
        """
        self._require_connection()

        now = datetime.now(UTC)
        stmt = (
            update(User)
            .where(User.id == user.id, User.version == user.version)
            .values(
                name=user.name,
                email=user.email,
                password_hash=user.password_hash,
                conversations=user.conversations,
                custom_models=user.custom_models,
                active_conversation_id=user.active_conversation_id,
                version=user.version + 1,
                updated_at=now,
            )
        )

        try:
            async with self.session_factory() as session:
                result = await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Database save error for user %s: %s", user.id, e)
            raise UpstreamFailure("Failed to save user", detail=str(e)) from e

        if result.rowcount == 0:
            logger.warning("Stale write rejected for user %s at version %d", user.id, user.version)
            raise Conflict("User document was modified concurrently, retry the request")

        user.version += 1
        user.updated_at = now
        return user


# Global instance
user_store = UserStore()


def get_user_store() -> UserStore:
    """Dependency returning the process-wide user store."""
    return user_store
