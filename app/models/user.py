"""
SQLAlchemy model for the user document.

A user row owns its conversations and custom models as embedded JSON arrays
(JSONB on PostgreSQL). The whole row is rewritten on every save, guarded by
the ``version`` column.
"""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Plain JSON elsewhere so the model stays portable
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all SQLAlchemy models with async support."""

    pass


class User(Base):
    """
    User account and everything it owns.

    Attributes:
        id: UUID primary key
        name: Display name given at signup
        email: Unique email address (stored lower-cased, indexed)
        password_hash: bcrypt hash
        conversations: Ordered list of ``{"id", "chats", "created_at"}`` dicts
        custom_models: Ordered list of fine-tuned model records
        active_conversation_id: Conversation that receives relayed messages
        version: Incremented on every save; writes are conditional on it
        created_at: Account creation timestamp
        updated_at: Last save timestamp
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    password_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
    )

    # Embedded documents
    conversations: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        default=list,
        nullable=False,
    )
    custom_models: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONDocument,
        default=list,
        nullable=False,
    )
    active_conversation_id: Mapped[str | None] = mapped_column(
        String(36),
        nullable=True,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        default=1,
        nullable=False,
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )

    @classmethod
    def new(cls, name: str, email: str, password_hash: str) -> "User":
        """Build an unsaved user with every column populated (defaults only apply on flush)."""
        now = datetime.now(UTC)
        return cls(
            id=str(uuid.uuid4()),
            name=name,
            email=email.lower(),
            password_hash=password_hash,
            conversations=[],
            custom_models=[],
            active_conversation_id=None,
            version=1,
            created_at=now,
            updated_at=now,
        )

    def to_dict(self) -> dict[str, Any]:
        """Public projection (excludes the password hash)."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
        }

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, version={self.version})>"
