"""Database models for user documents."""

from app.models.user import Base, User

__all__ = ["Base", "User"]
