"""User-related tables: accounts, profiles, roles, saved items, revoked tokens."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Text, DateTime,
    ForeignKey, Index, UniqueConstraint
)

from src.db.tables import Base, enum_column
from src.models import Role


def _now():
    return datetime.now(timezone.utc)


class UserRow(Base):
    """Auth identity — email + password hash. Display data lives in ProfileRow."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(320), nullable=False, unique=True, index=True)
    password_hash = Column(String(256), nullable=False)  # PBKDF2-SHA256
    created_at = Column(DateTime(timezone=True), default=_now)


class ProfileRow(Base):
    """Public profile, one per user, same id as the user."""
    __tablename__ = "profiles"

    id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    username = Column(String(50), nullable=False, unique=True, index=True)
    bio = Column(Text, nullable=True)
    avatar_url = Column(String(2000), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)


class RoleRow(Base):
    """Role assignment. At most one row per user; written by upsert."""
    __tablename__ = "user_roles"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    role = Column(enum_column(Role), nullable=False, default=Role.USER)
    created_at = Column(DateTime(timezone=True), default=_now)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now)


class SavedItemRow(Base):
    """A user's bookmark of a content item. content_id is a weak reference."""
    __tablename__ = "saved_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content_id = Column(String(36), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        UniqueConstraint("user_id", "content_id", name="uq_user_content"),
    )


class RevokedTokenRow(Base):
    """Token ids invalidated by sign-out."""
    __tablename__ = "revoked_tokens"

    jti = Column(String(64), primary_key=True)
    user_id = Column(String(36), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), default=_now)

    __table_args__ = (
        Index("ix_revoked_expires", "expires_at"),
    )
