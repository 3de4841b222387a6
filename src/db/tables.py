"""SQLAlchemy ORM models for shared content."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Integer, Text, DateTime, JSON, Enum as SAEnum, ForeignKey, Index
)
from sqlalchemy.orm import DeclarativeBase

from src.models import ContentKind, ContentStatus


def _now():
    return datetime.now(timezone.utc)


def enum_column(enum_cls):
    """String-backed enum column storing the lowercase values."""
    return SAEnum(
        enum_cls,
        values_callable=lambda e: [m.value for m in e],
        native_enum=False,
        length=20,
    )


class Base(DeclarativeBase):
    pass


class ContentRow(Base):
    """Recipes and packaging ideas share one table, tagged by ``kind``."""
    __tablename__ = "content_items"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    kind = Column(enum_column(ContentKind), nullable=False, index=True)
    author_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    image_url = Column(String(2000), nullable=True)

    # Stored as JSON arrays; which ones are used depends on kind
    ingredients = Column(JSON, default=list)  # recipe only
    materials = Column(JSON, default=list)  # packaging_idea only
    steps = Column(JSON, default=list)
    tags = Column(JSON, default=list)  # recipe only

    prep_time = Column(Integer, nullable=True)
    cook_time = Column(Integer, nullable=True)
    servings = Column(Integer, nullable=True)

    # Moderation envelope
    status = Column(enum_column(ContentStatus), nullable=False, default=ContentStatus.PENDING)
    moderator_notes = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)

    __table_args__ = (
        Index("ix_content_status_created", "status", "created_at"),
    )
