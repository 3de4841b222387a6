"""Content reporting tables."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Column, String, Text, DateTime,
    ForeignKey, Index
)

from src.db.tables import Base, enum_column
from src.models import ReportReason, ReportStatus


def _now():
    return datetime.now(timezone.utc)


class ReportRow(Base):
    """User-filed flag against a content item. Never deleted, only resolved."""
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    reporter_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    content_id = Column(String(36), nullable=False)  # weak reference, no cascade
    reason = Column(enum_column(ReportReason), nullable=False)
    details = Column(Text, nullable=True)
    status = Column(enum_column(ReportStatus), default=ReportStatus.PENDING, nullable=False)
    admin_notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(String(36), nullable=True)

    __table_args__ = (
        Index("ix_report_status", "status", "created_at"),
        Index("ix_report_content", "content_id"),
    )
