"""Content report models."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from src.models.content import ContentKind, ContentStatus


class ReportReason(str, Enum):
    SPAM = "spam"
    OFFENSIVE = "offensive"
    DANGEROUS = "dangerous"
    COPYRIGHT = "copyright"
    OTHER = "other"


class ReportStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"


class ReportRequest(BaseModel):
    content_id: str
    reason: ReportReason
    details: Optional[str] = Field(None, max_length=1000)


class ReportedContent(BaseModel):
    id: str
    kind: ContentKind
    title: str
    status: ContentStatus
    author_id: str


class Report(BaseModel):
    id: str
    content_id: str
    reporter_id: str
    reason: ReportReason
    details: Optional[str] = None
    status: ReportStatus
    admin_notes: Optional[str] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    # Filled in by the moderator queue
    content: Optional[ReportedContent] = None
    reporter_username: Optional[str] = None
