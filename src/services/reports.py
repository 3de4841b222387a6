"""Report handling — users flag content, moderators resolve the flags.

Resolving a report never touches the reported content, and moderating content
never touches its reports.
"""
from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.repository import (
    ContentRepository,
    ProfileRepository,
    ReportRepository,
    persistence_guard,
)
from src.errors import InvalidStateTransition, NotFoundError
from src.models import Identity, Report, ReportReason, ReportedContent
from src.services.access import require_moderator
from src.services.catalog import ensure_visible

logger = logging.getLogger(__name__)


async def file_report(
    session: AsyncSession,
    actor: Identity,
    content_id: str,
    reason: ReportReason,
    details: str | None = None,
) -> Report:
    details = (details or "").strip() or None
    async with persistence_guard(session, "submit the report"):
        await ensure_visible(session, actor, content_id)
        report = await ReportRepository(session).add(actor.user_id, content_id, reason, details)

    logger.info("User %s reported %s (%s)", actor.user_id, content_id, reason.value)
    return report


async def resolve_report(
    session: AsyncSession, actor: Identity, report_id: str, notes: str | None = None
) -> Report:
    """pending -> resolved. Moderators only."""
    await require_moderator(session, actor)

    reports = ReportRepository(session)
    async with persistence_guard(session, "resolve the report"):
        if not await reports.resolve(report_id, actor.user_id, notes):
            if await reports.get(report_id) is None:
                raise NotFoundError("Report not found")
            raise InvalidStateTransition("Report is already resolved")
        report = await reports.get(report_id)

    logger.info("Moderator %s resolved report %s", actor.user_id, report_id)
    return report


async def open_reports(session: AsyncSession, actor: Identity) -> list[Report]:
    """Pending reports, oldest first, with content and reporter details merged in."""
    await require_moderator(session, actor)
    async with persistence_guard(session, "load reports", commit=False):
        pending = await ReportRepository(session).list_pending()
        contents = await ContentRepository(session).get_many(r.content_id for r in pending)
        reporters = await ProfileRepository(session).get_many(r.reporter_id for r in pending)

    merged = []
    for report in pending:
        row = contents.get(report.content_id)
        content = (
            ReportedContent(
                id=row.id, kind=row.kind, title=row.title, status=row.status, author_id=row.author_id,
            )
            if row else None
        )
        reporter = reporters.get(report.reporter_id)
        merged.append(report.model_copy(update={
            "content": content,
            "reporter_username": reporter.username if reporter else None,
        }))
    return merged


async def my_reports(
    session: AsyncSession, actor: Identity, limit: int = 20, offset: int = 0
) -> list[Report]:
    async with persistence_guard(session, "load your reports", commit=False):
        return await ReportRepository(session).list_by_reporter(actor.user_id, limit=limit, offset=offset)
