"""Content moderation — the pending -> approved | rejected state machine.

Only moderators can decide. Each decision is one conditional UPDATE guarded on
``status = 'pending'``, so when two moderators race on the same item exactly
one of them wins and the other gets ``InvalidStateTransition`` and re-fetches.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.repository import ContentRepository, attach_authors, persistence_guard
from src.errors import InvalidStateTransition, NotFoundError
from src.models import ContentItem, ContentKind, ContentStatus, Identity
from src.services.access import require_moderator

logger = logging.getLogger(__name__)


async def _decide(
    session: AsyncSession,
    actor: Identity,
    item_id: str,
    new_status: ContentStatus,
    notes: str | None,
) -> ContentItem:
    await require_moderator(session, actor)

    repo = ContentRepository(session)
    values = {
        "status": new_status,
        "moderator_notes": notes or "",
        "approved_at": datetime.now(timezone.utc) if new_status == ContentStatus.APPROVED else None,
    }
    async with persistence_guard(session, f"mark the item {new_status.value}"):
        swapped = await repo.transition(item_id, ContentStatus.PENDING, **values)
        if not swapped:
            current = await repo.get(item_id)
            if current is None:
                raise NotFoundError("Content not found")
            raise InvalidStateTransition(
                f"Item is {current.status.value}, not pending. Please refresh."
            )
        item = await repo.get(item_id)

    logger.info("Moderator %s %s %s %s", actor.user_id, new_status.value, item.kind.value, item_id)
    return item


async def approve(
    session: AsyncSession, actor: Identity, item_id: str, notes: str | None = None
) -> ContentItem:
    """pending -> approved; stamps ``approved_at``."""
    return await _decide(session, actor, item_id, ContentStatus.APPROVED, notes)


async def reject(
    session: AsyncSession, actor: Identity, item_id: str, notes: str | None = None
) -> ContentItem:
    """pending -> rejected; ``approved_at`` stays empty."""
    return await _decide(session, actor, item_id, ContentStatus.REJECTED, notes)


async def pending_queue(
    session: AsyncSession, actor: Identity, kind: ContentKind | None = None
) -> list[ContentItem]:
    """Items awaiting review, oldest submission first, with author profiles."""
    await require_moderator(session, actor)
    async with persistence_guard(session, "load the moderation queue", commit=False):
        items = await ContentRepository(session).list_by_status(
            ContentStatus.PENDING, kind=kind, oldest_first=True
        )
        return await attach_authors(session, items)
