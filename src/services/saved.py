"""Saved items — a user's bookmarks, independent of moderation state."""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.repository import (
    SavedItemRepository,
    attach_authors,
    persistence_guard,
)
from src.errors import PersistenceError
from src.models import ContentItem, Identity
from src.services.catalog import ensure_visible

logger = logging.getLogger(__name__)


async def save(session: AsyncSession, actor: Identity, content_id: str) -> bool:
    """Bookmark an item. Idempotent; returns False if it was already saved."""
    saved = SavedItemRepository(session)
    async with persistence_guard(session, "save the item", commit=False):
        await ensure_visible(session, actor, content_id)
        if await saved.exists(actor.user_id, content_id):
            return False

    try:
        await saved.add(actor.user_id, content_id)
        await session.commit()
    except IntegrityError:
        # Lost a race with a concurrent save of the same pair
        await session.rollback()
        return False
    except SQLAlchemyError as exc:
        await session.rollback()
        raise PersistenceError("Could not save the item, please try again") from exc

    logger.info("User %s saved %s", actor.user_id, content_id)
    return True


async def unsave(session: AsyncSession, actor: Identity, content_id: str) -> bool:
    """Remove a bookmark. Idempotent; returns False if there was nothing to remove."""
    async with persistence_guard(session, "remove the saved item"):
        removed = await SavedItemRepository(session).remove(actor.user_id, content_id)
    return removed


async def is_saved(session: AsyncSession, actor: Identity, content_id: str) -> bool:
    async with persistence_guard(session, "load saved items", commit=False):
        return await SavedItemRepository(session).exists(actor.user_id, content_id)


async def list_saved(session: AsyncSession, actor: Identity) -> list[ContentItem]:
    """Saved items that are currently approved. Others are skipped, not deleted."""
    async with persistence_guard(session, "load saved items", commit=False):
        items = await SavedItemRepository(session).list_approved(actor.user_id)
        return await attach_authors(session, items)
