"""Read side: browsing, search, detail visibility and the author's own items."""
from __future__ import annotations

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.db.repository import (
    ContentRepository,
    RoleRepository,
    attach_authors,
    persistence_guard,
)
from src.errors import NotFoundError
from src.models import ContentItem, ContentKind, ContentStatus, Identity, Role


async def list_approved(
    session: AsyncSession,
    kind: ContentKind | None = None,
    query: str | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[ContentItem]:
    """Approved items, newest first; ``query`` matches title, description or tags."""
    query = (query or "").strip() or None
    async with persistence_guard(session, "load content", commit=False):
        items = await ContentRepository(session).list_approved(
            kind=kind, query=query, limit=limit, offset=offset
        )
        return await attach_authors(session, items)


async def _can_view(session: AsyncSession, viewer: Optional[Identity], status, author_id: str) -> bool:
    if status == ContentStatus.APPROVED:
        return True
    return viewer is not None and (
        viewer.user_id == author_id
        or await RoleRepository(session).get_role(viewer.user_id) == Role.ADMIN
    )


async def ensure_visible(session: AsyncSession, viewer: Optional[Identity], item_id: str) -> None:
    """Raise NotFoundError unless ``viewer`` may see the item.

    Call inside a persistence_guard block.
    """
    row = await ContentRepository(session).get_row(item_id)
    if row is None or not await _can_view(session, viewer, row.status, row.author_id):
        raise NotFoundError("Content not found")


async def get_item(session: AsyncSession, viewer: Optional[Identity], item_id: str) -> ContentItem:
    """Approved items are public. Anything else is visible to its author and moderators only."""
    async with persistence_guard(session, "load the item", commit=False):
        item = await ContentRepository(session).get(item_id)
        if item is None or not await _can_view(session, viewer, item.status, item.author_id):
            raise NotFoundError("Content not found")
        return (await attach_authors(session, [item]))[0]


async def list_mine(
    session: AsyncSession, actor: Identity, kind: ContentKind | None = None
) -> list[ContentItem]:
    """All of the caller's items at every status, newest first."""
    async with persistence_guard(session, "load your content", commit=False):
        items = await ContentRepository(session).list_by_author(actor.user_id, kind=kind)
        return await attach_authors(session, items)
