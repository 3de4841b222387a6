"""Repositories — DB CRUD operations + Pydantic conversion.

Every write that changes moderation state is a single conditional UPDATE so two
moderators acting on the same row cannot both win.
"""
from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import String, cast, delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.report_tables import ReportRow
from src.db.tables import ContentRow
from src.db.user_tables import ProfileRow, RoleRow, SavedItemRow, UserRow
from src.errors import PersistenceError
from src.models import (
    AuthorSummary,
    ContentItem,
    ContentKind,
    ContentStatus,
    PackagingIdeaPayload,
    Profile,
    RecipePayload,
    Report,
    ReportReason,
    ReportStatus,
    Role,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _escape_like(value: str) -> str:
    """Escape LIKE wildcard characters in user input."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


_JSON_PUNCTUATION = str.maketrans("", "", "[]\",\\")


def _tag_term(query: str) -> str:
    """Search text reduced to what can appear inside a stored tag value."""
    return query.translate(_JSON_PUNCTUATION).strip()


@asynccontextmanager
async def persistence_guard(session: AsyncSession, action: str, commit: bool = True):
    """Run a unit of work; roll back and raise PersistenceError on store failure."""
    try:
        yield
        if commit:
            await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        logger.error("Store failure while trying to %s: %s", action, exc)
        raise PersistenceError(f"Could not {action}, please try again") from exc


# ── Conversion ───────────────────────────────────────────────────────────────

def _row_to_payload(row: ContentRow) -> RecipePayload | PackagingIdeaPayload:
    common = {
        "title": row.title,
        "description": row.description,
        "steps": row.steps or [],
        "image_url": row.image_url,
    }
    if row.kind == ContentKind.RECIPE:
        return RecipePayload.model_construct(
            kind="recipe",
            ingredients=row.ingredients or [],
            prep_time=row.prep_time,
            cook_time=row.cook_time,
            servings=row.servings,
            tags=row.tags or [],
            **common,
        )
    return PackagingIdeaPayload.model_construct(
        kind="packaging_idea",
        materials=row.materials or [],
        **common,
    )


def _row_to_item(row: ContentRow, author: Optional[AuthorSummary] = None) -> ContentItem:
    """Convert a DB row to a ContentItem. Stored payloads are trusted as-is."""
    return ContentItem(
        id=row.id,
        author_id=row.author_id,
        status=row.status,
        moderator_notes=row.moderator_notes,
        approved_at=row.approved_at,
        created_at=row.created_at or _now(),
        updated_at=row.updated_at or row.created_at or _now(),
        payload=_row_to_payload(row),
        author=author,
    )


def _payload_columns(payload: RecipePayload | PackagingIdeaPayload) -> dict:
    """Editable columns for a payload; fields of the other kind are cleared."""
    values = {
        "title": payload.title,
        "description": payload.description,
        "steps": list(payload.steps),
        "image_url": payload.image_url,
        "ingredients": [],
        "materials": [],
        "tags": [],
        "prep_time": None,
        "cook_time": None,
        "servings": None,
    }
    if isinstance(payload, RecipePayload):
        values.update(
            ingredients=list(payload.ingredients),
            tags=list(payload.tags),
            prep_time=payload.prep_time,
            cook_time=payload.cook_time,
            servings=payload.servings,
        )
    else:
        values["materials"] = list(payload.materials)
    return values


def _row_to_profile(row: ProfileRow) -> Profile:
    return Profile(
        id=row.id,
        username=row.username,
        bio=row.bio,
        avatar_url=row.avatar_url,
        created_at=row.created_at,
    )


def _row_to_report(row: ReportRow) -> Report:
    return Report(
        id=row.id,
        content_id=row.content_id,
        reporter_id=row.reporter_id,
        reason=row.reason,
        details=row.details,
        status=row.status,
        admin_notes=row.admin_notes,
        created_at=row.created_at or _now(),
        resolved_at=row.resolved_at,
        resolved_by=row.resolved_by,
    )


# ── Content ──────────────────────────────────────────────────────────────────

class ContentRepository:
    """Async content CRUD backed by SQLAlchemy."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(self, author_id: str, payload: RecipePayload | PackagingIdeaPayload) -> ContentRow:
        now = _now()
        row = ContentRow(
            id=str(uuid.uuid4()),
            kind=ContentKind(payload.kind),
            author_id=author_id,
            status=ContentStatus.PENDING,
            moderator_notes=None,
            approved_at=None,
            created_at=now,
            updated_at=now,
            **_payload_columns(payload),
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get_row(self, item_id: str) -> Optional[ContentRow]:
        stmt = (
            select(ContentRow)
            .where(ContentRow.id == item_id)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, item_id: str) -> Optional[ContentItem]:
        row = await self.get_row(item_id)
        return _row_to_item(row) if row else None

    async def transition(self, item_id: str, expected: ContentStatus, **values) -> bool:
        """Compare-and-swap on status. Returns False if the row was not in ``expected``."""
        values.setdefault("updated_at", _now())
        stmt = (
            update(ContentRow)
            .where(ContentRow.id == item_id, ContentRow.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def replace_payload(
        self, item_id: str, author_id: str, payload: RecipePayload | PackagingIdeaPayload
    ) -> bool:
        """Overwrite the editable fields and re-queue the item. Notes are kept."""
        stmt = (
            update(ContentRow)
            .where(ContentRow.id == item_id, ContentRow.author_id == author_id)
            .values(
                status=ContentStatus.PENDING,
                approved_at=None,
                updated_at=_now(),
                **_payload_columns(payload),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def delete(self, item_id: str, author_id: str) -> bool:
        result = await self.session.execute(
            delete(ContentRow)
            .where(ContentRow.id == item_id, ContentRow.author_id == author_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def list_by_status(
        self,
        status: ContentStatus,
        kind: ContentKind | None = None,
        oldest_first: bool = True,
    ) -> list[ContentItem]:
        stmt = select(ContentRow).where(ContentRow.status == status)
        if kind:
            stmt = stmt.where(ContentRow.kind == kind)
        order = ContentRow.created_at.asc() if oldest_first else ContentRow.created_at.desc()
        stmt = stmt.order_by(order, ContentRow.id)
        result = await self.session.execute(stmt)
        return [_row_to_item(r) for r in result.scalars().all()]

    async def list_approved(
        self,
        kind: ContentKind | None = None,
        query: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[ContentItem]:
        stmt = select(ContentRow).where(ContentRow.status == ContentStatus.APPROVED)
        if kind:
            stmt = stmt.where(ContentRow.kind == kind)
        if query:
            q = f"%{_escape_like(query)}%"
            clauses = [
                ContentRow.title.ilike(q, escape="\\"),
                ContentRow.description.ilike(q, escape="\\"),
            ]
            # Tags are a JSON array; only match inside the element values
            tag = _tag_term(query)
            if tag:
                clauses.append(cast(ContentRow.tags, String).ilike(f"%{_escape_like(tag)}%", escape="\\"))
            stmt = stmt.where(or_(*clauses))
        stmt = stmt.order_by(ContentRow.created_at.desc(), ContentRow.id).offset(offset).limit(limit)
        result = await self.session.execute(stmt)
        return [_row_to_item(r) for r in result.scalars().all()]

    async def list_by_author(self, author_id: str, kind: ContentKind | None = None) -> list[ContentItem]:
        stmt = select(ContentRow).where(ContentRow.author_id == author_id)
        if kind:
            stmt = stmt.where(ContentRow.kind == kind)
        stmt = stmt.order_by(ContentRow.created_at.desc())
        result = await self.session.execute(stmt)
        return [_row_to_item(r) for r in result.scalars().all()]

    async def get_many(self, item_ids: Iterable[str]) -> dict[str, ContentRow]:
        ids = set(item_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(ContentRow).where(ContentRow.id.in_(ids)))
        return {r.id: r for r in result.scalars().all()}

    async def count_by_author(self) -> dict[str, int]:
        result = await self.session.execute(
            select(ContentRow.author_id, func.count(ContentRow.id)).group_by(ContentRow.author_id)
        )
        return {author_id: count for author_id, count in result.all()}


# ── Profiles & roles ─────────────────────────────────────────────────────────

class ProfileRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_row(self, user_id: str) -> Optional[ProfileRow]:
        return await self.session.get(ProfileRow, user_id)

    async def get(self, user_id: str) -> Optional[Profile]:
        row = await self.get_row(user_id)
        return _row_to_profile(row) if row else None

    async def username_taken(self, username: str, exclude_user_id: str | None = None) -> bool:
        stmt = select(ProfileRow.id).where(func.lower(ProfileRow.username) == username.lower())
        if exclude_user_id:
            stmt = stmt.where(ProfileRow.id != exclude_user_id)
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, Profile]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(ProfileRow).where(ProfileRow.id.in_(ids)))
        return {r.id: _row_to_profile(r) for r in result.scalars().all()}

    async def list_all(self) -> list[Profile]:
        result = await self.session.execute(select(ProfileRow).order_by(ProfileRow.created_at.asc()))
        return [_row_to_profile(r) for r in result.scalars().all()]


class RoleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_role(self, user_id: str) -> Role:
        result = await self.session.execute(select(RoleRow.role).where(RoleRow.user_id == user_id))
        role = result.scalar_one_or_none()
        return Role(role) if role else Role.USER

    async def all_roles(self) -> dict[str, Role]:
        result = await self.session.execute(select(RoleRow.user_id, RoleRow.role))
        return {user_id: Role(role) for user_id, role in result.all()}

    async def upsert(self, user_id: str, role: Role) -> None:
        """Atomic INSERT ... ON CONFLICT (user_id) DO UPDATE."""
        now = _now()
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            await self._upsert_fallback(user_id, role, now)
            return

        stmt = insert(RoleRow).values(
            id=str(uuid.uuid4()), user_id=user_id, role=role, created_at=now, updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[RoleRow.user_id],
            set_={"role": role, "updated_at": now},
        )
        await self.session.execute(stmt)

    async def _upsert_fallback(self, user_id: str, role: Role, now: datetime) -> None:
        # Same transaction, so there is never a committed "no row" window
        result = await self.session.execute(
            update(RoleRow).where(RoleRow.user_id == user_id).values(role=role, updated_at=now)
        )
        if result.rowcount == 0:
            self.session.add(RoleRow(user_id=user_id, role=role, created_at=now, updated_at=now))
            await self.session.flush()


async def user_exists(session: AsyncSession, user_id: str) -> bool:
    result = await session.execute(select(UserRow.id).where(UserRow.id == user_id))
    return result.first() is not None


# ── Saved items ──────────────────────────────────────────────────────────────

class SavedItemRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def exists(self, user_id: str, content_id: str) -> bool:
        result = await self.session.execute(
            select(SavedItemRow.id).where(
                SavedItemRow.user_id == user_id,
                SavedItemRow.content_id == content_id,
            )
        )
        return result.first() is not None

    async def add(self, user_id: str, content_id: str) -> None:
        self.session.add(SavedItemRow(user_id=user_id, content_id=content_id))
        await self.session.flush()

    async def remove(self, user_id: str, content_id: str) -> bool:
        result = await self.session.execute(
            delete(SavedItemRow).where(
                SavedItemRow.user_id == user_id,
                SavedItemRow.content_id == content_id,
            )
        )
        return result.rowcount > 0

    async def count_for_user(self, user_id: str) -> int:
        result = await self.session.execute(
            select(func.count(SavedItemRow.id)).where(SavedItemRow.user_id == user_id)
        )
        return result.scalar_one()

    async def list_approved(self, user_id: str) -> list[ContentItem]:
        """Saved items whose content is currently approved, newest save first."""
        stmt = (
            select(ContentRow)
            .join(SavedItemRow, SavedItemRow.content_id == ContentRow.id)
            .where(
                SavedItemRow.user_id == user_id,
                ContentRow.status == ContentStatus.APPROVED,
            )
            .order_by(SavedItemRow.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [_row_to_item(r) for r in result.scalars().all()]


# ── Reports ──────────────────────────────────────────────────────────────────

class ReportRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def add(
        self, reporter_id: str, content_id: str, reason: ReportReason, details: str | None
    ) -> Report:
        row = ReportRow(
            id=str(uuid.uuid4()),
            reporter_id=reporter_id,
            content_id=content_id,
            reason=reason,
            details=details,
            status=ReportStatus.PENDING,
            created_at=_now(),
        )
        self.session.add(row)
        await self.session.flush()
        return _row_to_report(row)

    async def get(self, report_id: str) -> Optional[Report]:
        stmt = (
            select(ReportRow)
            .where(ReportRow.id == report_id)
            .execution_options(populate_existing=True)
        )
        row = (await self.session.execute(stmt)).scalar_one_or_none()
        return _row_to_report(row) if row else None

    async def resolve(self, report_id: str, resolved_by: str, notes: str | None) -> bool:
        """pending -> resolved as a single conditional update."""
        stmt = (
            update(ReportRow)
            .where(ReportRow.id == report_id, ReportRow.status == ReportStatus.PENDING)
            .values(
                status=ReportStatus.RESOLVED,
                resolved_at=_now(),
                resolved_by=resolved_by,
                admin_notes=notes,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def list_pending(self) -> list[Report]:
        result = await self.session.execute(
            select(ReportRow)
            .where(ReportRow.status == ReportStatus.PENDING)
            .order_by(ReportRow.created_at.asc())
        )
        return [_row_to_report(r) for r in result.scalars().all()]

    async def list_by_reporter(self, reporter_id: str, limit: int = 20, offset: int = 0) -> list[Report]:
        result = await self.session.execute(
            select(ReportRow)
            .where(ReportRow.reporter_id == reporter_id)
            .order_by(ReportRow.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return [_row_to_report(r) for r in result.scalars().all()]


# ── Read-side aggregation ────────────────────────────────────────────────────

async def attach_authors(session: AsyncSession, items: list[ContentItem]) -> list[ContentItem]:
    """Fetch profiles for the distinct author ids and merge them by key."""
    profiles = await ProfileRepository(session).get_many(i.author_id for i in items)
    merged = []
    for item in items:
        profile = profiles.get(item.author_id)
        author = (
            AuthorSummary(id=profile.id, username=profile.username, avatar_url=profile.avatar_url)
            if profile else None
        )
        merged.append(item.model_copy(update={"author": author}))
    return merged
