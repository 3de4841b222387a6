"""Moderator API: review queue, decisions, open reports and user roles."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import require_identity
from src.db.engine import get_session
from src.models import ContentItem, ContentKind, Identity
from src.services import access, moderation, reports

router = APIRouter(prefix="/api/v1/admin", tags=["moderation"])


class DecisionRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


@router.get("/queue")
async def review_queue(
    kind: Optional[ContentKind] = None,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    """Pending submissions, oldest first."""
    items = await moderation.pending_queue(session, actor, kind=kind)
    return {"items": items, "count": len(items)}


@router.post("/content/{item_id}/approve", response_model=ContentItem)
async def approve_content(
    item_id: str,
    body: Optional[DecisionRequest] = None,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await moderation.approve(session, actor, item_id, body.notes if body else None)


@router.post("/content/{item_id}/reject", response_model=ContentItem)
async def reject_content(
    item_id: str,
    body: Optional[DecisionRequest] = None,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await moderation.reject(session, actor, item_id, body.notes if body else None)


@router.get("/reports")
async def list_open_reports(
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    pending = await reports.open_reports(session, actor)
    return {"reports": pending, "count": len(pending)}


@router.post("/reports/{report_id}/resolve")
async def resolve_report(
    report_id: str,
    body: Optional[DecisionRequest] = None,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    """Mark a report handled. The reported content is left as it is."""
    return await reports.resolve_report(session, actor, report_id, body.notes if body else None)


@router.get("/users")
async def list_users(
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return {"users": await access.list_users(session, actor)}


@router.post("/users/{user_id}/toggle-moderator")
async def toggle_moderator(
    user_id: str,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    role = await access.toggle_moderator(session, actor, user_id)
    return {"user_id": user_id, "role": role.value}
