"""Saved items API: per-user bookmarks."""
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import require_identity
from src.db.engine import get_session
from src.models import Identity
from src.services import saved

router = APIRouter(prefix="/api/v1", tags=["saved"])


@router.get("/me/saved")
async def list_saved(
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    """Saved items that are currently approved, most recently saved first."""
    items = await saved.list_saved(session, actor)
    return {"items": items, "total": len(items)}


@router.post("/content/{item_id}/save")
async def save_item(
    item_id: str,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    created = await saved.save(session, actor, item_id)
    return {"saved": True, "created": created}


@router.delete("/content/{item_id}/save")
async def unsave_item(
    item_id: str,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    removed = await saved.unsave(session, actor, item_id)
    return {"saved": False, "removed": removed}
