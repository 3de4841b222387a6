"""Content API: submit, browse, edit and delete recipes and packaging ideas."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, Query, UploadFile
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import get_identity, require_identity
from src.db.engine import get_session
from src.models import ContentItem, ContentKind, Identity, PackagingIdeaPayload, RecipePayload
from src.services import catalog, saved, submission
from src.services.storage import ObjectStore, get_object_store

router = APIRouter(prefix="/api/v1", tags=["content"])


class ImageUploadResponse(BaseModel):
    url: str


class ImageDeleteRequest(BaseModel):
    url: str


@router.post("/recipes", status_code=201, response_model=ContentItem)
async def submit_recipe(
    body: RecipePayload,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
):
    """Submit a recipe. It stays hidden until a moderator approves it."""
    return await submission.submit(session, store, actor, body)


@router.post("/packaging-ideas", status_code=201, response_model=ContentItem)
async def submit_packaging_idea(
    body: PackagingIdeaPayload,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
):
    return await submission.submit(session, store, actor, body)


@router.get("/content")
async def browse(
    kind: Optional[ContentKind] = None,
    q: Optional[str] = Query(None, max_length=200),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_session),
):
    """Approved content, newest first, optionally filtered by kind and search text."""
    items = await catalog.list_approved(session, kind=kind, query=q, limit=limit, offset=offset)
    return {"items": items, "limit": limit, "offset": offset}


@router.get("/content/mine")
async def my_content(
    kind: Optional[ContentKind] = None,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    """Everything the caller has submitted, with moderation status and notes."""
    return {"items": await catalog.list_mine(session, actor, kind=kind)}


@router.get("/content/{item_id}")
async def content_detail(
    item_id: str,
    viewer: Optional[Identity] = Depends(get_identity),
    session: AsyncSession = Depends(get_session),
):
    item = await catalog.get_item(session, viewer, item_id)
    is_saved = await saved.is_saved(session, viewer, item_id) if viewer else False
    return {**item.model_dump(mode="json"), "is_saved": is_saved}


@router.put("/content/{item_id}", response_model=ContentItem)
async def edit_content(
    item_id: str,
    body: dict[str, Any] = Body(...),
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
):
    """Replace the item's fields. The item goes back to pending review."""
    return await submission.resubmit_edit(session, store, actor, item_id, body)


@router.delete("/content/{item_id}", status_code=204)
async def delete_content(
    item_id: str,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
):
    await submission.delete(session, store, actor, item_id)


# ── Content images ──────────────────────────────────────────────────────────

@router.post("/uploads/content-images", status_code=201, response_model=ImageUploadResponse)
async def upload_content_image(
    file: UploadFile = File(...),
    actor: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    """Upload an image to reference from a submission's ``image_url``."""
    data = await file.read()
    url = await submission.upload_content_image(store, actor, data, file.content_type)
    return ImageUploadResponse(url=url)


@router.delete("/uploads/content-images", status_code=204)
async def delete_content_image(
    body: ImageDeleteRequest,
    actor: Identity = Depends(require_identity),
    store: ObjectStore = Depends(get_object_store),
):
    await submission.discard_content_image(store, actor, body.url)
