"""Profile API: public profiles, self-service edits and avatars."""
from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import require_identity
from src.db.engine import get_session
from src.models import Identity, Profile, ProfileUpdate
from src.services import profiles
from src.services.storage import ObjectStore, get_object_store

router = APIRouter(prefix="/api/v1/profiles", tags=["profiles"])


@router.patch("/me", response_model=Profile)
async def update_my_profile(
    body: ProfileUpdate,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    return await profiles.update_profile(session, actor, body)


@router.post("/me/avatar", response_model=Profile)
async def upload_avatar(
    file: UploadFile = File(...),
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
):
    """Upload a new avatar image. The previous one is removed afterwards."""
    data = await file.read()
    return await profiles.replace_avatar(session, store, actor, data, file.content_type)


@router.delete("/me/avatar", status_code=204)
async def delete_avatar(
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
    store: ObjectStore = Depends(get_object_store),
):
    await profiles.remove_avatar(session, store, actor)


@router.get("/{user_id}", response_model=Profile)
async def get_profile(user_id: str, session: AsyncSession = Depends(get_session)):
    return await profiles.get_profile(session, user_id)
