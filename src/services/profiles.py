"""Profiles — display name, bio and avatar of each user."""
from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.db.repository import ProfileRepository, persistence_guard
from src.errors import NotFoundError, PersistenceError, ValidationError
from src.models import Identity, Profile, ProfileUpdate
from src.services.storage import (
    AVATARS_BUCKET,
    ObjectStore,
    remove_image_quietly,
    upload_image,
)

logger = logging.getLogger(__name__)


async def get_profile(session: AsyncSession, user_id: str) -> Profile:
    async with persistence_guard(session, "load the profile", commit=False):
        profile = await ProfileRepository(session).get(user_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


async def update_profile(session: AsyncSession, actor: Identity, changes: ProfileUpdate) -> Profile:
    """Update the caller's own username and/or bio."""
    profiles = ProfileRepository(session)
    async with persistence_guard(session, "update your profile", commit=False):
        row = await profiles.get_row(actor.user_id)
        if row is None:
            raise NotFoundError("Profile not found")
        if changes.username is not None and changes.username != row.username:
            if await profiles.username_taken(changes.username, exclude_user_id=actor.user_id):
                raise ValidationError.for_field("username", "Username is already taken")
            row.username = changes.username
        if "bio" in changes.model_fields_set:
            row.bio = changes.bio or None

    try:
        await session.commit()
    except IntegrityError as exc:
        # Lost a race with another user claiming the same username
        await session.rollback()
        raise ValidationError.for_field("username", "Username is already taken") from exc
    except SQLAlchemyError as exc:
        await session.rollback()
        raise PersistenceError("Could not update your profile, please try again") from exc
    return await get_profile(session, actor.user_id)


async def replace_avatar(
    session: AsyncSession,
    store: ObjectStore,
    actor: Identity,
    data: bytes,
    content_type: str | None,
) -> Profile:
    """Upload a new avatar, point the profile at it, then drop the old file."""
    profiles = ProfileRepository(session)
    async with persistence_guard(session, "load the profile", commit=False):
        row = await profiles.get_row(actor.user_id)
    if row is None:
        raise NotFoundError("Profile not found")

    new_url = await upload_image(
        store, AVATARS_BUCKET, actor.user_id, data, content_type, settings.MAX_AVATAR_BYTES
    )
    old_url = row.avatar_url
    async with persistence_guard(session, "update your avatar"):
        row.avatar_url = new_url

    await remove_image_quietly(store, AVATARS_BUCKET, old_url)
    return await get_profile(session, actor.user_id)


async def remove_avatar(session: AsyncSession, store: ObjectStore, actor: Identity) -> None:
    profiles = ProfileRepository(session)
    async with persistence_guard(session, "remove your avatar"):
        row = await profiles.get_row(actor.user_id)
        if row is None:
            raise NotFoundError("Profile not found")
        old_url = row.avatar_url
        row.avatar_url = None

    await remove_image_quietly(store, AVATARS_BUCKET, old_url)
    logger.info("User %s removed avatar", actor.user_id)
