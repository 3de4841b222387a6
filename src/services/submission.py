"""Content submission, owner edits and owner deletes.

Owner-side half of the moderation lifecycle:

    submit          external -> pending
    resubmit_edit   any      -> pending   (author only, keeps moderator notes)
    delete          any      -> removed   (author only)
"""
from __future__ import annotations

import logging
from typing import Any, Union

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.db.repository import ContentRepository, _row_to_item, persistence_guard
from src.errors import AuthorizationError, NotFoundError, ValidationError
from src.models import ContentItem, Identity, PackagingIdeaPayload, RecipePayload, parse_payload
from src.services.storage import (
    CONTENT_IMAGES_BUCKET,
    ObjectStore,
    image_is_stored,
    remove_image_quietly,
    upload_image,
)

logger = logging.getLogger(__name__)

Payload = Union[RecipePayload, PackagingIdeaPayload]


def _coerce(payload: Payload | dict[str, Any]) -> Payload:
    if isinstance(payload, (RecipePayload, PackagingIdeaPayload)):
        return payload
    return parse_payload(payload)


async def _check_image(store: ObjectStore, payload: Payload) -> None:
    if payload.image_url and not await image_is_stored(store, CONTENT_IMAGES_BUCKET, payload.image_url):
        raise ValidationError.for_field("image_url", "Image must be uploaded before it can be used")


async def submit(
    session: AsyncSession,
    store: ObjectStore,
    actor: Identity,
    payload: Payload | dict[str, Any],
) -> ContentItem:
    """Create a new item owned by the caller, always in ``pending``."""
    payload = _coerce(payload)
    await _check_image(store, payload)

    async with persistence_guard(session, "submit your content"):
        row = await ContentRepository(session).add(actor.user_id, payload)
        item = _row_to_item(row)

    logger.info("User %s submitted %s %s", actor.user_id, item.kind.value, item.id)
    return item


async def resubmit_edit(
    session: AsyncSession,
    store: ObjectStore,
    actor: Identity,
    item_id: str,
    payload: Payload | dict[str, Any],
) -> ContentItem:
    """Overwrite the author's item and send it back to the moderation queue."""
    repo = ContentRepository(session)
    async with persistence_guard(session, "load the item", commit=False):
        existing = await repo.get_row(item_id)
    if existing is None:
        raise NotFoundError("Content not found")
    if existing.author_id != actor.user_id:
        raise AuthorizationError("Only the author can edit this item")

    if isinstance(payload, dict):
        payload = {"kind": existing.kind.value, **payload}
    payload = _coerce(payload)
    if payload.kind != existing.kind.value:
        raise ValidationError.for_field("kind", "Content kind cannot be changed")

    old_image = existing.image_url
    previous_status = existing.status
    if payload.image_url != old_image:
        await _check_image(store, payload)

    async with persistence_guard(session, "save your changes"):
        if not await repo.replace_payload(item_id, actor.user_id, payload):
            raise NotFoundError("Content not found")
        item = await repo.get(item_id)

    logger.info("User %s edited %s (%s -> pending)", actor.user_id, item_id, previous_status.value)

    if old_image and old_image != payload.image_url:
        await remove_image_quietly(store, CONTENT_IMAGES_BUCKET, old_image)
    return item


async def delete(session: AsyncSession, store: ObjectStore, actor: Identity, item_id: str) -> None:
    """Remove the author's item at any status."""
    repo = ContentRepository(session)
    async with persistence_guard(session, "load the item", commit=False):
        existing = await repo.get_row(item_id)
    if existing is None:
        raise NotFoundError("Content not found")
    if existing.author_id != actor.user_id:
        raise AuthorizationError("Only the author can delete this item")

    image_url = existing.image_url
    async with persistence_guard(session, "delete the item"):
        if not await repo.delete(item_id, actor.user_id):
            raise NotFoundError("Content not found")

    logger.info("User %s deleted %s", actor.user_id, item_id)
    await remove_image_quietly(store, CONTENT_IMAGES_BUCKET, image_url)


async def upload_content_image(
    store: ObjectStore, actor: Identity, data: bytes, content_type: str | None
) -> str:
    """Store an image for a future submission; returns the URL to put in ``image_url``."""
    return await upload_image(
        store, CONTENT_IMAGES_BUCKET, actor.user_id, data, content_type,
        settings.MAX_CONTENT_IMAGE_BYTES,
    )


async def discard_content_image(store: ObjectStore, actor: Identity, url: str) -> None:
    """Drop an uploaded image the caller owns, e.g. when a form is abandoned."""
    path = store.path_from_url(CONTENT_IMAGES_BUCKET, url)
    if not path:
        raise ValidationError.for_field("url", "Not a content image URL")
    if path.split("/", 1)[0] != actor.user_id:
        raise AuthorizationError("You can only remove your own images")
    await remove_image_quietly(store, CONTENT_IMAGES_BUCKET, url)
