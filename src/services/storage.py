"""Image storage — validation, upload, public URLs and best-effort removal.

The ``ObjectStore`` protocol is the seam for a hosted bucket service; the
default ``LocalObjectStore`` writes under ``settings.STORAGE_DIR`` which the
API serves at ``/static``.
"""
from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path
from typing import Optional, Protocol

from config.settings import settings
from src.errors import ValidationError

logger = logging.getLogger(__name__)

CONTENT_IMAGES_BUCKET = "content-images"
AVATARS_BUCKET = "avatars"

ALLOWED_IMAGE_TYPES = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
}


class ObjectStore(Protocol):
    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None: ...

    async def remove(self, bucket: str, path: str) -> None: ...

    async def exists(self, bucket: str, path: str) -> bool: ...

    def public_url(self, bucket: str, path: str) -> str: ...

    def path_from_url(self, bucket: str, url: str) -> Optional[str]: ...


class LocalObjectStore:
    """Filesystem-backed object store: ``<root>/<bucket>/<path>``."""

    def __init__(self, root: str | Path, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def _file(self, bucket: str, path: str) -> Path:
        target = (self.root / bucket / path).resolve()
        bucket_root = (self.root / bucket).resolve()
        if bucket_root not in target.parents:
            raise ValidationError.for_field("path", "Invalid storage path")
        return target

    async def upload(self, bucket: str, path: str, data: bytes, content_type: str) -> None:
        target = self._file(bucket, path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as f:
            f.write(data)

    async def remove(self, bucket: str, path: str) -> None:
        target = self._file(bucket, path)
        if target.exists():
            target.unlink()

    async def exists(self, bucket: str, path: str) -> bool:
        return self._file(bucket, path).is_file()

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.base_url}/{bucket}/{path}"

    def path_from_url(self, bucket: str, url: str) -> Optional[str]:
        """Object path for one of our URLs, or None for foreign URLs."""
        prefix = f"{self.base_url}/{bucket}/"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix):] or None


_store: ObjectStore | None = None


def get_object_store() -> ObjectStore:
    """FastAPI dependency — the process-wide object store."""
    global _store
    if _store is None:
        _store = LocalObjectStore(settings.STORAGE_DIR, settings.STORAGE_PUBLIC_BASE_URL)
    return _store


def validate_image(content_type: str | None, size: int, max_bytes: int) -> str:
    """Check MIME type and size before upload. Returns the file extension."""
    ext = ALLOWED_IMAGE_TYPES.get((content_type or "").lower())
    if not ext:
        raise ValidationError.for_field(
            "file", "Invalid file type. Please upload a JPEG, PNG, GIF, or WebP image."
        )
    if size > max_bytes:
        raise ValidationError.for_field(
            "file", f"File too large. Max size: {max_bytes / 1024 / 1024:.0f}MB"
        )
    return ext


async def upload_image(
    store: ObjectStore,
    bucket: str,
    user_id: str,
    data: bytes,
    content_type: str | None,
    max_bytes: int,
) -> str:
    """Validate and store an image under the user's folder; returns its public URL."""
    ext = validate_image(content_type, len(data), max_bytes)
    path = f"{user_id}/{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}.{ext}"
    await store.upload(bucket, path, data, content_type)
    logger.info("User %s uploaded %s/%s (%d bytes)", user_id, bucket, path, len(data))
    return store.public_url(bucket, path)


async def remove_image_quietly(store: ObjectStore, bucket: str, url: str | None) -> None:
    """Best-effort delete of a stored image. Failures are logged, never raised."""
    if not url:
        return
    path = store.path_from_url(bucket, url)
    if not path:
        return
    try:
        await store.remove(bucket, path)
        logger.info("Removed old image %s/%s", bucket, path)
    except Exception:
        logger.warning("Could not remove image %s/%s", bucket, path, exc_info=True)


async def image_is_stored(store: ObjectStore, bucket: str, url: str) -> bool:
    path = store.path_from_url(bucket, url)
    if not path:
        return False
    try:
        return await store.exists(bucket, path)
    except ValidationError:
        return False
