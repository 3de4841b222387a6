"""Tests for the object store and image helpers."""
import pytest

from src.errors import ValidationError
from src.services.storage import (
    CONTENT_IMAGES_BUCKET,
    LocalObjectStore,
    image_is_stored,
    remove_image_quietly,
    upload_image,
    validate_image,
)


@pytest.fixture
def local(tmp_path):
    return LocalObjectStore(tmp_path, "https://cdn.example/static/")


@pytest.mark.parametrize("content_type,ext", [
    ("image/jpeg", "jpg"), ("image/png", "png"), ("image/gif", "gif"), ("IMAGE/WEBP", "webp"),
])
def test_allowed_types(content_type, ext):
    assert validate_image(content_type, 10, 100) == ext


def test_rejects_other_types():
    with pytest.raises(ValidationError):
        validate_image("image/bmp", 10, 100)
    with pytest.raises(ValidationError):
        validate_image(None, 10, 100)


def test_size_limit_is_inclusive():
    assert validate_image("image/png", 100, 100) == "png"
    with pytest.raises(ValidationError):
        validate_image("image/png", 101, 100)


async def test_upload_lands_in_user_folder(local, tmp_path):
    url = await upload_image(local, CONTENT_IMAGES_BUCKET, "user-1", b"img", "image/gif", 100)
    assert url.startswith("https://cdn.example/static/content-images/user-1/")
    path = local.path_from_url(CONTENT_IMAGES_BUCKET, url)
    assert (tmp_path / CONTENT_IMAGES_BUCKET / path).read_bytes() == b"img"
    assert await image_is_stored(local, CONTENT_IMAGES_BUCKET, url)


async def test_foreign_urls_are_not_ours(local):
    assert local.path_from_url(CONTENT_IMAGES_BUCKET, "https://other.example/x.png") is None
    assert not await image_is_stored(local, CONTENT_IMAGES_BUCKET, "https://other.example/x.png")
    # Removing a foreign URL is a no-op
    await remove_image_quietly(local, CONTENT_IMAGES_BUCKET, "https://other.example/x.png")


async def test_path_traversal_blocked(local):
    with pytest.raises(ValidationError):
        await local.upload(CONTENT_IMAGES_BUCKET, "../../etc/passwd", b"x", "image/png")
    url = "https://cdn.example/static/content-images/../avatars/x.png"
    assert not await image_is_stored(local, CONTENT_IMAGES_BUCKET, url)


async def test_quiet_removal_swallows_store_errors(local, caplog):
    url = await upload_image(local, CONTENT_IMAGES_BUCKET, "user-1", b"img", "image/png", 100)

    async def broken(bucket, path):
        raise OSError("read-only filesystem")

    local.remove = broken
    await remove_image_quietly(local, CONTENT_IMAGES_BUCKET, url)
    assert "Could not remove image" in caplog.text
