"""Startup validation — catch misconfigurations before the app serves traffic."""
from __future__ import annotations

import logging
import os
import sys

from config.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_JWT_SECRET = "kitchen-commons-dev-secret-change-in-prod"


def validate_settings() -> list[str]:
    """Validate configuration. Returns list of warnings (empty = all good).

    Raises SystemExit for critical misconfigurations in production.
    """
    warnings: list[str] = []
    is_prod = settings.DATABASE_URL and "sqlite" not in settings.DATABASE_URL

    # Critical: JWT secret must be changed in production
    if is_prod and settings.JWT_SECRET == DEFAULT_JWT_SECRET:
        logger.critical("JWT_SECRET is still the default! Set a real secret for production.")
        sys.exit(1)

    if is_prod and "*" in settings.CORS_ORIGINS:
        warnings.append("CORS_ORIGINS is set to * — restrict in production")

    if not settings.ADMIN_API_KEY:
        warnings.append("ADMIN_API_KEY not set — operator role assignment disabled")

    if os.path.exists(settings.STORAGE_DIR) and not os.access(settings.STORAGE_DIR, os.W_OK):
        warnings.append(f"STORAGE_DIR {settings.STORAGE_DIR!r} is not writable — uploads will fail")

    if settings.MAX_AVATAR_BYTES > settings.MAX_CONTENT_IMAGE_BYTES:
        warnings.append("MAX_AVATAR_BYTES exceeds MAX_CONTENT_IMAGE_BYTES")

    for w in warnings:
        logger.warning("%s", w)

    if not warnings:
        logger.info("All startup checks passed")

    return warnings
