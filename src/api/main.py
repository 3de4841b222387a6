"""Kitchen Commons API — FastAPI application with DB-backed storage."""
from __future__ import annotations

import logging
import os

from src.logging_config import setup_logging
setup_logging()
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.db.engine import engine, get_session
from src.db.repository import ProfileRepository
from src.db.tables import Base
from src.errors import ContentError, ValidationError
from src.models import Identity, Role

# ── Sentry Error Tracking ────────────────────────
if settings.SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            FastApiIntegration(),
            SqlalchemyIntegration(),
            LoggingIntegration(level=logging.WARNING, event_level=logging.ERROR),
        ],
        send_default_pii=False,
    )

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate config and create tables on startup; drain the pool on shutdown."""
    from src.startup_checks import validate_settings
    validate_settings()

    # Import all tables so they're registered with Base.metadata
    import src.db.user_tables  # noqa: F401
    import src.db.report_tables  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")

    yield

    logger.info("Shutting down — draining connections...")
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title="Kitchen Commons API",
    version=VERSION,
    description="Community recipes and packaging-reuse ideas, moderated before publication",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Security headers (outermost layer)
from src.middleware.security_headers import SecurityHeadersMiddleware
app.add_middleware(SecurityHeadersMiddleware)

# Request ID tracing
from src.middleware.request_id import RequestIDMiddleware
app.add_middleware(RequestIDMiddleware)

# Uploaded images (content-images and avatars buckets)
os.makedirs(settings.STORAGE_DIR, exist_ok=True)
app.mount(settings.STORAGE_PUBLIC_BASE_URL, StaticFiles(directory=settings.STORAGE_DIR), name="storage")


# ---- Auth routes ----
from src.auth import (
    LoginRequest, RefreshRequest, SignUpRequest, create_tokens, get_token_claims,
    hash_password, require_identity, require_user, revoke_tokens, rotate_refresh_token,
    verify_password,
)
from src.db.user_tables import ProfileRow, UserRow
from src.services.access import is_moderator


def _user_body(user: UserRow, profile: ProfileRow | None) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "username": profile.username if profile else None,
        "avatar_url": profile.avatar_url if profile else None,
    }


@app.post("/api/v1/auth/signup", status_code=201)
async def signup(req: SignUpRequest, session: AsyncSession = Depends(get_session)):
    """Create an account and its public profile."""
    existing = await session.execute(select(UserRow.id).where(UserRow.email == req.email))
    if existing.scalar_one_or_none():
        raise HTTPException(409, "Email already registered")
    if await ProfileRepository(session).username_taken(req.username):
        raise HTTPException(409, "Username already taken")

    user = UserRow(email=req.email, password_hash=hash_password(req.password))
    session.add(user)
    try:
        await session.flush()
        profile = ProfileRow(id=user.id, username=req.username)
        session.add(profile)
        await session.commit()
    except IntegrityError:
        # Lost a race with a concurrent signup for the same email or username
        await session.rollback()
        raise HTTPException(409, "Email or username already registered")

    logger.info("New account %s (%s)", user.id, req.username)
    return {"user": _user_body(user, profile), **create_tokens(user.id)}


@app.post("/api/v1/auth/login")
async def login(req: LoginRequest, session: AsyncSession = Depends(get_session)):
    """Log in with email + password, returns JWT tokens."""
    result = await session.execute(select(UserRow).where(UserRow.email == req.email))
    user = result.scalar_one_or_none()
    if not user or not verify_password(req.password, user.password_hash):
        raise HTTPException(401, "Invalid email or password")
    profile = await session.get(ProfileRow, user.id)
    return {"user": _user_body(user, profile), **create_tokens(user.id)}


@app.post("/api/v1/auth/refresh")
async def refresh_token(req: RefreshRequest, session: AsyncSession = Depends(get_session)):
    """Exchange a valid refresh token for new access + refresh tokens."""
    rotated = await rotate_refresh_token(session, req.refresh_token)
    if rotated is None:
        raise HTTPException(401, "Invalid or expired refresh token")
    user, tokens = rotated
    profile = await session.get(ProfileRow, user.id)
    return {"user": _user_body(user, profile), **tokens}


@app.post("/api/v1/auth/logout", status_code=204)
async def logout(
    claims: dict | None = Depends(get_token_claims),
    session: AsyncSession = Depends(get_session),
):
    """Revoke the current access token and its refresh token."""
    if not claims:
        raise HTTPException(401, "Authentication required")
    await revoke_tokens(session, claims)


@app.get("/api/v1/me")
async def me(user: UserRow = Depends(require_user), session: AsyncSession = Depends(get_session)):
    profile = await session.get(ProfileRow, user.id)
    return _user_body(user, profile)


@app.get("/api/v1/me/role")
async def my_role(
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    moderator = await is_moderator(session, actor.user_id)
    return {"role": (Role.ADMIN if moderator else Role.USER).value, "is_moderator": moderator}


# ---- Feature routers ----
from src.api.content import router as content_router
app.include_router(content_router)

from src.api.moderation import router as moderation_router
app.include_router(moderation_router)

from src.api.reports import router as reports_router
app.include_router(reports_router)

from src.api.saved import router as saved_router
app.include_router(saved_router)

from src.api.profiles import router as profiles_router
app.include_router(profiles_router)

from src.api.admin import router as admin_router
app.include_router(admin_router)


@app.get("/health")
async def health(session: AsyncSession = Depends(get_session)):
    """Deep health check — validates DB connectivity."""
    try:
        await session.execute(text("SELECT 1"))
        db_status = "connected"
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database", exc_info=True)
        db_status = "error"
    status = "ok" if db_status == "connected" else "degraded"
    return {"status": status, "db": db_status, "version": VERSION}


# --- Structured Error Responses ---

from fastapi import Request as FastAPIRequest
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError


@app.exception_handler(ContentError)
async def content_error_handler(request: FastAPIRequest, exc: ContentError):
    """Domain errors carry their own status and code."""
    body = {"error": exc.code, "message": exc.message}
    if isinstance(exc, ValidationError):
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: FastAPIRequest, exc: RequestValidationError):
    """Return clean, structured validation errors instead of raw Pydantic output."""
    errors = []
    for err in exc.errors():
        field = " → ".join(str(loc) for loc in err["loc"]) if err.get("loc") else "unknown"
        message = err["msg"]
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": field, "message": message})
    return JSONResponse(status_code=422, content={
        "error": "validation_error",
        "message": "Invalid request data",
        "details": errors,
    })


@app.exception_handler(HTTPException)
async def http_error_handler(request: FastAPIRequest, exc: HTTPException):
    """Consistent error envelope for all HTTP errors."""
    return JSONResponse(status_code=exc.status_code, content={
        "error": exc.detail if isinstance(exc.detail, str) else "error",
        "message": exc.detail,
    })


@app.exception_handler(Exception)
async def unhandled_error_handler(request: FastAPIRequest, exc: Exception):
    """Catch-all for unhandled exceptions — never leak stack traces."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={
        "error": "internal_error",
        "message": "Something went wrong. Please try again.",
    })
