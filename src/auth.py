"""JWT authentication for Kitchen Commons: accounts, tokens, sign-out."""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field, field_validator
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.db.engine import get_session
from src.db.user_tables import RevokedTokenRow, UserRow
from src.models import Identity

logger = logging.getLogger(__name__)

# ---- Password hashing (PBKDF2, stdlib only) ----

_ITERATIONS = 260_000
_SALT_LEN = 32


def hash_password(password: str) -> str:
    salt = uuid.uuid4().hex[:_SALT_LEN]
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _ITERATIONS)
    return f"{salt}${dk.hex()}"


def verify_password(password: str, stored: str) -> bool:
    salt, dk_hex = stored.split("$", 1)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), _ITERATIONS)
    return hmac.compare_digest(dk.hex(), dk_hex)


# ---- JWT (HS256, no PyJWT dependency) ----

_JWT_ALGO = "HS256"
ACCESS_TTL = 3600 * 24 * 7  # 7 days
REFRESH_TTL = 3600 * 24 * 30  # 30 days


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode()


def _b64url_decode(s: str) -> bytes:
    s += "=" * (-len(s) % 4)
    return base64.urlsafe_b64decode(s)


def _signature(signing_input: bytes) -> bytes:
    return hmac.new(settings.JWT_SECRET.encode(), signing_input, hashlib.sha256).digest()


def _sign(payload: dict) -> str:
    header = _b64url(json.dumps({"alg": _JWT_ALGO, "typ": "JWT"}).encode())
    body = _b64url(json.dumps(payload).encode())
    sig = _signature(f"{header}.{body}".encode())
    return f"{header}.{body}.{_b64url(sig)}"


def decode_token(token: str) -> Optional[dict]:
    """Claims of a well-signed, unexpired token, else None."""
    parts = token.split(".")
    if len(parts) != 3:
        return None
    try:
        expected = _signature(f"{parts[0]}.{parts[1]}".encode())
        if not hmac.compare_digest(expected, _b64url_decode(parts[2])):
            return None
        payload = json.loads(_b64url_decode(parts[1]))
        if payload.get("exp", 0) < time.time():
            return None
    except (ValueError, AttributeError, TypeError):
        return None
    return payload


def create_tokens(user_id: str) -> dict:
    """Access + refresh pair. The refresh jti is the access jti plus ``r``."""
    now = int(time.time())
    nonce = uuid.uuid4().hex
    access = _sign({"sub": user_id, "iat": now, "exp": now + ACCESS_TTL, "type": "access", "jti": nonce})
    refresh = _sign({"sub": user_id, "iat": now, "exp": now + REFRESH_TTL, "type": "refresh", "jti": nonce + "r"})
    return {"access_token": access, "refresh_token": refresh, "token_type": "bearer"}


# ---- Revocation ----

async def is_revoked(session: AsyncSession, jti: str | None) -> bool:
    if not jti:
        return True
    result = await session.execute(select(RevokedTokenRow.jti).where(RevokedTokenRow.jti == jti))
    return result.scalar_one_or_none() is not None


async def _revoke(session: AsyncSession, jti: str, user_id: str, exp: int) -> None:
    if await is_revoked(session, jti):
        return
    session.add(RevokedTokenRow(
        jti=jti,
        user_id=user_id,
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
    ))


async def revoke_tokens(session: AsyncSession, claims: dict) -> None:
    """Sign out: revoke the presented access token and its refresh partner."""
    jti = claims["jti"]
    await _revoke(session, jti, claims["sub"], claims["exp"])
    if claims.get("type") == "access":
        await _revoke(session, jti + "r", claims["sub"], claims["iat"] + REFRESH_TTL)
    # Expired rows can never match a valid token again
    await session.execute(
        delete(RevokedTokenRow).where(RevokedTokenRow.expires_at < datetime.now(timezone.utc))
    )
    await session.commit()
    logger.info("User %s signed out", claims["sub"])


async def rotate_refresh_token(session: AsyncSession, refresh_token: str) -> Optional[tuple[UserRow, dict]]:
    """Exchange a refresh token for a new pair; the old refresh token is revoked."""
    claims = decode_token(refresh_token)
    if not claims or claims.get("type") != "refresh":
        return None
    if await is_revoked(session, claims.get("jti")):
        return None
    user = await session.get(UserRow, claims["sub"])
    if user is None:
        return None
    await _revoke(session, claims["jti"], user.id, claims["exp"])
    await session.commit()
    return user, create_tokens(user.id)


# ---- FastAPI dependencies ----

_bearer = HTTPBearer(auto_error=False)


async def get_token_claims(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    session: AsyncSession = Depends(get_session),
) -> Optional[dict]:
    if not creds:
        return None
    claims = decode_token(creds.credentials)
    if not claims or claims.get("type") != "access":
        return None
    if await is_revoked(session, claims.get("jti")):
        return None
    return claims


async def get_current_user(
    claims: Optional[dict] = Depends(get_token_claims),
    session: AsyncSession = Depends(get_session),
) -> Optional[UserRow]:
    if not claims:
        return None
    return await session.get(UserRow, claims["sub"])


async def require_user(user: Optional[UserRow] = Depends(get_current_user)) -> UserRow:
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return user


async def get_identity(user: Optional[UserRow] = Depends(get_current_user)) -> Optional[Identity]:
    """Caller identity for endpoints that also serve anonymous visitors."""
    if not user:
        return None
    return Identity(user_id=user.id, email=user.email)


async def require_identity(user: UserRow = Depends(require_user)) -> Identity:
    return Identity(user_id=user.id, email=user.email)


# ---- Request models ----

class SignUpRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=6, max_length=128)
    username: str = Field(..., min_length=3, max_length=50)

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, v):
        v = str(v).strip().lower()
        local, _, domain = v.partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return v

    @field_validator("username", mode="before")
    @classmethod
    def strip_username(cls, v):
        return v.strip() if isinstance(v, str) else v


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, v):
        return str(v).strip().lower()


class RefreshRequest(BaseModel):
    refresh_token: str
