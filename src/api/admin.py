"""Operator endpoints, protected by the X-Admin-Key header rather than a user role."""
import hmac

from fastapi import APIRouter, Depends, Header, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.db.engine import get_session
from src.models import Role
from src.services import access

router = APIRouter(prefix="/api/v1/db-admin", tags=["db-admin"])


def verify_admin_key(x_admin_key: str = Header(None)) -> None:
    """Verify admin API key from request header (timing-safe)."""
    expected_key = settings.ADMIN_API_KEY
    if not expected_key:
        raise HTTPException(503, "Admin endpoints disabled (ADMIN_API_KEY not set)")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, expected_key):
        raise HTTPException(403, "Invalid admin key")


class RoleAssignment(BaseModel):
    user_id: str
    role: Role = Role.ADMIN


@router.post("/roles")
async def assign_role(
    body: RoleAssignment,
    session: AsyncSession = Depends(get_session),
    _auth: None = Depends(verify_admin_key),
):
    """
    Assign a role directly, typically to grant the first moderator.

    Requires: X-Admin-Key header with valid admin API key.
    """
    role = await access.set_role(session, body.user_id, body.role)
    return {"user_id": body.user_id, "role": role.value}
