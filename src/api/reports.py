"""Report API: users flag content for moderator attention."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import require_identity
from src.db.engine import get_session
from src.models import Identity, Report, ReportRequest
from src.services import reports

router = APIRouter(prefix="/api/v1", tags=["reports"])


@router.post("/reports", status_code=201, response_model=Report)
async def submit_report(
    body: ReportRequest,
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
):
    """Submit a content report."""
    return await reports.file_report(session, actor, body.content_id, body.reason, body.details)


@router.get("/reports/my")
async def my_reports(
    actor: Identity = Depends(require_identity),
    session: AsyncSession = Depends(get_session),
    offset: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=50),
):
    """List reports submitted by the current user."""
    return {"reports": await reports.my_reports(session, actor, limit=limit, offset=offset)}
