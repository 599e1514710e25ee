"""Health, diagnostics and dashboard read routes."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from publishing_intel.action.dependencies import get_session
from publishing_intel.assistant.llm_providers import is_configured
from publishing_intel.reporting import queries

logger = logging.getLogger(__name__)

router = APIRouter(tags=["data"])


@router.get("/health")
async def health(request: Request) -> dict:
    ready = getattr(request.app.state, "database", None) is not None
    return {
        "status": "healthy",
        "database": "connected" if ready else "disconnected",
        "llm": is_configured(),
        "statisticalAnalysis": "enabled",
    }


@router.get("/api/diagnostics")
async def diagnostics(session: AsyncSession = Depends(get_session)) -> dict:
    """Row counts per collection."""
    counts = await queries.table_counts(session)
    return {name: {"count": count} for name, count in counts.items()}


@router.get("/api/universities")
async def universities(session: AsyncSession = Depends(get_session)) -> list[dict]:
    return await queries.list_universities(session)


@router.get("/api/dashboard")
async def dashboard(session: AsyncSession = Depends(get_session)) -> dict:
    return await queries.dashboard_summary(session)


@router.get("/api/subscriptions")
async def subscriptions(limit: int = 50, session: AsyncSession = Depends(get_session)) -> list[dict]:
    """Active subscriptions, most expensive first."""
    return await queries.list_subscriptions(session, limit=max(1, min(limit, 500)))


@router.get("/api/search")
async def search(
    q: str = "",
    type: str = "all",
    session: AsyncSession = Depends(get_session),
) -> list[dict]:
    """Substring search; ``type`` is all, journals, universities or subscriptions."""
    if not q.strip():
        raise HTTPException(status_code=400, detail="Search query is required")
    try:
        return await queries.search(session, q.strip(), type)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
