"""
Overview API endpoint.

Provides:
    GET /api/overview - Cached per-agent aggregates with a staleness indicator

Returns 503 until the first primary refresh has been applied. After that the
last good overview is always served; a failing refresh shows up only in
``lastError`` and a growing ``ageMs``.
"""

from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

import structlog

from opsmonitor.models.agents import AgentSnapshot
from services.dashboard.app import get_runtime

logger = structlog.get_logger(__name__)

router = APIRouter()


class OverviewResponse(BaseModel):
    """Response model for overview endpoint."""

    model_config = {"populate_by_name": True}

    ok: bool = True
    cached: bool = True
    updated_at_ms: int = Field(..., alias="updatedAtMs")
    age_ms: int = Field(..., alias="ageMs")
    stale: bool = False
    last_error: Optional[str] = Field(default=None, alias="lastError")
    last_refresh_ms: Optional[int] = Field(default=None, alias="lastRefreshMs")
    active_minutes: int = Field(..., alias="activeMinutes")
    agents: List[AgentSnapshot]


@router.get(
    "/overview",
    response_model=OverviewResponse,
    summary="Get per-agent overview",
    description="Cached aggregates from the last applied refresh.",
)
async def get_overview() -> OverviewResponse:
    """
    Get the per-agent overview.

    Raises:
        HTTPException: 503 before the first applied refresh.
    """
    runtime = get_runtime()
    snapshot = runtime.cache.current
    if not snapshot.is_ready:
        raise HTTPException(status_code=503, detail="cache warming up, retry shortly")

    now_ms = runtime.scheduler.now_ms()
    return OverviewResponse(
        updated_at_ms=snapshot.updated_at_ms,
        age_ms=snapshot.age_ms(now_ms) or 0,
        stale=runtime.scheduler.is_stale(snapshot, now_ms),
        last_error=snapshot.last_error,
        last_refresh_ms=snapshot.last_refresh_ms,
        active_minutes=snapshot.active_minutes,
        agents=snapshot.overview,
    )
