"""
Health API endpoint.

Provides:
    GET /api/health - Liveness, uptime, snapshot version and store status
"""

from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

import structlog

logger = structlog.get_logger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Response model for health endpoint."""

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "example": {
                "ok": True,
                "uptimeSeconds": 15780,
                "snapshotVersion": 1578,
                "store": "connected",
            }
        },
    }

    ok: bool = True
    uptime_seconds: int = Field(default=0, alias="uptimeSeconds")
    snapshot_version: Optional[int] = Field(default=None, alias="snapshotVersion")
    store: str = "unknown"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Get service health",
    description="Liveness check; reports uptime, snapshot version and store status.",
)
async def get_health() -> HealthResponse:
    """
    Get service health.

    Always answers ``ok: true`` while the process serves requests; the
    snapshot version and store status are informational.
    """
    from services.dashboard.app import app_state

    runtime = app_state.runtime
    if runtime is None:
        return HealthResponse(store="disconnected")

    store_status = "connected" if await runtime.store.ping() else "disconnected"
    return HealthResponse(
        uptime_seconds=int(runtime.uptime_seconds),
        snapshot_version=runtime.cache.current.version,
        store=store_status,
    )
