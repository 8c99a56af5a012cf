"""
Trends API endpoints for historical samples.

Provides:
    GET /api/trends/agent-metrics?days=N - Per-agent samples, oldest first
    GET /api/trends/cron-jobs?days=N     - Per-job samples, oldest first
    GET /api/trends/p0?days=N            - Alert events, newest first

Rows keep the store's snake_case column names. ``days`` defaults to 7 and
must be positive; lookbacks reaching before the epoch return every row.
"""

from typing import Any, Dict

from fastapi import APIRouter, Query

import structlog

from opsmonitor.errors import ValidationError
from services.dashboard.app import get_runtime

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/trends")

DEFAULT_DAYS = 7.0


def _check_days(days: float) -> float:
    if days <= 0:
        raise ValidationError("days must be greater than 0")
    return days


@router.get(
    "/agent-metrics",
    summary="Per-agent trend samples",
)
async def get_agent_metrics(
    days: float = Query(DEFAULT_DAYS, allow_inf_nan=False, description="Lookback in days"),
) -> Dict[str, Any]:
    """Per-agent samples within the lookback, ascending by ts_ms."""
    runtime = get_runtime()
    rows = await runtime.store.query_agent_metrics(days=_check_days(days))
    return {"ok": True, "days": days, "rows": [r.model_dump() for r in rows]}


@router.get(
    "/cron-jobs",
    summary="Per-job trend samples",
)
async def get_cron_job_metrics(
    days: float = Query(DEFAULT_DAYS, allow_inf_nan=False, description="Lookback in days"),
) -> Dict[str, Any]:
    """Per-job samples within the lookback, ascending by ts_ms."""
    runtime = get_runtime()
    rows = await runtime.store.query_cron_job_metrics(days=_check_days(days))
    return {"ok": True, "days": days, "rows": [r.model_dump() for r in rows]}


@router.get(
    "/p0",
    summary="Alert event log",
)
async def get_alert_events(
    days: float = Query(DEFAULT_DAYS, allow_inf_nan=False, description="Lookback in days"),
) -> Dict[str, Any]:
    """Alert events within the lookback, descending by ts_ms."""
    runtime = get_runtime()
    rows = await runtime.store.query_alert_events(days=_check_days(days))
    return {"ok": True, "days": days, "rows": [r.model_dump() for r in rows]}
