"""
Cron API endpoints.

Provides:
    GET  /api/cron                - Redacted cron job list
    POST /api/cron/{job_id}/{action} - Enable, disable or run a job now

Job payloads are redacted at normalization, so neither the cached nor the
synchronously fetched list can expose payload messages.
"""

from typing import Any, Dict

from fastapi import APIRouter

import structlog

from opsmonitor.errors import ValidationError
from opsmonitor.interfaces.ops_gateway import CronAction
from services.dashboard.app import get_runtime

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/cron",
    summary="List cron jobs",
    description="Redacted cron jobs, from cache when available.",
)
async def get_cron() -> Dict[str, Any]:
    """List cron jobs."""
    runtime = get_runtime()
    snapshot = runtime.cache.current
    if snapshot.cron is not None:
        return {
            "ok": True,
            "cached": True,
            "updatedAtMs": snapshot.updated_at_ms,
            **snapshot.cron.to_response(),
        }

    jobs = await runtime.gateway.list_cron_jobs()
    return {"ok": True, "cached": False, **jobs.to_response()}


@router.post(
    "/cron/{job_id}/{action}",
    summary="Mutate a cron job",
    description="Synchronously enable, disable or trigger a job.",
)
async def mutate_cron(job_id: str, action: str) -> Dict[str, Any]:
    """
    Enable, disable or run a cron job.

    Raises:
        ValidationError: If the action is not enable, disable or run (400).
    """
    try:
        cron_action = CronAction(action)
    except ValueError:
        raise ValidationError(f"invalid action '{action}'") from None

    runtime = get_runtime()
    result = await runtime.gateway.mutate_cron_job(job_id, cron_action)
    logger.info("cron_mutation_requested", job_id=job_id, action=cron_action.value)
    return {"ok": True, "result": result}
