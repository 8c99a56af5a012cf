"""
Sessions API endpoint.

Provides:
    GET /api/sessions?window={24h|7d|30d} - Sessions active within a window

Windows are served from the snapshot cache; a window that has not been
cached yet is fetched synchronously (and cached on success).
"""

from typing import Any, Dict

from fastapi import APIRouter, Query

import structlog

from opsmonitor.config.models import PRIMARY_WINDOW
from opsmonitor.errors import ValidationError
from services.dashboard.app import get_runtime

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get(
    "/sessions",
    summary="List sessions",
    description="Sessions of all agents active within the given window.",
)
async def get_sessions(
    window: str = Query(PRIMARY_WINDOW, description="Window: '24h', '7d' or '30d'"),
) -> Dict[str, Any]:
    """
    List sessions for a window.

    Raises:
        ValidationError: If the window is not configured (mapped to 400).
    """
    runtime = get_runtime()
    windows = runtime.config.collector.session_windows
    if window not in windows:
        raise ValidationError(f"unknown window '{window}' (expected one of {', '.join(windows)})")

    snapshot = runtime.cache.current
    listing = snapshot.sessions_by_window.get(window)
    cached = listing is not None
    if listing is None:
        listing = await runtime.scheduler.refresh_window(window)

    response: Dict[str, Any] = {
        "ok": True,
        "cached": cached,
        "window": window,
        "activeMinutes": listing.active_minutes,
    }
    if cached and snapshot.updated_at_ms is not None:
        response["updatedAtMs"] = snapshot.updated_at_ms
    response.update(listing.to_response())
    return response
