"""
Session detail page.

Provides:
    GET /detail/{session} - HTML page with the trailing log of an interactive
                            session (target of the idle alert's link button)

Only session ids carrying the configured prefix are accepted, so the page
cannot be used to capture arbitrary sessions.
"""

import html

from fastapi import APIRouter
from fastapi.responses import HTMLResponse

import structlog

from opsmonitor.errors import ValidationError
from services.dashboard.app import get_runtime

logger = structlog.get_logger(__name__)

router = APIRouter()

PAGE_TEMPLATE = """<!doctype html>
<meta charset="utf-8" />
<title>{title} detail log</title>
<pre style="white-space:pre-wrap;word-break:break-word;font-family:ui-monospace, Menlo, Consolas, monospace;">{body}</pre>
"""


@router.get(
    "/detail/{session}",
    response_class=HTMLResponse,
    summary="Session detail log",
)
async def get_detail(session: str) -> HTMLResponse:
    """
    Render the trailing log of an interactive session.

    Raises:
        ValidationError: If the session id lacks the allowed prefix (400).
        CommandError: If the capture fails (502).
    """
    runtime = get_runtime()
    alerts = runtime.config.alerts
    if not session.startswith(alerts.detail_session_prefix):
        raise ValidationError("invalid session")

    output = await runtime.gateway.capture_log(session, alerts.detail_lines)
    logger.debug("detail_log_captured", session=session, size=len(output))
    return HTMLResponse(
        PAGE_TEMPLATE.format(title=html.escape(session), body=html.escape(output))
    )
