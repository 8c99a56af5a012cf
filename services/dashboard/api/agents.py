"""
Agent and routing API endpoints.

Provides:
    GET /api/agents  - Raw agent records (cached, or fetched when uncached)
    GET /api/routing - Normalized routing bindings plus channel accounts
"""

from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter

import structlog

from opsmonitor.adapters.cli.bindings import routing_rows
from opsmonitor.errors import CommandError, ParseError
from opsmonitor.models.agents import AgentRecord
from opsmonitor.runtime import MonitorRuntime
from services.dashboard.app import get_runtime

logger = structlog.get_logger(__name__)

router = APIRouter()

ROUTING_CHANNEL = "telegram"


async def _agents(runtime: MonitorRuntime) -> Tuple[List[AgentRecord], bool, Optional[int]]:
    """Agents from the snapshot if ready, else a synchronous fetch."""
    snapshot = runtime.cache.current
    if snapshot.is_ready:
        return snapshot.agents, True, snapshot.updated_at_ms
    return await runtime.gateway.list_agents(), False, None


def _dump(agents: List[AgentRecord]) -> List[Dict[str, Any]]:
    return [a.model_dump(by_alias=True, exclude_none=True, mode="json") for a in agents]


@router.get(
    "/agents",
    summary="List agents",
    description="Raw agent records with bindings, from cache when available.",
)
async def get_agents() -> Dict[str, Any]:
    """
    List agents.

    Raises:
        CommandError: If the uncached fetch fails (mapped to 502).
        ParseError: If the uncached fetch returns malformed output (502).
    """
    runtime = get_runtime()
    agents, cached, updated_at_ms = await _agents(runtime)
    response: Dict[str, Any] = {"ok": True, "cached": cached, "agents": _dump(agents)}
    if updated_at_ms is not None:
        response["updatedAtMs"] = updated_at_ms
    return response


@router.get(
    "/routing",
    summary="List routing bindings",
    description="Best-effort normalized bindings and configured channel accounts.",
)
async def get_routing() -> Dict[str, Any]:
    """
    List routing bindings.

    The channel account listing is peripheral: its failure is reported in
    ``channelsError`` instead of failing the request.
    """
    runtime = get_runtime()
    agents, _, _ = await _agents(runtime)
    rows = routing_rows(agents)

    accounts: List[str] = []
    channels_error: Optional[str] = None
    try:
        accounts = await runtime.gateway.list_channel_accounts(ROUTING_CHANNEL)
    except (CommandError, ParseError) as e:
        channels_error = str(e)
        logger.warning("channel_accounts_unavailable", error=channels_error)

    return {
        "ok": True,
        "updatedAtMs": runtime.scheduler.now_ms(),
        "total": len(rows),
        "rows": [row.to_response() for row in rows],
        "telegramAccounts": accounts,
        "channelsError": channels_error,
    }
