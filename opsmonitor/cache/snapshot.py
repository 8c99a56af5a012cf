"""
In-memory snapshot of the most recent successful collection.

A Snapshot is an immutable, versioned value. SnapshotCache holds exactly one
current Snapshot and replaces it with a single reference assignment, so
readers always observe either the old or the new snapshot in full, never a
mix. Every transition derives the new value from ``current`` at the moment of
the swap, without awaiting in between, so concurrent primary and secondary
refreshes cannot drop each other's updates.

Example:
    >>> cache = SnapshotCache()
    >>> cache.current.is_ready
    False
    >>> cache.apply(agents, overview, sessions_24h, cron, updated_at_ms, 120)
    >>> cache.current.version
    1
"""

from typing import Dict, List, Optional

import structlog
from pydantic import BaseModel, Field

from opsmonitor.config.models import PRIMARY_WINDOW
from opsmonitor.models.agents import AgentRecord, AgentSnapshot
from opsmonitor.models.cron import CronJobList
from opsmonitor.models.sessions import SessionWindow

logger = structlog.get_logger(__name__)


class Snapshot(BaseModel):
    """
    Point-in-time view served by the HTTP surface.

    Attributes:
        version: Incremented on every transition.
        updated_at_ms: Completion time of the last applied primary refresh,
            None until the first one succeeds.
        agents: Raw agent records.
        overview: Per-agent aggregates.
        active_minutes: Activity horizon of the overview.
        sessions_by_window: Latest successful session listing per window.
        cron: Redacted cron job list.
        last_error: Diagnostic of the most recent failed primary refresh.
        last_refresh_ms: Duration of the last applied primary refresh.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    version: int = Field(default=0, ge=0)
    updated_at_ms: Optional[int] = None
    agents: List[AgentRecord] = Field(default_factory=list)
    overview: List[AgentSnapshot] = Field(default_factory=list)
    active_minutes: int = 1440
    sessions_by_window: Dict[str, SessionWindow] = Field(default_factory=dict)
    cron: Optional[CronJobList] = None
    last_error: Optional[str] = None
    last_refresh_ms: Optional[int] = None

    @property
    def is_ready(self) -> bool:
        """Whether a primary refresh has ever been applied."""
        return self.updated_at_ms is not None

    def age_ms(self, now_ms: int) -> Optional[int]:
        """Milliseconds since the last applied refresh."""
        if self.updated_at_ms is None:
            return None
        return max(0, now_ms - self.updated_at_ms)


class SnapshotCache:
    """
    Holder of the single current Snapshot.

    Attributes:
        current: The authoritative snapshot.
    """

    def __init__(self, active_minutes: int = 1440) -> None:
        self._current = Snapshot(active_minutes=active_minutes)

    @property
    def current(self) -> Snapshot:
        return self._current

    def apply(
        self,
        agents: List[AgentRecord],
        overview: List[AgentSnapshot],
        primary_sessions: SessionWindow,
        cron: CronJobList,
        updated_at_ms: int,
        last_refresh_ms: int,
    ) -> Snapshot:
        """
        Install the result of a successful primary refresh.

        Secondary windows already cached are carried over; ``last_error`` is
        cleared.
        """
        prev = self._current
        windows = dict(prev.sessions_by_window)
        windows[PRIMARY_WINDOW] = primary_sessions

        self._current = prev.model_copy(
            update={
                "version": prev.version + 1,
                "updated_at_ms": updated_at_ms,
                "agents": list(agents),
                "overview": list(overview),
                "sessions_by_window": windows,
                "cron": cron,
                "last_error": None,
                "last_refresh_ms": last_refresh_ms,
            }
        )
        return self._current

    def record_failure(self, error: str) -> Snapshot:
        """Replace only the diagnostic; data and timestamp stay as they were."""
        prev = self._current
        self._current = prev.model_copy(
            update={"version": prev.version + 1, "last_error": error}
        )
        return self._current

    def with_window(self, window: SessionWindow) -> Snapshot:
        """Install a session listing for one window."""
        prev = self._current
        windows = dict(prev.sessions_by_window)
        windows[window.window] = window
        self._current = prev.model_copy(
            update={"version": prev.version + 1, "sessions_by_window": windows}
        )
        logger.debug("session_window_cached", window=window.window, count=len(window.sessions))
        return self._current
