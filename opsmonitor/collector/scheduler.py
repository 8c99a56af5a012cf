"""
Refresh scheduler.

Collects live state through the OpsGateway, installs it in the
SnapshotCache and samples it into the TimeSeriesStore.

A primary cycle moves Idle -> Collecting -> Applied | Failed:
    - Collecting: agents, primary-window sessions and cron jobs are fetched
      concurrently.
    - Applied: all three succeeded; the overview is rebuilt, the snapshot is
      swapped, and trend samples are persisted best-effort.
    - Failed: any one failed; only the snapshot's ``last_error`` changes.

Example:
    >>> scheduler = RefreshScheduler(gateway, cache, store, config.collector)
    >>> applied = await scheduler.refresh_primary()
"""

import asyncio
import time
from typing import Callable, Optional

import structlog

from opsmonitor.cache.snapshot import Snapshot, SnapshotCache
from opsmonitor.collector.aggregator import agent_samples, build_overview, cron_job_samples
from opsmonitor.config.models import PRIMARY_WINDOW, CollectorConfig
from opsmonitor.errors import OpsMonitorError, PersistenceError
from opsmonitor.interfaces.ops_gateway import OpsGateway
from opsmonitor.models.sessions import SessionWindow
from opsmonitor.storage.timeseries import TimeSeriesStore

logger = structlog.get_logger(__name__)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class RefreshScheduler:
    """
    Runs collection cycles and maintains the snapshot cache.

    Attributes:
        gateway: Source of live state.
        cache: Snapshot holder.
        store: Trend sample sink.
        config: Windows and cadence.
    """

    def __init__(
        self,
        gateway: OpsGateway,
        cache: SnapshotCache,
        store: TimeSeriesStore,
        config: CollectorConfig,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.gateway = gateway
        self.cache = cache
        self.store = store
        self.config = config
        self._clock = clock

    async def refresh_primary(self) -> bool:
        """
        Run one primary collection cycle.

        Returns:
            bool: True if the cycle was applied, False if it failed.

        Raises:
            Exception: Only for errors outside the ops error taxonomy.
        """
        started = time.monotonic()
        primary_minutes = self.config.session_windows[PRIMARY_WINDOW]

        results = await asyncio.gather(
            self.gateway.list_agents(),
            self.gateway.list_sessions(PRIMARY_WINDOW, primary_minutes),
            self.gateway.list_cron_jobs(),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            for error in errors:
                if not isinstance(error, OpsMonitorError):
                    raise error
            message = "; ".join(str(e) for e in errors)
            self.cache.record_failure(message)
            logger.warning("refresh_failed", error=message, failures=len(errors))
            return False

        agents, sessions, cron = results
        overview = build_overview(agents, sessions, cron)
        updated_at_ms = self._clock()
        duration_ms = int((time.monotonic() - started) * 1000)

        snapshot = self.cache.apply(
            agents=agents,
            overview=overview,
            primary_sessions=sessions,
            cron=cron,
            updated_at_ms=updated_at_ms,
            last_refresh_ms=duration_ms,
        )
        logger.info(
            "refresh_applied",
            version=snapshot.version,
            agents=len(overview),
            sessions=len(sessions.sessions),
            cron_jobs=len(cron.jobs),
            duration_ms=duration_ms,
        )

        await self._persist(snapshot)
        return True

    async def _persist(self, snapshot: Snapshot) -> None:
        """Sample the snapshot into the store; failures are logged only."""
        ts_ms = snapshot.updated_at_ms
        if ts_ms is None:
            return
        try:
            await self.store.insert_agent_metrics(agent_samples(ts_ms, snapshot.overview))
            if snapshot.cron is not None:
                await self.store.insert_cron_job_metrics(cron_job_samples(ts_ms, snapshot.cron))
        except PersistenceError as e:
            logger.warning("metrics_persist_failed", ts_ms=ts_ms, error=str(e))

    async def refresh_window(self, window: str) -> SessionWindow:
        """
        Fetch one session window and install it on success.

        Raises:
            KeyError: If the window is not configured.
            CommandError: If the invocation fails.
            ParseError: If the output cannot be normalized.
        """
        minutes = self.config.session_windows[window]
        listing = await self.gateway.list_sessions(window, minutes)
        self.cache.with_window(listing)
        return listing

    async def refresh_secondary(self) -> int:
        """
        Refresh every non-primary window independently.

        A failing window keeps its previous cache entry.

        Returns:
            int: Number of windows refreshed.
        """
        refreshed = 0
        for window in self.config.secondary_windows:
            try:
                await self.refresh_window(window)
                refreshed += 1
            except OpsMonitorError as e:
                logger.warning("window_refresh_failed", window=window, error=str(e))
        return refreshed

    def is_stale(self, snapshot: Optional[Snapshot] = None, at_ms: Optional[int] = None) -> bool:
        """Whether the snapshot is older than the staleness cutoff."""
        snapshot = snapshot or self.cache.current
        age = snapshot.age_ms(at_ms if at_ms is not None else self._clock())
        return age is None or age > self.config.effective_stale_after_ms

    def now_ms(self) -> int:
        return self._clock()
