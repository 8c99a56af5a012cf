"""
Monitor runtime: component wiring and background timers.

MonitorRuntime builds every component from an AppConfig and runs three
fixed-interval timers on the current event loop:

    - primary refresh (agents, 24h sessions, cron), first run immediately
    - secondary session windows (7d, 30d)
    - anomaly detection tick

Each timer tick spawns the cycle as its own task, so a slow cycle never
delays the next tick. Overlapping cycles are allowed; the snapshot cache
takes the last write.

Example:
    >>> runtime = MonitorRuntime.from_config(load_config())
    >>> await runtime.start()
    >>> ...
    >>> await runtime.stop()
"""

import asyncio
import time
from typing import Awaitable, Callable, List, Optional, Set

import structlog

from opsmonitor.adapters.cli import CliOpsGateway
from opsmonitor.cache.snapshot import SnapshotCache
from opsmonitor.collector.scheduler import RefreshScheduler
from opsmonitor.config.models import AppConfig
from opsmonitor.detection.dispatcher import NotificationDispatcher
from opsmonitor.detection.idle import IdleTracker
from opsmonitor.detection.monitor import AnomalyMonitor
from opsmonitor.detection.rules import AnomalyRules
from opsmonitor.errors import PersistenceError
from opsmonitor.interfaces.ops_gateway import OpsGateway
from opsmonitor.storage.cooldown import CooldownStore
from opsmonitor.storage.timeseries import TimeSeriesStore

logger = structlog.get_logger(__name__)


class MonitorRuntime:
    """
    Owns the monitor components and their timers.

    Attributes:
        config: Application configuration.
        gateway: External tool access.
        store: Trend store.
        cooldown: Cooldown document.
        cache: Snapshot cache.
        scheduler: Refresh cycles.
        monitor: Anomaly ticks.
        started_at: Monotonic start time, for uptime.
    """

    def __init__(
        self,
        config: AppConfig,
        gateway: OpsGateway,
        store: TimeSeriesStore,
        cooldown: CooldownStore,
    ) -> None:
        self.config = config
        self.gateway = gateway
        self.store = store
        self.cooldown = cooldown
        self.cache = SnapshotCache(active_minutes=config.collector.active_minutes)
        self.scheduler = RefreshScheduler(gateway, self.cache, store, config.collector)
        self.rules = AnomalyRules(config.alerts, public_base_url=config.server.public_base_url)
        self.monitor = AnomalyMonitor(
            gateway=gateway,
            rules=self.rules,
            idle_tracker=IdleTracker(cooldown, glyph=config.alerts.idle_prompt_glyph),
            dispatcher=NotificationDispatcher(gateway, cooldown, store, config.alerts),
            collector=config.collector,
        )
        self.started_at = time.monotonic()
        self._timers: List[asyncio.Task] = []
        self._inflight: Set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        gateway: Optional[OpsGateway] = None,
    ) -> "MonitorRuntime":
        """Build a runtime with the CLI gateway and file-backed stores."""
        return cls(
            config=config,
            gateway=gateway or CliOpsGateway(config.command),
            store=TimeSeriesStore(config.storage.db_path),
            cooldown=CooldownStore(
                config.storage.notify_state_path,
                cooldown_ms=config.alerts.cooldown_ms,
            ),
        )

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def is_running(self) -> bool:
        return bool(self._timers)

    async def start(self) -> None:
        """Connect the store and start the timers."""
        try:
            await self.store.connect()
        except PersistenceError as e:
            # Trend writes and queries fail individually until restart
            logger.error("timeseries_unavailable", error=str(e))
        self.started_at = time.monotonic()
        collector = self.config.collector
        scheduler = self.scheduler

        timers = [
            ("primary_refresh", collector.refresh_interval_ms, scheduler.refresh_primary, True),
            ("secondary_refresh", collector.secondary_interval_ms, scheduler.refresh_secondary, False),
            ("anomaly_tick", collector.anomaly_interval_ms, self.monitor.tick, False),
        ]
        self._timers = [
            asyncio.create_task(self._timer(name, interval_ms, job, immediate=immediate))
            for name, interval_ms, job, immediate in timers
        ]
        logger.info(
            "monitor_runtime_started",
            refresh_interval_ms=collector.refresh_interval_ms,
            secondary_interval_ms=collector.secondary_interval_ms,
            anomaly_interval_ms=collector.anomaly_interval_ms,
        )

    async def stop(self) -> None:
        """Cancel timers and in-flight cycles, then close the store."""
        tasks = [*self._timers, *self._inflight]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._timers = []
        self._inflight.clear()
        await self.store.disconnect()
        logger.info("monitor_runtime_stopped")

    async def _timer(
        self,
        name: str,
        interval_ms: int,
        job: Callable[[], Awaitable[object]],
        immediate: bool = False,
    ) -> None:
        interval = interval_ms / 1000
        try:
            if not immediate:
                await asyncio.sleep(interval)
            while True:
                task = asyncio.create_task(self._run(name, job))
                self._inflight.add(task)
                task.add_done_callback(self._inflight.discard)
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.debug("timer_cancelled", timer=name)
            raise

    async def _run(self, name: str, job: Callable[[], Awaitable[object]]) -> None:
        try:
            await job()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("background_cycle_failed", timer=name, error=str(e), exc_info=True)
