"""
Anomaly monitor.

Runs on its own cadence, independent of the refresh scheduler: each tick
re-queries live state through the gateway rather than reading the snapshot
cache, evaluates every rule and hands the candidates to the dispatcher.

A failure fetching one rule's input is logged and that rule contributes no
candidates; the other rules still run.

Example:
    >>> monitor = AnomalyMonitor(gateway, rules, tracker, dispatcher, config.collector)
    >>> summary = await monitor.tick()
"""

import asyncio
from typing import Callable, List, Optional

import structlog

from opsmonitor.collector.scheduler import now_ms as wall_clock_ms
from opsmonitor.config.models import PRIMARY_WINDOW, CollectorConfig
from opsmonitor.detection.dispatcher import DispatchSummary, NotificationDispatcher
from opsmonitor.detection.idle import IdleTracker
from opsmonitor.detection.rules import AnomalyRules
from opsmonitor.errors import OpsMonitorError
from opsmonitor.interfaces.ops_gateway import OpsGateway
from opsmonitor.models.alerts import AlertCandidate

logger = structlog.get_logger(__name__)


class AnomalyMonitor:
    """
    Evaluates anomaly rules against live state.

    Attributes:
        gateway: Source of live state.
        rules: Candidate builders.
        idle_tracker: Idle timer bookkeeping.
        dispatcher: Cooldown-gated delivery.
        collector: Window definitions.
    """

    def __init__(
        self,
        gateway: OpsGateway,
        rules: AnomalyRules,
        idle_tracker: IdleTracker,
        dispatcher: NotificationDispatcher,
        collector: CollectorConfig,
        clock: Callable[[], int] = wall_clock_ms,
    ) -> None:
        self.gateway = gateway
        self.rules = rules
        self.idle_tracker = idle_tracker
        self.dispatcher = dispatcher
        self.collector = collector
        self._clock = clock

    async def evaluate(self, now_ms: int) -> List[AlertCandidate]:
        """Collect candidates from every rule, in cron, token, idle order."""
        primary_minutes = self.collector.session_windows[PRIMARY_WINDOW]
        cron, sessions, tasks = await asyncio.gather(
            self.gateway.list_cron_jobs(),
            self.gateway.list_sessions(PRIMARY_WINDOW, primary_minutes),
            self.gateway.list_tasks(),
            return_exceptions=True,
        )

        candidates: List[AlertCandidate] = []

        if isinstance(cron, OpsMonitorError):
            logger.warning("anomaly_input_failed", rule="cron_error", error=str(cron))
        elif isinstance(cron, BaseException):
            raise cron
        else:
            candidates.extend(self.rules.cron_failures(cron))

        if isinstance(sessions, OpsMonitorError):
            logger.warning("anomaly_input_failed", rule="token_spike", error=str(sessions))
        elif isinstance(sessions, BaseException):
            raise sessions
        else:
            candidates.extend(self.rules.token_spikes(sessions))

        if isinstance(tasks, BaseException):
            raise tasks
        for task, first_seen_ms in self.idle_tracker.observe(tasks, now_ms):
            candidate = self.rules.idle_input(task, first_seen_ms, now_ms)
            if candidate is not None:
                candidates.append(candidate)

        return candidates

    async def tick(self, now_ms: Optional[int] = None) -> DispatchSummary:
        """
        Run one detection pass.

        Args:
            now_ms: Tick time (defaults to the wall clock).

        Returns:
            DispatchSummary: Outcome of dispatching this tick's candidates.
        """
        now_ms = now_ms if now_ms is not None else self._clock()
        candidates = await self.evaluate(now_ms)
        summary = await self.dispatcher.dispatch(candidates, now_ms)
        logger.info(
            "anomaly_tick_complete",
            candidates=len(candidates),
            sent=summary.sent,
            suppressed=summary.suppressed,
            failed=summary.failed,
        )
        return summary
