"""
Notification dispatcher with cooldown gating.

This module provides the NotificationDispatcher class which delivers alert
candidates through the messaging side channel at most once per cooldown
window per dedup key.

Per candidate:
    1. Suppress if the key was sent within the cooldown window.
    2. Persist the send time (before delivery, so a crash mid-send does not
       cause an immediate repeat).
    3. Deliver to the candidate's destination.
    4. Append an AlertEvent to the trend store, whatever the delivery outcome.

Delivery and append failures are logged per candidate and never stop the
remaining candidates. Delivery is best-effort: there is no retry.

Example:
    >>> dispatcher = NotificationDispatcher(gateway, cooldown, store, config.alerts)
    >>> summary = await dispatcher.dispatch(candidates, now_ms)
    >>> summary.sent, summary.suppressed, summary.failed
    (1, 2, 0)
"""

from typing import List

import structlog
from pydantic import BaseModel, Field

from opsmonitor.config.models import AlertsConfig, DestinationConfig
from opsmonitor.errors import OpsMonitorError, PersistenceError
from opsmonitor.interfaces.ops_gateway import OpsGateway
from opsmonitor.models.alerts import AlertCandidate, Destination
from opsmonitor.storage.cooldown import CooldownStore
from opsmonitor.storage.timeseries import TimeSeriesStore

logger = structlog.get_logger(__name__)


class DispatchSummary(BaseModel):
    """Outcome counts of one dispatch pass."""

    sent: int = 0
    suppressed: int = 0
    failed: int = 0
    sent_keys: List[str] = Field(default_factory=list)


class NotificationDispatcher:
    """
    Delivers alert candidates with cooldown deduplication.

    Attributes:
        gateway: Messaging transport.
        cooldown: Durable last-sent times.
        store: Alert event log.
        config: Destination routing.
    """

    def __init__(
        self,
        gateway: OpsGateway,
        cooldown: CooldownStore,
        store: TimeSeriesStore,
        config: AlertsConfig,
    ) -> None:
        self.gateway = gateway
        self.cooldown = cooldown
        self.store = store
        self.config = config

    def destination_config(self, destination: Destination) -> DestinationConfig:
        if destination == Destination.SECONDARY:
            return self.config.secondary
        return self.config.general

    async def dispatch(self, candidates: List[AlertCandidate], now_ms: int) -> DispatchSummary:
        """
        Gate and deliver candidates in order.

        Args:
            candidates: Candidates from one anomaly tick.
            now_ms: Tick time; used for cooldown and event timestamps.

        Returns:
            DispatchSummary: Counts of sent, suppressed and failed candidates.
        """
        summary = DispatchSummary()

        for candidate in candidates:
            key = candidate.dedup_key

            try:
                acquired = self.cooldown.try_acquire(key, now_ms)
            except PersistenceError as e:
                summary.failed += 1
                logger.error("alert_cooldown_persist_failed", dedup_key=key, error=str(e))
                continue

            if not acquired:
                summary.suppressed += 1
                logger.debug("alert_suppressed", dedup_key=key)
                continue

            delivered = await self._deliver(candidate)
            await self._record(candidate, now_ms)

            if delivered:
                summary.sent += 1
                summary.sent_keys.append(key)
            else:
                summary.failed += 1

        if candidates:
            logger.info(
                "alert_dispatch_complete",
                candidates=len(candidates),
                sent=summary.sent,
                suppressed=summary.suppressed,
                failed=summary.failed,
            )
        return summary

    async def _deliver(self, candidate: AlertCandidate) -> bool:
        destination = self.destination_config(candidate.destination)
        buttons = candidate.buttons if candidate.destination.supports_buttons else None
        try:
            await self.gateway.send_message(destination, candidate.message, buttons=buttons)
        except OpsMonitorError as e:
            logger.error(
                "alert_delivery_failed",
                dedup_key=candidate.dedup_key,
                destination=candidate.destination.value,
                error=str(e),
            )
            return False

        logger.info(
            "alert_delivered",
            dedup_key=candidate.dedup_key,
            kind=candidate.kind.value,
            destination=candidate.destination.value,
        )
        return True

    async def _record(self, candidate: AlertCandidate, now_ms: int) -> None:
        try:
            await self.store.insert_alert_event(candidate.to_event(now_ms))
        except PersistenceError as e:
            logger.warning("alert_event_persist_failed", dedup_key=candidate.dedup_key, error=str(e))
