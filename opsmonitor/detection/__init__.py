"""
Anomaly detection and notification.

Exports:
    AnomalyRules: Candidate builders for each alert class
    IdleTracker: First-observed-idle timers
    NotificationDispatcher: Cooldown-gated delivery
    DispatchSummary: Dispatch outcome counts
    AnomalyMonitor: Periodic detection pass
"""

from opsmonitor.detection.dispatcher import DispatchSummary, NotificationDispatcher
from opsmonitor.detection.idle import IdleTracker
from opsmonitor.detection.monitor import AnomalyMonitor
from opsmonitor.detection.rules import (
    AnomalyRules,
    cron_failure_key,
    idle_key,
    is_idle_prompt,
    tail_lines,
    token_bucket,
    token_spike_key,
)

__all__ = [
    "AnomalyMonitor",
    "AnomalyRules",
    "DispatchSummary",
    "IdleTracker",
    "NotificationDispatcher",
    "cron_failure_key",
    "idle_key",
    "is_idle_prompt",
    "tail_lines",
    "token_bucket",
    "token_spike_key",
]
