"""
Shared Pydantic data models for the ops monitor.

Modules:
    agents: Agent records and per-agent overview rows
    sessions: Sessions, session windows and interactive tasks
    cron: Redacted cron jobs
    metrics: Time-series rows and alert events
    alerts: Alert candidates and destinations
"""

from opsmonitor.models.agents import AgentRecord, AgentSnapshot
from opsmonitor.models.alerts import AlertButton, AlertCandidate, AlertKind, Destination
from opsmonitor.models.cron import (
    CronJobList,
    CronJobRecord,
    CronJobState,
    CronPayloadSummary,
    CronSchedule,
)
from opsmonitor.models.metrics import AgentMetricSample, AlertEvent, CronJobMetricSample
from opsmonitor.models.sessions import (
    SessionKind,
    SessionRecord,
    SessionWindow,
    TaskDescriptor,
    session_kind_from_key,
)

__all__ = [
    # Agents
    "AgentRecord",
    "AgentSnapshot",
    # Sessions
    "SessionKind",
    "SessionRecord",
    "SessionWindow",
    "TaskDescriptor",
    "session_kind_from_key",
    # Cron
    "CronJobList",
    "CronJobRecord",
    "CronJobState",
    "CronPayloadSummary",
    "CronSchedule",
    # Metrics
    "AgentMetricSample",
    "AlertEvent",
    "CronJobMetricSample",
    # Alerts
    "AlertButton",
    "AlertCandidate",
    "AlertKind",
    "Destination",
]
