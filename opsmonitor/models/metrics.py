"""
Time-series row models.

Field names mirror the SQLite column names, and rows are served to the
dashboard trend charts in this shape.

Models:
    AgentMetricSample: Per-agent aggregate at one refresh tick
    CronJobMetricSample: Per-job state at one refresh tick
    AlertEvent: Write-once audit record of a dispatched alert
"""

from typing import Optional

from pydantic import BaseModel, Field

from opsmonitor.models.agents import AgentSnapshot
from opsmonitor.models.cron import CronJobRecord


class AgentMetricSample(BaseModel):
    """Primary key (ts_ms, agent_id); a same-key write replaces the row."""

    model_config = {"frozen": True, "extra": "forbid"}

    ts_ms: int = Field(..., ge=0)
    agent_id: str = Field(..., min_length=1)
    sessions_active: int = Field(default=0, ge=0)
    tokens_24h_total: int = Field(default=0, ge=0)
    cron_jobs: int = Field(default=0, ge=0)
    cron_errors: int = Field(default=0, ge=0)

    @classmethod
    def from_snapshot(cls, ts_ms: int, agent: AgentSnapshot) -> "AgentMetricSample":
        return cls(
            ts_ms=ts_ms,
            agent_id=agent.agent_id,
            sessions_active=agent.sessions_active,
            tokens_24h_total=agent.tokens_24h,
            cron_jobs=agent.cron_jobs,
            cron_errors=agent.cron_errors,
        )


class CronJobMetricSample(BaseModel):
    """Primary key (ts_ms, job_id); full job state at that tick."""

    model_config = {"frozen": True, "extra": "forbid"}

    ts_ms: int = Field(..., ge=0)
    job_id: str = Field(..., min_length=1)
    agent_id: Optional[str] = None
    enabled: bool = False
    schedule_kind: Optional[str] = None
    schedule_expr: Optional[str] = None
    last_status: Optional[str] = None
    last_run_status: Optional[str] = None
    consecutive_errors: int = 0
    last_error: Optional[str] = None
    next_run_at_ms: Optional[int] = None
    last_run_at_ms: Optional[int] = None

    @classmethod
    def from_job(cls, ts_ms: int, job: CronJobRecord) -> "CronJobMetricSample":
        schedule = job.schedule
        state = job.state
        return cls(
            ts_ms=ts_ms,
            job_id=job.id,
            agent_id=job.agent_id,
            enabled=job.enabled,
            schedule_kind=schedule.kind if schedule else None,
            schedule_expr=schedule.expr if schedule else None,
            last_status=state.last_status,
            last_run_status=state.last_run_status,
            consecutive_errors=state.consecutive_errors,
            last_error=state.last_error,
            next_run_at_ms=state.next_run_at_ms,
            last_run_at_ms=state.last_run_at_ms,
        )


class AlertEvent(BaseModel):
    """Primary key event_key; inserted at most once."""

    model_config = {"frozen": True, "extra": "forbid"}

    ts_ms: int = Field(..., ge=0)
    event_key: str = Field(..., min_length=1)
    kind: str = Field(..., min_length=1)
    agent_id: Optional[str] = None
    title: Optional[str] = None
    message: str
