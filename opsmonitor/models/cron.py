"""
Cron job data models.

Cron jobs are redacted at normalization time: the job payload is reduced to
``{kind, model, timeoutSeconds}`` and unknown top-level fields are dropped,
so no secret-bearing field (such as the payload message) survives into the
cache, the store or the HTTP surface.

Models:
    CronSchedule: Schedule definition
    CronJobState: Run state reported by the scheduler
    CronPayloadSummary: Redacted payload metadata
    CronJobRecord: A redacted cron job
    CronJobList: Redacted job list with the reported total
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from opsmonitor.models.sessions import coerce_count

ERROR_STATUS = "error"


class CronSchedule(BaseModel):
    """Schedule definition (kind plus expression; other timing fields kept)."""

    model_config = {"frozen": True, "extra": "allow", "populate_by_name": True}

    kind: Optional[str] = None
    expr: Optional[str] = None


class CronJobState(BaseModel):
    """Run state of a cron job."""

    model_config = {"frozen": True, "extra": "allow", "populate_by_name": True}

    last_status: Optional[str] = Field(default=None, alias="lastStatus")
    last_run_status: Optional[str] = Field(default=None, alias="lastRunStatus")
    consecutive_errors: int = Field(default=0, alias="consecutiveErrors")
    last_error: Optional[str] = Field(default=None, alias="lastError")
    next_run_at_ms: Optional[int] = Field(default=None, alias="nextRunAtMs")
    last_run_at_ms: Optional[int] = Field(default=None, alias="lastRunAtMs")

    @field_validator("consecutive_errors", mode="before")
    @classmethod
    def coerce_errors(cls, v: Any) -> int:
        """Null counters count as zero; non-numeric counters reject the job."""
        return coerce_count(v)

    @property
    def status_label(self) -> str:
        """First non-empty status, or "error" when neither is reported."""
        return self.last_status or self.last_run_status or ERROR_STATUS


class CronPayloadSummary(BaseModel):
    """Payload metadata that is safe to expose."""

    model_config = {"frozen": True, "extra": "ignore", "populate_by_name": True}

    kind: Optional[str] = None
    model: Optional[str] = None
    timeout_seconds: Optional[int] = Field(default=None, alias="timeoutSeconds")


class CronJobRecord(BaseModel):
    """
    A redacted cron job.

    Attributes:
        id: Job identifier.
        agent_id: Owning agent.
        name: Job name.
        enabled: Whether the job is scheduled.
        schedule: Schedule definition.
        session_target: Session the job runs in.
        wake_mode: Wake behavior.
        delivery: Delivery routing.
        state: Run state.
        payload: Redacted payload metadata.
    """

    model_config = {"frozen": True, "extra": "ignore", "populate_by_name": True}

    id: str = Field(..., min_length=1)
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    name: Optional[str] = None
    enabled: bool = False
    schedule: Optional[CronSchedule] = None
    session_target: Optional[Any] = Field(default=None, alias="sessionTarget")
    wake_mode: Optional[Any] = Field(default=None, alias="wakeMode")
    delivery: Optional[Any] = None
    state: CronJobState = Field(default_factory=CronJobState)
    payload: Optional[CronPayloadSummary] = None

    @field_validator("state", mode="before")
    @classmethod
    def default_state(cls, v: Any) -> Any:
        """Jobs that never ran report no state."""
        return {} if v is None else v

    @property
    def is_failing(self) -> bool:
        """
        Whether the job counts as errored.

        Any one signal is enough: last status, last run status, or a positive
        consecutive-error counter.
        """
        return (
            self.state.last_status == ERROR_STATUS
            or self.state.last_run_status == ERROR_STATUS
            or self.state.consecutive_errors > 0
        )

    @property
    def title(self) -> str:
        """Job name, falling back to the id."""
        return self.name or self.id

    def to_response(self) -> Dict[str, Any]:
        """Serialize in the tool's camelCase shape, omitting absent fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class CronJobList(BaseModel):
    """Redacted cron job list."""

    model_config = {"frozen": True, "extra": "forbid"}

    jobs: List[CronJobRecord] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)

    def to_response(self) -> Dict[str, Any]:
        return {"jobs": [j.to_response() for j in self.jobs], "total": self.total}
