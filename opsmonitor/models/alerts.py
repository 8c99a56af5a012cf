"""
Alert candidate models.

Models:
    AlertKind: Alert classes produced by the anomaly rules
    Destination: Logical notification destinations
    AlertButton: Interactive link button
    AlertCandidate: An alert occurrence awaiting cooldown gating and delivery
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from opsmonitor.models.metrics import AlertEvent


class AlertKind(str, Enum):
    """Alert classes produced by the anomaly rules."""

    CRON_ERROR = "cron_error"
    TOKEN_SPIKE = "token_spike"
    IDLE_INPUT = "idle_input"


class Destination(str, Enum):
    """
    Logical notification destinations.

    Attributes:
        GENERAL: General operations channel.
        SECONDARY: Interactive-session channel; supports link buttons.
    """

    GENERAL = "general"
    SECONDARY = "secondary"

    @property
    def supports_buttons(self) -> bool:
        return self == Destination.SECONDARY


class AlertButton(BaseModel):
    """Link button attached to a message."""

    model_config = {"frozen": True, "extra": "forbid"}

    text: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)


class AlertCandidate(BaseModel):
    """
    An alert occurrence produced by one anomaly rule.

    Attributes:
        dedup_key: Deterministic key identifying the logical occurrence.
        kind: Alert class.
        agent_id: Agent the alert concerns.
        title: Short title for the audit log.
        message: Notification text.
        destination: Where to deliver.
        buttons: Rows of link buttons (secondary destination only).
    """

    model_config = {"frozen": True, "extra": "forbid"}

    dedup_key: str = Field(..., min_length=1)
    kind: AlertKind
    agent_id: Optional[str] = None
    title: Optional[str] = None
    message: str = Field(..., min_length=1)
    destination: Destination = Destination.GENERAL
    buttons: Optional[List[List[AlertButton]]] = None

    def to_event(self, ts_ms: int) -> AlertEvent:
        """Audit record for this candidate."""
        return AlertEvent(
            ts_ms=ts_ms,
            event_key=self.dedup_key,
            kind=self.kind.value,
            agent_id=self.agent_id,
            title=self.title,
            message=self.message,
        )
