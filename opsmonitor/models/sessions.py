"""
Session data models.

Models:
    SessionKind: Session classification encoded in the compound key
    SessionRecord: A single agent session
    SessionWindow: Sessions active within a named window plus tool metadata
    TaskDescriptor: Interactive coding task with trailing log text
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class SessionKind(str, Enum):
    """Session classification derived from the compound session key."""

    DIRECT = "direct"
    CRON = "cron"
    RUN = "run"
    GROUP = "group"
    CHANNEL = "channel"


def session_kind_from_key(key: str) -> SessionKind:
    """
    Derive the session kind from a compound key.

    Keys look like ``agent:<agentId>:<rest...>``; the most specific marker
    segment wins (a cron run is a run, not a cron session).

    Example:
        >>> session_kind_from_key("agent:main:cron:abc:run:xyz")
        <SessionKind.RUN: 'run'>
        >>> session_kind_from_key("agent:main:main")
        <SessionKind.DIRECT: 'direct'>
    """
    parts = key.split(":")
    for marker in (SessionKind.RUN, SessionKind.CRON, SessionKind.GROUP, SessionKind.CHANNEL):
        if marker.value in parts:
            return marker
    return SessionKind.DIRECT


def coerce_count(v: Any) -> int:
    """
    Read a counter reported by the tool.

    Null or empty counts as zero. Anything that is not a number (lists,
    objects, booleans, non-numeric text) raises ValueError so the enclosing
    entry fails validation instead of the whole listing.
    """
    if v is None or v == "":
        return 0
    if isinstance(v, bool) or not isinstance(v, (int, float, str)):
        raise ValueError(f"expected a count, got {type(v).__name__}")
    try:
        return int(v)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValueError(f"expected a count, got {v!r}") from e


class SessionRecord(BaseModel):
    """
    A single session from ``sessions --all-agents --json``.

    Immutable per fetch. Unknown fields, including the tool's own ``kind``
    label, are retained for pass-through; the classification derived from
    the key is exposed separately as ``sessionKind``.
    """

    model_config = {"frozen": True, "extra": "allow", "populate_by_name": True}

    key: str = Field(..., min_length=1)
    agent_id: Optional[str] = Field(default=None, alias="agentId")
    session_kind: SessionKind = Field(default=SessionKind.DIRECT, alias="sessionKind")
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")
    input_tokens: int = Field(default=0, alias="inputTokens")
    output_tokens: int = Field(default=0, alias="outputTokens")
    total_tokens: int = Field(default=0, alias="totalTokens")
    model: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def derive_kind(cls, data: Any) -> Any:
        """Classify the session from its compound key."""
        if isinstance(data, dict) and isinstance(data.get("key"), str):
            data = dict(data)
            data["sessionKind"] = session_kind_from_key(data["key"])
        return data

    @field_validator("input_tokens", "output_tokens", "total_tokens", mode="before")
    @classmethod
    def coerce_tokens(cls, v: Any) -> int:
        """Missing or null token counts count as zero."""
        return coerce_count(v)


class SessionWindow(BaseModel):
    """
    Sessions active within one named window.

    Attributes:
        window: Window name (e.g. "24h").
        active_minutes: Activity horizon passed to the tool.
        sessions: Session records.
        metadata: Remaining top-level fields of the tool response.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    window: str
    active_minutes: int = Field(..., ge=1)
    sessions: List[SessionRecord] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_response(self) -> Dict[str, Any]:
        """Serialize in the tool's wire shape for the HTTP surface."""
        return {
            **self.metadata,
            "sessions": [s.model_dump(by_alias=True, mode="json") for s in self.sessions],
        }

    def tokens_by_agent(self) -> Dict[str, int]:
        """Sum total tokens per agent across the window's sessions."""
        totals: Dict[str, int] = {}
        for session in self.sessions:
            if session.agent_id is None:
                continue
            totals[session.agent_id] = totals.get(session.agent_id, 0) + session.total_tokens
        return totals


class TaskDescriptor(BaseModel):
    """
    Interactive task reported by the external task lister.

    Attributes:
        session: Terminal session identifier.
        label: Human label for the task.
        last_lines: Trailing log text captured from the session.
    """

    model_config = {"frozen": True, "extra": "allow", "populate_by_name": True}

    session: str = Field(..., min_length=1)
    label: Optional[str] = None
    last_lines: str = Field(default="", alias="lastLines")

    @field_validator("last_lines", mode="before")
    @classmethod
    def coerce_text(cls, v: Any) -> str:
        """Null log text is treated as empty."""
        return "" if v is None else str(v)
