"""
Agent data models.

Models:
    AgentRecord: Agent as reported by the automation tool
    AgentSnapshot: Per-agent overview row with derived aggregates
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class AgentRecord(BaseModel):
    """
    Agent as reported by ``agents list --json --bindings``.

    Unknown fields are retained so the raw agent list can be served back
    unchanged.

    Attributes:
        id: Agent identifier.
        identity_name: Display name from the agent identity, if any.
        name: Configured agent name.
        identity_emoji: Emoji from the agent identity.
        workspace: Workspace directory.
        model: Default model.
        bindings: Routing bindings (free-form strings or objects).
        binding_details: Detailed routing bindings, when provided.
    """

    model_config = {"frozen": True, "extra": "allow", "populate_by_name": True}

    id: str = Field(..., min_length=1)
    identity_name: Optional[str] = Field(default=None, alias="identityName")
    name: Optional[str] = None
    identity_emoji: Optional[str] = Field(default=None, alias="identityEmoji")
    workspace: Optional[str] = None
    model: Optional[str] = None
    bindings: Optional[List[Any]] = None
    binding_details: Optional[List[Any]] = Field(default=None, alias="bindingDetails")

    @property
    def display_name(self) -> str:
        """Identity name, falling back to the configured name and then the id."""
        return self.identity_name or self.name or self.id

    @property
    def routing_entries(self) -> List[Any]:
        """Binding descriptors, preferring the detailed form."""
        if self.binding_details:
            return list(self.binding_details)
        return list(self.bindings or [])


class AgentSnapshot(BaseModel):
    """
    Per-agent overview row, rebuilt wholesale on every applied refresh.

    Attributes:
        agent_id: Agent identifier.
        name: Display name.
        emoji: Identity emoji.
        workspace: Workspace directory.
        model: Default model.
        sessions_active: Sessions active in the primary window.
        tokens_24h: Sum of total tokens over those sessions.
        cron_jobs: Cron jobs owned by the agent.
        cron_errors: Cron jobs currently classified as failing.
    """

    model_config = {"frozen": True, "extra": "forbid", "populate_by_name": True}

    agent_id: str = Field(..., alias="agentId")
    name: str
    emoji: Optional[str] = None
    workspace: Optional[str] = None
    model: Optional[str] = None
    sessions_active: int = Field(default=0, alias="sessionsActive", ge=0)
    tokens_24h: int = Field(default=0, alias="tokens24h", ge=0)
    cron_jobs: int = Field(default=0, alias="cronJobs", ge=0)
    cron_errors: int = Field(default=0, alias="cronErrors", ge=0)
