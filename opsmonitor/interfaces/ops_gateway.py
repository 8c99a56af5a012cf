"""
Abstract capability interface for the external automation tool.

This module defines the OpsGateway interface that the refresh scheduler, the
anomaly detector, the notification dispatcher and the HTTP surface depend on.
The production implementation shells out to the automation tool
(see ``opsmonitor.adapters.cli``); tests substitute an in-memory fake so core
logic never touches the real external process.

Example:
    >>> class FakeGateway(OpsGateway):
    ...     async def list_agents(self) -> List[AgentRecord]:
    ...         return [AgentRecord(id="main")]
    ...     ...
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, List, Optional

from opsmonitor.config.models import DestinationConfig
from opsmonitor.models.agents import AgentRecord
from opsmonitor.models.alerts import AlertButton
from opsmonitor.models.cron import CronJobList
from opsmonitor.models.sessions import SessionWindow, TaskDescriptor


class CronAction(str, Enum):
    """Mutations accepted for a cron job."""

    ENABLE = "enable"
    DISABLE = "disable"
    RUN = "run"


class OpsGateway(ABC):
    """
    Narrow capability interface over the automation tool.

    Query methods raise CommandError when the invocation fails and
    ParseError when the output cannot be normalized. ``list_tasks`` is the
    exception: its source is optional, so failure yields an empty list.
    """

    @abstractmethod
    async def list_agents(self) -> List[AgentRecord]:
        """
        List agents with their routing bindings.

        Raises:
            CommandError: If the invocation fails.
            ParseError: If the output is not a JSON agent list.
        """
        pass

    @abstractmethod
    async def list_sessions(self, window: str, active_minutes: int) -> SessionWindow:
        """
        List sessions of all agents active within ``active_minutes``.

        Args:
            window: Window name recorded on the result.
            active_minutes: Activity horizon passed to the tool.

        Raises:
            CommandError: If the invocation fails.
            ParseError: If the output is not a JSON session listing.
        """
        pass

    @abstractmethod
    async def list_cron_jobs(self) -> CronJobList:
        """
        List all cron jobs, redacted.

        Raises:
            CommandError: If the invocation fails.
            ParseError: If the output is not a JSON job listing.
        """
        pass

    @abstractmethod
    async def mutate_cron_job(self, job_id: str, action: CronAction) -> Any:
        """
        Enable, disable or trigger a cron job.

        Returns:
            The tool's parsed JSON response.

        Raises:
            CommandError: If the invocation fails.
            ParseError: If the response is not JSON.
        """
        pass

    @abstractmethod
    async def list_channel_accounts(self, channel: str = "telegram") -> List[str]:
        """
        List configured account ids of a messaging channel.

        Raises:
            CommandError: If the invocation fails.
            ParseError: If the output is not JSON.
        """
        pass

    @abstractmethod
    async def send_message(
        self,
        destination: DestinationConfig,
        text: str,
        buttons: Optional[List[List[AlertButton]]] = None,
    ) -> None:
        """
        Send a message through the messaging side channel.

        Raises:
            CommandError: If delivery fails.
        """
        pass

    @abstractmethod
    async def list_tasks(self) -> List[TaskDescriptor]:
        """
        List interactive tasks with trailing log text.

        Never raises: an absent or failing task lister yields an empty list.
        """
        pass

    @abstractmethod
    async def capture_log(self, session: str, lines: int) -> str:
        """
        Capture the trailing log of an interactive session.

        Raises:
            CommandError: If capture fails or no capture command is configured.
        """
        pass
