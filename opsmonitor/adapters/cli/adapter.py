"""
OpsGateway implementation backed by the automation tool's CLI.

Every capability maps to one bounded CommandRunner invocation whose stdout
is handed to CliNormalizer. The task lister and log capture are separate,
optional commands configured by argv prefix.

Subcommands issued:
    agents list --json --bindings
    sessions --all-agents --json --active <minutes>
    cron list --all --json
    cron <enable|disable|run> <id> --json
    channels list --json --no-usage
    message send --channel <c> --account <a> --target <t> --message <text> [--buttons <json>]
"""

import json
from typing import Any, List, Optional

import structlog

from opsmonitor.adapters.cli.normalizer import CliNormalizer
from opsmonitor.adapters.command import CommandResult, CommandRunner
from opsmonitor.config.models import CommandConfig, DestinationConfig
from opsmonitor.errors import CommandError, CommandFailure, ParseError
from opsmonitor.interfaces.ops_gateway import CronAction, OpsGateway
from opsmonitor.models.agents import AgentRecord
from opsmonitor.models.alerts import AlertButton
from opsmonitor.models.cron import CronJobList
from opsmonitor.models.sessions import SessionWindow, TaskDescriptor

logger = structlog.get_logger(__name__)


class CliOpsGateway(OpsGateway):
    """
    Gateway that shells out to the automation tool.

    Attributes:
        config: Command bounds and argv prefixes.
        runner: Bounded command runner.
        normalizer: Output normalizer.

    Example:
        >>> gateway = CliOpsGateway(CommandConfig(binary="openclaw"))
        >>> jobs = await gateway.list_cron_jobs()
    """

    def __init__(
        self,
        config: CommandConfig,
        runner: Optional[CommandRunner] = None,
        normalizer: Optional[CliNormalizer] = None,
    ) -> None:
        self.config = config
        self.runner = runner or CommandRunner(
            default_timeout_ms=config.timeout_ms,
            default_max_output_bytes=config.max_output_bytes,
        )
        self.normalizer = normalizer or CliNormalizer()

    async def _query(self, *args: str) -> CommandResult:
        return await self.runner.execute(
            [self.config.binary, *args],
            timeout_ms=self.config.timeout_ms,
            max_output_bytes=self.config.max_output_bytes,
        )

    async def _query_json(self, source: str, *args: str) -> Any:
        result = await self._query(*args)
        return self.normalizer.parse_json(result.stdout, source=source, stderr=result.stderr)

    async def list_agents(self) -> List[AgentRecord]:
        value = await self._query_json("agents", "agents", "list", "--json", "--bindings")
        return self.normalizer.normalize_agents(value)

    async def list_sessions(self, window: str, active_minutes: int) -> SessionWindow:
        value = await self._query_json(
            "sessions",
            "sessions",
            "--all-agents",
            "--json",
            "--active",
            str(active_minutes),
        )
        return self.normalizer.normalize_sessions(value, window, active_minutes)

    async def list_cron_jobs(self) -> CronJobList:
        value = await self._query_json("cron", "cron", "list", "--all", "--json")
        return self.normalizer.normalize_cron_jobs(value)

    async def mutate_cron_job(self, job_id: str, action: CronAction) -> Any:
        result = await self._query("cron", action.value, job_id, "--json")
        value = self.normalizer.parse_json(
            result.stdout,
            source=f"cron {action.value}",
            stderr=result.stderr,
        )
        logger.info("cron_job_mutated", job_id=job_id, action=action.value)
        return value

    async def list_channel_accounts(self, channel: str = "telegram") -> List[str]:
        value = await self._query_json("channels", "channels", "list", "--json", "--no-usage")
        return self.normalizer.extract_channel_accounts(value, channel)

    async def send_message(
        self,
        destination: DestinationConfig,
        text: str,
        buttons: Optional[List[List[AlertButton]]] = None,
    ) -> None:
        args = [
            self.config.binary,
            "message",
            "send",
            "--channel",
            destination.channel,
            "--account",
            destination.account,
            "--target",
            destination.target,
            "--message",
            text,
        ]
        if buttons:
            payload = [[b.model_dump() for b in row] for row in buttons]
            args.extend(["--buttons", json.dumps(payload, ensure_ascii=False)])

        await self.runner.execute(
            args,
            timeout_ms=self.config.send_timeout_ms,
            max_output_bytes=self.config.send_max_output_bytes,
        )

    async def list_tasks(self) -> List[TaskDescriptor]:
        if not self.config.task_list_command:
            return []

        args = [
            *self.config.task_list_command,
            "--json",
            "--lines",
            str(self.config.task_list_lines),
        ]
        try:
            result = await self.runner.execute(
                args,
                timeout_ms=self.config.task_timeout_ms,
                max_output_bytes=self.config.max_output_bytes,
            )
            value = self.normalizer.parse_json(result.stdout, source="tasks")
            return self.normalizer.normalize_tasks(value)
        except (CommandError, ParseError) as e:
            logger.warning("task_list_unavailable", error=str(e))
            return []

    async def capture_log(self, session: str, lines: int) -> str:
        if not self.config.log_capture_command:
            raise CommandError(
                CommandFailure.SPAWN_FAILURE,
                "no log capture command configured",
            )

        result = await self.runner.execute(
            [*self.config.log_capture_command, "--session", session, "--lines", str(lines)],
            timeout_ms=self.config.task_timeout_ms,
            max_output_bytes=self.config.max_output_bytes,
        )
        return result.stdout
