from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from opsmonitor.config.models import (
    AlertsConfig,
    AppConfig,
    CollectorConfig,
    DestinationConfig,
    ServerConfig,
    StorageConfig,
)
from opsmonitor.errors import CommandError, CommandFailure
from opsmonitor.interfaces.ops_gateway import CronAction, OpsGateway
from opsmonitor.models.agents import AgentRecord
from opsmonitor.models.alerts import AlertButton
from opsmonitor.models.cron import CronJobList, CronJobRecord
from opsmonitor.models.sessions import SessionRecord, SessionWindow, TaskDescriptor
from opsmonitor.storage.cooldown import CooldownStore
from opsmonitor.storage.timeseries import TimeSeriesStore


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


def make_agent(agent_id: str, **fields: Any) -> AgentRecord:
    return AgentRecord.model_validate({"id": agent_id, **fields})


def make_session(key: str, agent_id: str, total_tokens: int = 0, **fields: Any) -> SessionRecord:
    return SessionRecord.model_validate(
        {"key": key, "agentId": agent_id, "totalTokens": total_tokens, **fields}
    )


def make_job(job_id: str, agent_id: str = "main", **fields: Any) -> CronJobRecord:
    return CronJobRecord.model_validate({"id": job_id, "agentId": agent_id, **fields})


def make_window(window: str, sessions: List[SessionRecord], minutes: int = 1440) -> SessionWindow:
    return SessionWindow(window=window, active_minutes=minutes, sessions=sessions)


class FakeGateway(OpsGateway):
    """In-memory OpsGateway; set ``fail[<method>]`` to make a call raise."""

    def __init__(self) -> None:
        self.agents: List[AgentRecord] = []
        self.sessions: Dict[str, List[SessionRecord]] = {}
        self.cron = CronJobList()
        self.tasks: List[TaskDescriptor] = []
        self.channel_accounts: List[str] = []
        self.log_text = ""
        self.mutate_result: Any = {"ok": True}
        self.fail: Dict[str, Exception] = {}
        self.calls: List[str] = []
        self.sent: List[Dict[str, Any]] = []
        self.mutations: List[tuple] = []

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        error = self.fail.get(name)
        if error is not None:
            raise error

    async def list_agents(self) -> List[AgentRecord]:
        self._maybe_fail("list_agents")
        return list(self.agents)

    async def list_sessions(self, window: str, active_minutes: int) -> SessionWindow:
        self._maybe_fail("list_sessions")
        self._maybe_fail(f"list_sessions:{window}")
        return SessionWindow(
            window=window,
            active_minutes=active_minutes,
            sessions=list(self.sessions.get(window, [])),
            metadata={"count": len(self.sessions.get(window, []))},
        )

    async def list_cron_jobs(self) -> CronJobList:
        self._maybe_fail("list_cron_jobs")
        return self.cron

    async def mutate_cron_job(self, job_id: str, action: CronAction) -> Any:
        self._maybe_fail("mutate_cron_job")
        self.mutations.append((job_id, action))
        return self.mutate_result

    async def list_channel_accounts(self, channel: str = "telegram") -> List[str]:
        self._maybe_fail("list_channel_accounts")
        return list(self.channel_accounts)

    async def send_message(
        self,
        destination: DestinationConfig,
        text: str,
        buttons: Optional[List[List[AlertButton]]] = None,
    ) -> None:
        self._maybe_fail("send_message")
        self.sent.append({"destination": destination, "text": text, "buttons": buttons})

    async def list_tasks(self) -> List[TaskDescriptor]:
        self.calls.append("list_tasks")
        return list(self.tasks)

    async def capture_log(self, session: str, lines: int) -> str:
        self._maybe_fail("capture_log")
        return self.log_text


def command_error(message: str = "boom") -> CommandError:
    return CommandError(CommandFailure.NONZERO_EXIT, message, args_list=["openclaw"], returncode=1)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    return AppConfig(
        collector=CollectorConfig(refresh_interval_ms=1000),
        storage=StorageConfig(
            db_path=str(tmp_path / "ops.db"),
            notify_state_path=str(tmp_path / "notify-state.json"),
        ),
        alerts=AlertsConfig(
            general=DestinationConfig(account="default", target="100", label="ops"),
            secondary=DestinationConfig(account="coding", target="100", label="coding"),
        ),
        server=ServerConfig(public_base_url="https://ops.example.com/"),
    )


@pytest.fixture
async def store(tmp_path):
    s = TimeSeriesStore(tmp_path / "ops.db")
    await s.connect()
    yield s
    await s.disconnect()


@pytest.fixture
def cooldown(tmp_path) -> CooldownStore:
    return CooldownStore(tmp_path / "notify-state.json", cooldown_ms=30 * 60 * 1000)
