from __future__ import annotations

import json
from typing import Any, Dict, List

import pytest

from conftest import command_error, make_job, make_session

from opsmonitor.adapters.cli import CliOpsGateway
from opsmonitor.adapters.command import CommandResult
from opsmonitor.config.models import CollectorConfig, CommandConfig
from opsmonitor.detection.dispatcher import NotificationDispatcher
from opsmonitor.detection.idle import IdleTracker
from opsmonitor.detection.monitor import AnomalyMonitor
from opsmonitor.detection.rules import AnomalyRules
from opsmonitor.errors import PersistenceError
from opsmonitor.models.alerts import AlertButton, AlertCandidate, AlertKind, Destination
from opsmonitor.models.cron import CronJobList
from opsmonitor.models.sessions import TaskDescriptor

NOW = 1_700_000_000_000
COOLDOWN = 30 * 60 * 1000


def _candidate(key: str, **fields) -> AlertCandidate:
    fields.setdefault("kind", AlertKind.CRON_ERROR)
    fields.setdefault("message", f"alert {key}")
    return AlertCandidate(dedup_key=key, **fields)


@pytest.fixture
def dispatcher(gateway, cooldown, store, app_config) -> NotificationDispatcher:
    return NotificationDispatcher(gateway, cooldown, store, app_config.alerts)


@pytest.fixture
def monitor(gateway, cooldown, dispatcher, app_config) -> AnomalyMonitor:
    return AnomalyMonitor(
        gateway=gateway,
        rules=AnomalyRules(app_config.alerts, public_base_url=app_config.server.public_base_url),
        idle_tracker=IdleTracker(cooldown),
        dispatcher=dispatcher,
        collector=CollectorConfig(),
        clock=lambda: NOW,
    )


@pytest.mark.anyio
async def test_dispatch_suppresses_within_cooldown(dispatcher, gateway, store) -> None:
    first = await dispatcher.dispatch([_candidate("k1")], NOW)
    assert (first.sent, first.suppressed, first.failed) == (1, 0, 0)

    again = await dispatcher.dispatch([_candidate("k1")], NOW + COOLDOWN - 1)
    assert (again.sent, again.suppressed) == (0, 1)
    assert len(gateway.sent) == 1

    later = await dispatcher.dispatch([_candidate("k1")], NOW + COOLDOWN)
    assert later.sent == 1
    assert len(gateway.sent) == 2

    events = await store.query_alert_events(days=1, now_ms=NOW + COOLDOWN)
    assert [e.event_key for e in events] == ["k1"]


@pytest.mark.anyio
async def test_send_time_persisted_before_delivery(dispatcher, gateway, cooldown) -> None:
    observed = []

    async def send_message(destination, text, buttons=None):
        observed.append(cooldown.load().last_sent_at_by_key.get("k1"))

    gateway.send_message = send_message
    await dispatcher.dispatch([_candidate("k1")], NOW)
    assert observed == [NOW]


@pytest.mark.anyio
async def test_failed_delivery_still_cools_and_records(dispatcher, gateway, cooldown, store) -> None:
    gateway.fail["send_message"] = command_error("telegram down")

    summary = await dispatcher.dispatch([_candidate("k1"), _candidate("k2")], NOW)

    assert summary.failed == 2
    assert cooldown.load().last_sent_at_by_key["k1"] == NOW
    events = await store.query_alert_events(days=1, now_ms=NOW)
    assert {e.event_key for e in events} == {"k1", "k2"}


@pytest.mark.anyio
async def test_cooldown_persist_failure_skips_delivery(
    dispatcher, gateway, cooldown, monkeypatch
) -> None:
    def broken(key, now_ms):
        raise PersistenceError("read-only")

    monkeypatch.setattr(cooldown, "try_acquire", broken)
    summary = await dispatcher.dispatch([_candidate("k1")], NOW)

    assert summary.failed == 1
    assert gateway.sent == []


@pytest.mark.anyio
async def test_buttons_only_on_secondary(dispatcher, gateway) -> None:
    buttons = [[AlertButton(text="Open", url="https://x/")]]
    await dispatcher.dispatch(
        [
            _candidate("g", destination=Destination.GENERAL, buttons=buttons),
            _candidate("s", destination=Destination.SECONDARY, buttons=buttons),
        ],
        NOW,
    )
    general, secondary = gateway.sent
    assert general["buttons"] is None
    assert general["destination"].account == "default"
    assert secondary["buttons"] == buttons
    assert secondary["destination"].account == "coding"


@pytest.mark.anyio
async def test_tick_runs_all_rules(monitor, gateway) -> None:
    gateway.cron = CronJobList(jobs=[make_job("j1", state={"lastStatus": "error"})], total=1)
    gateway.sessions["24h"] = [make_session("a", "main", 3_100_000)]

    summary = await monitor.tick()

    assert summary.sent == 2
    assert sorted(summary.sent_keys) == ["p0:cron:j1:0:error", "p0:tokens:main:310"]

    repeat = await monitor.tick(NOW + 60_000)
    assert repeat.sent == 0
    assert repeat.suppressed == 2


@pytest.mark.anyio
async def test_one_rule_input_failure_does_not_block_others(monitor, gateway) -> None:
    gateway.fail["list_cron_jobs"] = command_error("cron down")
    gateway.sessions["24h"] = [make_session("a", "main", 3_000_000)]

    summary = await monitor.tick()

    assert summary.sent_keys == ["p0:tokens:main:300"]


@pytest.mark.anyio
async def test_idle_timer_threshold_and_reset(monitor, gateway, cooldown) -> None:
    idle = TaskDescriptor(session="cc-1", label="fix", last_lines="output\n❯ ")
    gateway.tasks = [idle]

    assert (await monitor.tick(NOW)).sent == 0
    assert cooldown.load().idle_first_seen_by_session == {"cc-1": NOW}

    assert (await monitor.tick(NOW + 60_000)).sent == 0

    summary = await monitor.tick(NOW + 120_000)
    assert summary.sent_keys == [f"p0:idle:cc-1:{NOW // 1000}"]
    assert gateway.sent[-1]["buttons"] is not None

    gateway.tasks = [TaskDescriptor(session="cc-1", last_lines="❯ running tests\nbuilding...")]
    await monitor.tick(NOW + 180_000)
    assert cooldown.load().idle_first_seen_by_session == {}

    gateway.tasks = [idle]
    await monitor.tick(NOW + 240_000)
    assert cooldown.load().idle_first_seen_by_session == {"cc-1": NOW + 240_000}


@pytest.mark.anyio
async def test_idle_timers_cleared_for_missing_sessions(monitor, gateway, cooldown) -> None:
    gateway.tasks = [
        TaskDescriptor(session="cc-1", last_lines="❯"),
        TaskDescriptor(session="cc-2", last_lines="❯"),
    ]
    await monitor.tick(NOW)
    gateway.tasks = [TaskDescriptor(session="cc-2", last_lines="❯")]
    await monitor.tick(NOW + 1000)

    assert cooldown.load().idle_first_seen_by_session == {"cc-2": NOW}


class ScriptedRunner:
    """Answers tool subcommands with canned JSON and records message sends."""

    def __init__(self, outputs: Dict[str, Any]) -> None:
        self.outputs = outputs
        self.messages: List[List[str]] = []

    async def execute(self, args, timeout_ms=None, max_output_bytes=None) -> CommandResult:
        if args[1] == "message":
            self.messages.append(list(args))
            return CommandResult(stdout="", stderr="")
        return CommandResult(stdout=json.dumps(self.outputs[args[1]]), stderr="")


@pytest.mark.anyio
async def test_malformed_session_entry_does_not_block_cron_alert(
    cooldown, store, app_config
) -> None:
    runner = ScriptedRunner(
        {
            "cron": {"jobs": [{"id": "job-1", "agentId": "main", "state": {"lastStatus": "error"}}]},
            "sessions": {
                "sessions": [
                    {"key": "agent:main:main", "agentId": "main", "totalTokens": {"n": 5}},
                    {"key": "agent:coding:main", "agentId": "coding", "totalTokens": 10},
                ]
            },
        }
    )
    cli = CliOpsGateway(CommandConfig(binary="tool"), runner=runner)
    monitor = AnomalyMonitor(
        gateway=cli,
        rules=AnomalyRules(app_config.alerts),
        idle_tracker=IdleTracker(cooldown),
        dispatcher=NotificationDispatcher(cli, cooldown, store, app_config.alerts),
        collector=CollectorConfig(),
        clock=lambda: NOW,
    )

    summary = await monitor.tick(NOW)

    assert summary.sent_keys == ["p0:cron:job-1:0:error"]
    assert len(runner.messages) == 1
    assert "Cron job failing: job-1" in runner.messages[0][10]


@pytest.mark.anyio
async def test_idle_timers_reported_when_state_write_fails(cooldown, monkeypatch) -> None:
    def read_only(state):
        raise PersistenceError("read-only")

    monkeypatch.setattr(cooldown, "save", read_only)
    tracker = IdleTracker(cooldown)
    task = TaskDescriptor(session="cc-1", last_lines="❯")

    assert tracker.observe([task], NOW) == [(task, NOW)]
    assert cooldown.load().idle_first_seen_by_session == {}
