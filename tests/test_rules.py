from __future__ import annotations

import pytest

from conftest import make_job, make_session, make_window

from opsmonitor.config.models import AlertsConfig, DestinationConfig
from opsmonitor.detection.rules import (
    AnomalyRules,
    cron_failure_key,
    idle_key,
    is_idle_prompt,
    tail_lines,
    token_bucket,
)
from opsmonitor.models.alerts import AlertKind, Destination
from opsmonitor.models.cron import CronJobList
from opsmonitor.models.sessions import TaskDescriptor

NOW = 1_700_000_000_000


@pytest.fixture
def alerts() -> AlertsConfig:
    return AlertsConfig(
        general=DestinationConfig(account="default", target="1", label="ops"),
        secondary=DestinationConfig(account="coding", target="2", label="coding"),
    )


def test_cron_failure_key_formats() -> None:
    job = make_job("j1", state={"lastStatus": "error", "lastRunAtMs": 1234})
    assert cron_failure_key(job) == "p0:cron:j1:1234:error"

    never_ran = make_job("j2", state={"consecutiveErrors": 3})
    assert cron_failure_key(never_ran) == "p0:cron:j2:0:error"

    run_status = make_job("j3", state={"lastRunStatus": "timeout", "lastRunAtMs": 9})
    assert cron_failure_key(run_status) == "p0:cron:j3:9:timeout"


@pytest.mark.parametrize(
    "total,bucket",
    [(3_005_000, 300), (3_041_000, 300), (3_051_000, 305), (3_100_000, 310)],
)
def test_token_bucket(total: int, bucket: int) -> None:
    assert token_bucket(total, 50_000) == bucket


def test_token_bucket_with_coarser_granularity() -> None:
    assert token_bucket(3_190_000, 100_000) == 310
    assert token_bucket(3_210_000, 100_000) == 320


def test_idle_key_uses_seconds() -> None:
    assert idle_key("cc-1", 1_700_000_000_999) == "p0:idle:cc-1:1700000000"


@pytest.mark.parametrize(
    "text,expected",
    [
        ("working\n❯", True),
        ("done\n❯ \n\n", True),
        ("  ❯   ", True),
        ("❯ type here", True),
        ("❯ foo\nworking...", False),
        ("❯x", False),
        ("", False),
        (None, False),
        ("\n \n", False),
    ],
)
def test_is_idle_prompt(text, expected) -> None:
    assert is_idle_prompt(text) is expected


def test_tail_lines() -> None:
    assert tail_lines("a\nb\nc\n", 2) == "b\nc"
    assert tail_lines(None, 5) == ""


def test_cron_failures_only_for_failing_jobs(alerts) -> None:
    rules = AnomalyRules(alerts)
    cron = CronJobList(
        jobs=[
            make_job("ok", state={"lastStatus": "ok"}),
            make_job("bad", name="Nightly", state={"lastStatus": "error", "lastError": "boom"}),
        ],
        total=2,
    )
    candidates = rules.cron_failures(cron)
    assert len(candidates) == 1
    c = candidates[0]
    assert c.kind == AlertKind.CRON_ERROR
    assert c.destination == Destination.GENERAL
    assert c.message.startswith("[P0][ops] Cron job failing: Nightly")
    assert "- Cause: boom" in c.message
    assert "Dashboard" not in c.message


def test_cron_failure_from_error_counter_despite_ok_status(alerts) -> None:
    rules = AnomalyRules(alerts)
    cron = CronJobList(
        jobs=[
            make_job(
                "flaky",
                state={"lastStatus": "ok", "consecutiveErrors": 2, "lastRunAtMs": 1234},
            )
        ],
        total=1,
    )
    candidates = rules.cron_failures(cron)
    assert [c.dedup_key for c in candidates] == ["p0:cron:flaky:1234:ok"]
    assert "- Status: ok (2 consecutive)" in candidates[0].message


def test_token_spikes_at_threshold(alerts) -> None:
    rules = AnomalyRules(alerts, public_base_url="https://ops.example.com")
    window = make_window(
        "24h",
        [
            make_session("a", "main", 2_000_000),
            make_session("b", "main", 1_041_000),
            make_session("c", "coding", 2_999_999),
            make_session("d", "exact", 3_000_000),
        ],
    )
    candidates = rules.token_spikes(window)
    assert [c.dedup_key for c in candidates] == ["p0:tokens:exact:300", "p0:tokens:main:300"]
    assert "3,041,000" in candidates[1].message
    assert "https://ops.example.com/ (usage tab)" in candidates[1].message


def test_idle_input_threshold_and_buttons(alerts) -> None:
    task = TaskDescriptor(session="cc-7", label="refactor", last_lines="line\n❯ ")
    with_links = AnomalyRules(alerts, public_base_url="https://ops.example.com")

    assert with_links.idle_input(task, NOW, NOW + 119_999) is None

    candidate = with_links.idle_input(task, NOW, NOW + 120_000)
    assert candidate is not None
    assert candidate.destination == Destination.SECONDARY
    assert candidate.agent_id == "coding"
    assert candidate.dedup_key == f"p0:idle:cc-7:{NOW // 1000}"
    assert candidate.message.startswith("[P0][coding] Waiting for input 2m+")
    [[details, dashboard]] = candidate.buttons
    assert details.url == "https://ops.example.com/detail/cc-7"
    assert details.text == "Details (200 lines)"
    assert dashboard.url == "https://ops.example.com/"

    without_links = AnomalyRules(alerts)
    plain = without_links.idle_input(task, NOW, NOW + 200_000)
    assert plain.buttons is None
    assert "detail" not in plain.message
