from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient

from conftest import command_error, make_agent, make_job, make_session

from opsmonitor.models.cron import CronJobList
from opsmonitor.models.metrics import AgentMetricSample, AlertEvent
from opsmonitor.runtime import MonitorRuntime
from services.dashboard.app import create_app


@pytest.fixture
def runtime(app_config, gateway) -> MonitorRuntime:
    return MonitorRuntime.from_config(app_config, gateway=gateway)


@pytest.fixture
def client(runtime):
    app = create_app(runtime=runtime, start_background=False)
    with TestClient(app) as c:
        yield c


def _populate(gateway) -> None:
    gateway.agents = [
        make_agent("main", identityName="Jarvis", bindings=["telegram accountId=default"]),
        make_agent("coding"),
    ]
    gateway.sessions["24h"] = [make_session("agent:main:main", "main", 42)]
    gateway.cron = CronJobList(
        jobs=[
            make_job(
                "j1",
                state={"lastStatus": "error"},
                payload={"kind": "agentTurn", "message": "do the secret thing"},
            )
        ],
        total=1,
    )


def _refresh(client, runtime) -> None:
    assert client.portal.call(runtime.scheduler.refresh_primary) is True


def test_health(client) -> None:
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["store"] == "connected"
    assert body["snapshotVersion"] == 0


def test_overview_warms_up_then_serves_cache(client, runtime, gateway) -> None:
    resp = client.get("/api/overview")
    assert resp.status_code == 503
    assert resp.json() == {"ok": False, "error": "cache warming up, retry shortly"}

    _populate(gateway)
    _refresh(client, runtime)

    body = client.get("/api/overview").json()
    assert body["ok"] is True
    assert body["cached"] is True
    assert body["stale"] is False
    assert body["lastError"] is None
    assert body["activeMinutes"] == 1440
    main = next(a for a in body["agents"] if a["agentId"] == "main")
    assert main["tokens24h"] == 42
    assert main["cronErrors"] == 1


def test_overview_reports_last_error_after_failed_refresh(client, runtime, gateway) -> None:
    _populate(gateway)
    _refresh(client, runtime)
    gateway.fail["list_agents"] = command_error("tool crashed")

    assert client.portal.call(runtime.scheduler.refresh_primary) is False

    body = client.get("/api/overview").json()
    assert body["ok"] is True
    assert "tool crashed" in body["lastError"]
    assert len(body["agents"]) == 2


def test_agents_uncached_then_cached(client, runtime, gateway) -> None:
    _populate(gateway)
    body = client.get("/api/agents").json()
    assert body["cached"] is False
    assert [a["id"] for a in body["agents"]] == ["main", "coding"]

    _refresh(client, runtime)
    body = client.get("/api/agents").json()
    assert body["cached"] is True
    assert "updatedAtMs" in body


def test_agents_fetch_failure_is_bad_gateway(client, gateway) -> None:
    gateway.fail["list_agents"] = command_error("exit 1")
    resp = client.get("/api/agents")
    assert resp.status_code == 502
    assert resp.json()["ok"] is False


def test_routing_reports_channel_errors_inline(client, gateway) -> None:
    _populate(gateway)
    gateway.fail["list_channel_accounts"] = command_error("no channels")

    resp = client.get("/api/routing")
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["rows"][0]["agentId"] == "main"
    assert body["telegramAccounts"] == []
    assert "no channels" in body["channelsError"]


def test_sessions_window_validation_and_fallback(client, gateway) -> None:
    resp = client.get("/api/sessions", params={"window": "1y"})
    assert resp.status_code == 400
    assert resp.json()["ok"] is False

    gateway.sessions["7d"] = [make_session("agent:main:main", "main", 5, kind="direct-chat")]
    first = client.get("/api/sessions", params={"window": "7d"}).json()
    assert first["cached"] is False
    assert first["activeMinutes"] == 10080
    assert first["count"] == 1
    assert first["sessions"][0]["totalTokens"] == 5
    assert first["sessions"][0]["kind"] == "direct-chat"
    assert first["sessions"][0]["sessionKind"] == "direct"

    second = client.get("/api/sessions", params={"window": "7d"}).json()
    assert second["cached"] is True


def test_cron_listing_is_redacted(client, runtime, gateway) -> None:
    _populate(gateway)
    uncached = client.get("/api/cron").json()
    assert uncached["cached"] is False
    assert "secret" not in str(uncached)

    _refresh(client, runtime)
    cached = client.get("/api/cron").json()
    assert cached["cached"] is True
    assert cached["total"] == 1
    assert cached["jobs"][0]["payload"] == {"kind": "agentTurn"}


def test_cron_mutation(client, gateway) -> None:
    gateway.mutate_result = {"ok": True, "ran": True}
    resp = client.post("/api/cron/j1/run")
    assert resp.json() == {"ok": True, "result": {"ok": True, "ran": True}}
    assert gateway.mutations[0][0] == "j1"

    bad = client.post("/api/cron/j1/delete")
    assert bad.status_code == 400
    assert "invalid action" in bad.json()["error"]

    gateway.fail["mutate_cron_job"] = command_error("job not found")
    failed = client.post("/api/cron/j1/disable")
    assert failed.status_code == 502
    assert "job not found" in failed.json()["error"]


def test_trends_rows_and_days_validation(client, runtime) -> None:
    now = int(time.time() * 1000)
    client.portal.call(
        runtime.store.insert_agent_metrics,
        [AgentMetricSample(ts_ms=now - 1000, agent_id="main", tokens_24h_total=9)],
    )
    client.portal.call(
        runtime.store.insert_alert_event,
        AlertEvent(ts_ms=now - 500, event_key="p0:tokens:main:300", kind="token_spike", message="m"),
    )

    agents = client.get("/api/trends/agent-metrics").json()
    assert agents["days"] == 7
    assert agents["rows"][0]["tokens_24h_total"] == 9

    events = client.get("/api/trends/p0", params={"days": 1}).json()
    assert events["rows"][0]["event_key"] == "p0:tokens:main:300"

    assert client.get("/api/trends/cron-jobs").json()["rows"] == []

    for days in ("0", "-1", "nan", "abc"):
        resp = client.get("/api/trends/p0", params={"days": days})
        assert resp.status_code == 400, days
        assert resp.json()["ok"] is False

    for days in ("1e12", "1e300"):
        resp = client.get("/api/trends/agent-metrics", params={"days": days})
        assert resp.status_code == 200, days
        assert len(resp.json()["rows"]) == 1


def test_detail_page(client, gateway) -> None:
    resp = client.get("/detail/other-1")
    assert resp.status_code == 400

    gateway.log_text = "<script>alert(1)</script>\n❯"
    page = client.get("/detail/cc-1")
    assert page.status_code == 200
    assert page.headers["content-type"].startswith("text/html")
    assert "&lt;script&gt;" in page.text
    assert "<script>" not in page.text

    gateway.fail["capture_log"] = command_error("no such session")
    assert client.get("/detail/cc-2").status_code == 502


def test_unknown_route_is_json(client) -> None:
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json()["ok"] is False
