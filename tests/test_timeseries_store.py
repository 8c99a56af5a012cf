from __future__ import annotations

import pytest

from opsmonitor.errors import PersistenceError
from opsmonitor.models.metrics import AgentMetricSample, AlertEvent, CronJobMetricSample
from opsmonitor.storage.timeseries import DAY_MS, TimeSeriesStore

NOW = 1_700_000_000_000


def _agent(ts_ms: int, agent_id: str = "main", **fields) -> AgentMetricSample:
    return AgentMetricSample(ts_ms=ts_ms, agent_id=agent_id, **fields)


@pytest.mark.anyio
async def test_agent_metrics_same_key_replaces(store) -> None:
    await store.insert_agent_metrics([_agent(NOW, sessions_active=1)])
    await store.insert_agent_metrics([_agent(NOW, sessions_active=5, tokens_24h_total=99)])

    rows = await store.query_agent_metrics(days=1, now_ms=NOW)
    assert len(rows) == 1
    assert rows[0].sessions_active == 5
    assert rows[0].tokens_24h_total == 99


@pytest.mark.anyio
async def test_agent_metrics_window_and_ascending_order(store) -> None:
    await store.insert_agent_metrics(
        [
            _agent(NOW - 1000),
            _agent(NOW - 3 * DAY_MS),
            _agent(NOW - 2000, agent_id="coding"),
            _agent(NOW - 10 * DAY_MS),
        ]
    )
    rows = await store.query_agent_metrics(days=7, now_ms=NOW)
    assert [r.ts_ms for r in rows] == [NOW - 3 * DAY_MS, NOW - 2000, NOW - 1000]


@pytest.mark.anyio
async def test_lookback_before_epoch_returns_everything(store) -> None:
    await store.insert_agent_metrics([_agent(0), _agent(NOW - 1000)])
    rows = await store.query_agent_metrics(days=1e12, now_ms=NOW)
    assert [r.ts_ms for r in rows] == [0, NOW - 1000]
    events = await store.query_alert_events(days=1e300, now_ms=NOW)
    assert events == []


@pytest.mark.anyio
async def test_cron_job_metrics_round_trip_fields(store) -> None:
    sample = CronJobMetricSample(
        ts_ms=NOW,
        job_id="job-1",
        agent_id="main",
        enabled=True,
        schedule_kind="cron",
        schedule_expr="0 * * * *",
        last_status="error",
        consecutive_errors=2,
        last_error="timeout",
        last_run_at_ms=NOW - 60_000,
    )
    await store.insert_cron_job_metrics([sample])
    rows = await store.query_cron_job_metrics(days=1, now_ms=NOW)
    assert rows == [sample]


@pytest.mark.anyio
async def test_alert_event_insert_if_absent(store) -> None:
    first = AlertEvent(ts_ms=NOW, event_key="p0:tokens:main:300", kind="token_spike", message="a")
    again = AlertEvent(ts_ms=NOW + 5, event_key="p0:tokens:main:300", kind="token_spike", message="b")

    assert await store.insert_alert_event(first) is True
    assert await store.insert_alert_event(again) is False

    rows = await store.query_alert_events(days=1, now_ms=NOW + 10)
    assert len(rows) == 1
    assert rows[0].message == "a"
    assert rows[0].ts_ms == NOW


@pytest.mark.anyio
async def test_alert_events_descending(store) -> None:
    for offset, key in [(3, "k3"), (1, "k1"), (2, "k2")]:
        await store.insert_alert_event(
            AlertEvent(ts_ms=NOW + offset, event_key=key, kind="cron_error", message=key)
        )
    rows = await store.query_alert_events(days=1, now_ms=NOW + 10)
    assert [r.event_key for r in rows] == ["k3", "k2", "k1"]


@pytest.mark.anyio
async def test_non_positive_days_rejected(store) -> None:
    with pytest.raises(ValueError):
        await store.query_agent_metrics(days=0, now_ms=NOW)


@pytest.mark.anyio
async def test_data_survives_reopen(tmp_path) -> None:
    path = tmp_path / "nested" / "ops.db"
    first = TimeSeriesStore(path)
    await first.connect()
    await first.insert_agent_metrics([_agent(NOW)])
    await first.disconnect()

    second = TimeSeriesStore(path)
    await second.connect()
    try:
        rows = await second.query_agent_metrics(days=1, now_ms=NOW)
        assert len(rows) == 1
    finally:
        await second.disconnect()


@pytest.mark.anyio
async def test_unconnected_store_raises_persistence_error(tmp_path) -> None:
    s = TimeSeriesStore(tmp_path / "ops.db")
    with pytest.raises(PersistenceError):
        await s.insert_agent_metrics([_agent(NOW)])
    assert await s.ping() is False
