"""
Async SQLite client for time-series trend data.

This module provides the TimeSeriesStore, an append-oriented log of
per-agent metric samples, per-job cron samples and alert events, with
indexed range queries for the dashboard trend charts.

Key Tables:
    - agent_metrics: PK (ts_ms, agent_id); same-key write replaces
    - cron_job_metrics: PK (ts_ms, job_id); same-key write replaces
    - p0_events: PK event_key; insert-if-absent audit log

Example:
    >>> store = TimeSeriesStore("state/ops.db")
    >>> await store.connect()
    >>> await store.insert_agent_metrics(samples)
    >>> rows = await store.query_agent_metrics(days=7)
"""

import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import aiosqlite
import structlog

from opsmonitor.errors import PersistenceError
from opsmonitor.models.metrics import AgentMetricSample, AlertEvent, CronJobMetricSample

logger = structlog.get_logger(__name__)

DAY_MS = 24 * 60 * 60 * 1000

SCHEMA = """
CREATE TABLE IF NOT EXISTS agent_metrics (
    ts_ms INTEGER NOT NULL,
    agent_id TEXT NOT NULL,
    sessions_active INTEGER NOT NULL,
    tokens_24h_total INTEGER NOT NULL,
    cron_jobs INTEGER NOT NULL,
    cron_errors INTEGER NOT NULL,
    PRIMARY KEY (ts_ms, agent_id)
);
CREATE INDEX IF NOT EXISTS idx_agent_metrics_ts ON agent_metrics (ts_ms);
CREATE INDEX IF NOT EXISTS idx_agent_metrics_agent_ts ON agent_metrics (agent_id, ts_ms);

CREATE TABLE IF NOT EXISTS p0_events (
    ts_ms INTEGER NOT NULL,
    event_key TEXT NOT NULL PRIMARY KEY,
    kind TEXT NOT NULL,
    agent_id TEXT,
    title TEXT,
    message TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_p0_events_ts ON p0_events (ts_ms);

CREATE TABLE IF NOT EXISTS cron_job_metrics (
    ts_ms INTEGER NOT NULL,
    job_id TEXT NOT NULL,
    agent_id TEXT,
    enabled INTEGER NOT NULL,
    schedule_kind TEXT,
    schedule_expr TEXT,
    last_status TEXT,
    last_run_status TEXT,
    consecutive_errors INTEGER,
    last_error TEXT,
    next_run_at_ms INTEGER,
    last_run_at_ms INTEGER,
    PRIMARY KEY (ts_ms, job_id)
);
CREATE INDEX IF NOT EXISTS idx_cron_job_metrics_ts ON cron_job_metrics (ts_ms);
CREATE INDEX IF NOT EXISTS idx_cron_job_metrics_job_ts ON cron_job_metrics (job_id, ts_ms);
"""

AGENT_METRIC_COLUMNS = (
    "ts_ms",
    "agent_id",
    "sessions_active",
    "tokens_24h_total",
    "cron_jobs",
    "cron_errors",
)

CRON_METRIC_COLUMNS = (
    "ts_ms",
    "job_id",
    "agent_id",
    "enabled",
    "schedule_kind",
    "schedule_expr",
    "last_status",
    "last_run_status",
    "consecutive_errors",
    "last_error",
    "next_run_at_ms",
    "last_run_at_ms",
)

EVENT_COLUMNS = ("ts_ms", "event_key", "kind", "agent_id", "title", "message")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _since_ms(days: float, now_ms: Optional[int]) -> int:
    if days <= 0:
        raise ValueError("days must be positive")
    now_ms = now_ms if now_ms is not None else _now_ms()
    span_ms = days * DAY_MS
    # Lookbacks reaching before the epoch select everything
    if span_ms >= now_ms:
        return 0
    return now_ms - int(span_ms)


class TimeSeriesStore:
    """
    SQLite time-series store.

    Holds one lazily configured connection. Every public method wraps
    ``aiosqlite.Error`` in PersistenceError so callers can log and swallow
    store failures without knowing the driver.

    Attributes:
        db_path: Database file path (":memory:" for an ephemeral store).
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        self.db_path = str(db_path)
        self._conn: Optional[aiosqlite.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> None:
        """
        Open the database, enable WAL and create the schema.

        Raises:
            PersistenceError: If the database cannot be opened or migrated.
        """
        if self._conn is not None:
            return
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = await aiosqlite.connect(self.db_path)
            conn.row_factory = aiosqlite.Row
            await conn.execute("PRAGMA journal_mode = WAL")
            await conn.execute("PRAGMA synchronous = NORMAL")
            await conn.executescript(SCHEMA)
            await conn.commit()
        except aiosqlite.Error as e:
            logger.error("timeseries_connect_failed", db_path=self.db_path, error=str(e))
            raise PersistenceError(f"Failed to open {self.db_path}: {e}") from e
        self._conn = conn
        logger.info("timeseries_connected", db_path=self.db_path)

    async def disconnect(self) -> None:
        """Close the connection if open."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("timeseries_disconnected")

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise PersistenceError("TimeSeriesStore is not connected")
        return self._conn

    async def _write_many(self, sql: str, rows: Sequence[Sequence[Any]]) -> int:
        conn = self._require_conn()
        if not rows:
            return 0
        try:
            await conn.executemany(sql, rows)
            await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Write failed: {e}") from e
        return len(rows)

    async def _fetch(self, sql: str, params: Sequence[Any]) -> List[Dict[str, Any]]:
        conn = self._require_conn()
        try:
            async with conn.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Query failed: {e}") from e
        return [dict(row) for row in rows]

    # -------------------------------------------------------------------------
    # Agent metrics
    # -------------------------------------------------------------------------

    async def insert_agent_metrics(self, samples: Sequence[AgentMetricSample]) -> int:
        """
        Insert or replace per-agent samples.

        Returns:
            int: Number of rows written.

        Raises:
            PersistenceError: If the write fails.
        """
        sql = (
            f"INSERT OR REPLACE INTO agent_metrics ({', '.join(AGENT_METRIC_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in AGENT_METRIC_COLUMNS)})"
        )
        rows = [tuple(getattr(s, c) for c in AGENT_METRIC_COLUMNS) for s in samples]
        return await self._write_many(sql, rows)

    async def query_agent_metrics(
        self,
        days: float = 7,
        now_ms: Optional[int] = None,
    ) -> List[AgentMetricSample]:
        """
        Agent samples with ts_ms within the last ``days``, ascending by ts_ms.

        Raises:
            PersistenceError: If the query fails.
        """
        rows = await self._fetch(
            f"SELECT {', '.join(AGENT_METRIC_COLUMNS)} FROM agent_metrics "
            "WHERE ts_ms >= ? ORDER BY ts_ms ASC, agent_id ASC",
            (_since_ms(days, now_ms),),
        )
        return [AgentMetricSample(**row) for row in rows]

    # -------------------------------------------------------------------------
    # Cron job metrics
    # -------------------------------------------------------------------------

    async def insert_cron_job_metrics(self, samples: Sequence[CronJobMetricSample]) -> int:
        """
        Insert or replace per-job samples.

        Raises:
            PersistenceError: If the write fails.
        """
        sql = (
            f"INSERT OR REPLACE INTO cron_job_metrics ({', '.join(CRON_METRIC_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in CRON_METRIC_COLUMNS)})"
        )
        rows = []
        for s in samples:
            row = [getattr(s, c) for c in CRON_METRIC_COLUMNS]
            row[CRON_METRIC_COLUMNS.index("enabled")] = 1 if s.enabled else 0
            rows.append(tuple(row))
        return await self._write_many(sql, rows)

    async def query_cron_job_metrics(
        self,
        days: float = 7,
        now_ms: Optional[int] = None,
    ) -> List[CronJobMetricSample]:
        """
        Job samples with ts_ms within the last ``days``, ascending by ts_ms.

        Raises:
            PersistenceError: If the query fails.
        """
        rows = await self._fetch(
            f"SELECT {', '.join(CRON_METRIC_COLUMNS)} FROM cron_job_metrics "
            "WHERE ts_ms >= ? ORDER BY ts_ms ASC, job_id ASC",
            (_since_ms(days, now_ms),),
        )
        for row in rows:
            row["enabled"] = bool(row["enabled"])
            if row["consecutive_errors"] is None:
                row["consecutive_errors"] = 0
        return [CronJobMetricSample(**row) for row in rows]

    # -------------------------------------------------------------------------
    # Alert events
    # -------------------------------------------------------------------------

    async def insert_alert_event(self, event: AlertEvent) -> bool:
        """
        Insert an alert event unless its key already exists.

        Returns:
            bool: True if the row was inserted, False if the key was present.

        Raises:
            PersistenceError: If the write fails.
        """
        conn = self._require_conn()
        sql = (
            f"INSERT OR IGNORE INTO p0_events ({', '.join(EVENT_COLUMNS)}) "
            f"VALUES ({', '.join('?' for _ in EVENT_COLUMNS)})"
        )
        try:
            cursor = await conn.execute(sql, tuple(getattr(event, c) for c in EVENT_COLUMNS))
            inserted = cursor.rowcount == 1
            await cursor.close()
            await conn.commit()
        except aiosqlite.Error as e:
            raise PersistenceError(f"Event insert failed: {e}") from e

        if not inserted:
            logger.debug("alert_event_duplicate", event_key=event.event_key)
        return inserted

    async def query_alert_events(
        self,
        days: float = 7,
        now_ms: Optional[int] = None,
    ) -> List[AlertEvent]:
        """
        Events with ts_ms within the last ``days``, descending by ts_ms.

        Raises:
            PersistenceError: If the query fails.
        """
        rows = await self._fetch(
            f"SELECT {', '.join(EVENT_COLUMNS)} FROM p0_events "
            "WHERE ts_ms >= ? ORDER BY ts_ms DESC, event_key ASC",
            (_since_ms(days, now_ms),),
        )
        return [AlertEvent(**row) for row in rows]

    async def ping(self) -> bool:
        """Check that the database answers a trivial query."""
        if self._conn is None:
            return False
        try:
            await self._fetch("SELECT 1 AS ok", ())
            return True
        except PersistenceError:
            return False
