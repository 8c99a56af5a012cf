"""
Per-agent overview aggregation and trend sampling.

Functions:
    build_overview: Derive AgentSnapshot rows from one primary collection
    agent_samples: AgentMetricSample rows for an overview
    cron_job_samples: CronJobMetricSample rows for a job list
"""

from typing import Dict, List

from opsmonitor.models.agents import AgentRecord, AgentSnapshot
from opsmonitor.models.cron import CronJobList
from opsmonitor.models.metrics import AgentMetricSample, CronJobMetricSample
from opsmonitor.models.sessions import SessionWindow


def build_overview(
    agents: List[AgentRecord],
    sessions: SessionWindow,
    cron: CronJobList,
) -> List[AgentSnapshot]:
    """
    Aggregate sessions and cron jobs per agent.

    Sessions and jobs whose agent is not in ``agents`` are ignored. Rows keep
    the order of ``agents``.

    Args:
        agents: Agents from the same collection.
        sessions: Primary-window sessions.
        cron: Redacted cron jobs.

    Returns:
        List[AgentSnapshot]: One row per agent.

    Example:
        >>> rows = build_overview(agents, sessions_24h, cron)
        >>> rows[0].tokens_24h
        1234
    """
    counters: Dict[str, Dict[str, int]] = {
        a.id: {"sessions_active": 0, "tokens_24h": 0, "cron_jobs": 0, "cron_errors": 0}
        for a in agents
    }

    for session in sessions.sessions:
        row = counters.get(session.agent_id or "")
        if row is None:
            continue
        row["sessions_active"] += 1
        row["tokens_24h"] += session.total_tokens

    for job in cron.jobs:
        row = counters.get(job.agent_id or "")
        if row is None:
            continue
        row["cron_jobs"] += 1
        if job.is_failing:
            row["cron_errors"] += 1

    overview: List[AgentSnapshot] = []
    seen = set()
    for agent in agents:
        # Duplicate ids in the listing collapse into the first row
        if agent.id in seen:
            continue
        seen.add(agent.id)
        overview.append(
            AgentSnapshot(
                agent_id=agent.id,
                name=agent.display_name,
                emoji=agent.identity_emoji,
                workspace=agent.workspace,
                model=agent.model,
                **counters[agent.id],
            )
        )
    return overview


def agent_samples(ts_ms: int, overview: List[AgentSnapshot]) -> List[AgentMetricSample]:
    return [AgentMetricSample.from_snapshot(ts_ms, row) for row in overview]


def cron_job_samples(ts_ms: int, cron: CronJobList) -> List[CronJobMetricSample]:
    return [CronJobMetricSample.from_job(ts_ms, job) for job in cron.jobs]
