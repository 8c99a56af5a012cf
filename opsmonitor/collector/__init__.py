"""
Collection of live state into the snapshot cache and trend store.

Exports:
    RefreshScheduler: Primary and secondary refresh cycles
    build_overview: Per-agent aggregation
"""

from opsmonitor.collector.aggregator import agent_samples, build_overview, cron_job_samples
from opsmonitor.collector.scheduler import RefreshScheduler, now_ms

__all__ = [
    "RefreshScheduler",
    "agent_samples",
    "build_overview",
    "cron_job_samples",
    "now_ms",
]
