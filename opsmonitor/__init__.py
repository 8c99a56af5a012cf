"""
Agent Fleet Ops Monitor.

Monitoring and alerting core for an agent-fleet operations dashboard.

This package provides:
- A bounded command adapter and gateway for the external automation tool
- An in-memory snapshot cache refreshed by a concurrent scheduler
- A SQLite time-series store for trend analysis
- Anomaly detection with cooldown-gated notification dispatch
"""

__version__ = "0.1.0"
