"""
REST API endpoints for the dashboard.

This package provides FastAPI routers for:
- Health: Liveness and snapshot version
- Overview: Cached per-agent aggregates with staleness
- Agents: Raw agents and routing bindings
- Sessions: Session windows
- Cron: Redacted jobs and job mutations
- Trends: Historical samples and alert events from SQLite
- Detail: HTML log page for interactive sessions
"""
