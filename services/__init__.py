"""
Service entry points for the ops monitor.

Services:
    dashboard: FastAPI JSON API and detail pages, hosting the background
        refresh and anomaly timers in-process
"""
