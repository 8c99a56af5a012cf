"""
Ops dashboard service.

Exports:
    create_app: FastAPI application factory
    app_state: Process-wide application state
"""

from services.dashboard.app import app_state, create_app

__all__ = [
    "app_state",
    "create_app",
]
