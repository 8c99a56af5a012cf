"""
FastAPI application for the agent fleet ops dashboard.

This module creates and configures the FastAPI application with:
- Router registration for the JSON API under /api and the detail log page
- Lifespan events that start and stop the monitor runtime
- Exception handlers mapping the ops error taxonomy to JSON responses

Every JSON response carries an ``ok`` flag. Errors look like
``{"ok": false, "error": "..."}``:
    - 400: invalid request parameters
    - 502: the automation tool failed or returned malformed output
    - 503: the trend store or the snapshot cache is not available yet

Note:
    Overview, agents, sessions and cron views are served from the snapshot
    cache maintained by the background refresh; nothing is aggregated here.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from opsmonitor.config.loader import load_config
from opsmonitor.config.models import AppConfig
from opsmonitor.errors import CommandError, ParseError, PersistenceError, ValidationError
from opsmonitor.runtime import MonitorRuntime

logger = structlog.get_logger(__name__)


class AppState:
    """
    Application state container.

    Holds the monitor runtime built during application startup and stopped
    on shutdown.
    """

    def __init__(self) -> None:
        self.runtime: Optional[MonitorRuntime] = None
        self.config: Optional[AppConfig] = None
        self.start_time: float = time.monotonic()
        self.start_background: bool = True


# Global application state
app_state = AppState()


def get_runtime() -> MonitorRuntime:
    """Return the running monitor runtime or fail the request with 503."""
    if app_state.runtime is None:
        raise HTTPException(status_code=503, detail="monitor runtime not started")
    return app_state.runtime


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Manage application lifespan events.

    Builds the runtime from configuration when none was injected, starts
    the background timers (or only connects the store when background work
    is disabled) and tears everything down on shutdown.
    """
    logger.info("dashboard_starting")

    if app_state.runtime is None:
        app_state.config = app_state.config or load_config()
        app_state.runtime = MonitorRuntime.from_config(app_state.config)

    runtime = app_state.runtime
    if app_state.start_background:
        await runtime.start()
    else:
        try:
            await runtime.store.connect()
        except PersistenceError as e:
            logger.error("timeseries_unavailable", error=str(e))

    app_state.start_time = time.monotonic()
    logger.info("dashboard_ready", background=app_state.start_background)

    yield

    logger.info("dashboard_shutting_down")
    if app_state.start_background:
        await runtime.stop()
    else:
        await runtime.store.disconnect()
    logger.info("dashboard_shutdown_complete")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


def register_exception_handlers(app: FastAPI) -> None:
    """Map ops errors to JSON error responses."""

    @app.exception_handler(ValidationError)
    async def handle_validation(_request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(
        _request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "invalid request") if errors else "invalid request"
        return _error(400, message)

    @app.exception_handler(CommandError)
    async def handle_command(_request: Request, exc: CommandError) -> JSONResponse:
        logger.warning("request_command_failed", kind=exc.kind.value, error=str(exc))
        return _error(502, str(exc))

    @app.exception_handler(ParseError)
    async def handle_parse(_request: Request, exc: ParseError) -> JSONResponse:
        logger.warning("request_parse_failed", source=exc.source, error=str(exc))
        return _error(502, str(exc))

    @app.exception_handler(PersistenceError)
    async def handle_persistence(_request: Request, exc: PersistenceError) -> JSONResponse:
        logger.error("request_store_failed", error=str(exc))
        return _error(503, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))


def create_app(
    runtime: Optional[MonitorRuntime] = None,
    config: Optional[AppConfig] = None,
    start_background: bool = True,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        runtime: Prebuilt runtime (built from configuration when omitted).
        config: Configuration used to build the runtime when omitted.
        start_background: Whether to run the refresh and anomaly timers.

    Returns:
        FastAPI: Configured FastAPI application instance.

    Example:
        >>> app = create_app()
        >>> import uvicorn
        >>> uvicorn.run(app, host="127.0.0.1", port=3412)
    """
    app_state.runtime = runtime
    app_state.config = config or (runtime.config if runtime is not None else None)
    app_state.start_background = start_background

    app = FastAPI(
        title="Agent Fleet Ops Dashboard",
        description="Live state, trends and P0 alerts for an agent fleet",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    register_exception_handlers(app)

    # Register API routers
    from services.dashboard.api.agents import router as agents_router
    from services.dashboard.api.cron import router as cron_router
    from services.dashboard.api.detail import router as detail_router
    from services.dashboard.api.health import router as health_router
    from services.dashboard.api.overview import router as overview_router
    from services.dashboard.api.sessions import router as sessions_router
    from services.dashboard.api.trends import router as trends_router

    app.include_router(health_router, prefix="/api", tags=["Health"])
    app.include_router(overview_router, prefix="/api", tags=["Overview"])
    app.include_router(agents_router, prefix="/api", tags=["Agents"])
    app.include_router(sessions_router, prefix="/api", tags=["Sessions"])
    app.include_router(cron_router, prefix="/api", tags=["Cron"])
    app.include_router(trends_router, prefix="/api", tags=["Trends"])
    app.include_router(detail_router, tags=["Detail"])

    logger.info("fastapi_app_created")

    return app
