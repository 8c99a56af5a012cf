"""
Dashboard service entry point.

This module loads configuration, configures logging and runs the FastAPI
ops dashboard with Uvicorn. The app lifespan starts the background refresh
and anomaly timers in the same process.

Usage:
    python -m services.dashboard.main

    Or via the console script:
    opsmonitor-dashboard

Environment Variables:
    CONFIG_PATH: Path to config directory (default: config)
    LOG_LEVEL: Logging level (default: INFO)
    DASHBOARD_HOST: Host to bind to (default: 127.0.0.1)
    DASHBOARD_PORT: Port to run the dashboard on (default: 3412)
    (see opsmonitor.config.loader for the full override list)
"""

import sys

import structlog
import uvicorn

from opsmonitor import __version__
from opsmonitor.config.loader import ConfigLoadError, load_config
from opsmonitor.logging_setup import setup_logging
from services.dashboard.app import create_app


def main() -> None:
    """
    Main entry point for the dashboard service.

    Loads configuration, configures logging and starts the Uvicorn server
    with the FastAPI application.
    """
    try:
        config = load_config()
    except ConfigLoadError as e:
        setup_logging()
        structlog.get_logger(__name__).error("config_load_failed", error=str(e))
        sys.exit(1)

    setup_logging(config.logging)

    logger = structlog.get_logger(__name__)
    logger.info(
        "dashboard_service_starting",
        version=__version__,
        python_version=sys.version,
        host=config.server.host,
        port=config.server.port,
    )

    uvicorn.run(
        create_app(config=config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.value.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
