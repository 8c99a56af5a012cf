"""
Configuration management for the ops monitor.

Loads YAML configuration, applies environment overrides and validates the
result with Pydantic models.
"""

from opsmonitor.config.loader import ConfigLoadError, ConfigLoader, load_config
from opsmonitor.config.models import (
    PRIMARY_WINDOW,
    AlertsConfig,
    AppConfig,
    CollectorConfig,
    CommandConfig,
    DestinationConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    ServerConfig,
    StorageConfig,
)

__all__ = [
    "PRIMARY_WINDOW",
    "AlertsConfig",
    "AppConfig",
    "CollectorConfig",
    "CommandConfig",
    "ConfigLoadError",
    "ConfigLoader",
    "DestinationConfig",
    "LogFormat",
    "LoggingConfig",
    "LogLevel",
    "ServerConfig",
    "StorageConfig",
    "load_config",
]
