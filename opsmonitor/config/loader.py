"""
Configuration loader for YAML-based application configuration.

This module provides utilities to load and validate configuration from YAML
files. All configuration is validated using Pydantic models to ensure type
safety and catch configuration errors early.

Configuration files (both optional; missing files use model defaults):
    - config/collector.yaml: command, collector, storage, server, logging
    - config/alerts.yaml: alert thresholds, cooldown and destinations

Environment variables override YAML values:
    - LOG_LEVEL: Application log level
    - DB_PATH: SQLite time-series database path
    - NOTIFY_STATE_PATH: Cooldown document path
    - NOTIFY_COOLDOWN_MS: Notification cooldown window
    - TOKEN_P0: Token spike threshold
    - IDLE_P0_MS: Idle-input threshold
    - REFRESH_EVERY_MS / REFRESH_LONG_EVERY_MS / NOTIFY_EVERY_MS: cadences
    - ACTIVE_MINUTES: Overview activity horizon
    - OPS_CLI_BINARY: Automation tool executable
    - PUBLIC_BASE_URL: Dashboard URL used in alert links
    - DASHBOARD_HOST / DASHBOARD_PORT: HTTP bind address

Example:
    >>> from opsmonitor.config.loader import load_config
    >>> config = load_config("config")
    >>> config.collector.refresh_interval_ms
    10000
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from opsmonitor.config.models import AppConfig


class ConfigLoadError(Exception):
    """
    Raised when configuration loading fails.

    Attributes:
        message: Error message describing what went wrong.
        file_path: Path to the file that caused the error, if applicable.
        cause: Original exception that caused the error, if any.
    """

    def __init__(
        self,
        message: str,
        file_path: Optional[Path] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.file_path = file_path
        self.cause = cause
        super().__init__(message)


# env var -> (section, key, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, str, Callable[[str], Any]]] = {
    "LOG_LEVEL": ("logging", "level", lambda v: v.upper()),
    "DB_PATH": ("storage", "db_path", str),
    "NOTIFY_STATE_PATH": ("storage", "notify_state_path", str),
    "NOTIFY_COOLDOWN_MS": ("alerts", "cooldown_ms", int),
    "TOKEN_P0": ("alerts", "token_spike_threshold", int),
    "IDLE_P0_MS": ("alerts", "idle_threshold_ms", int),
    "REFRESH_EVERY_MS": ("collector", "refresh_interval_ms", int),
    "REFRESH_LONG_EVERY_MS": ("collector", "secondary_interval_ms", int),
    "NOTIFY_EVERY_MS": ("collector", "anomaly_interval_ms", int),
    "ACTIVE_MINUTES": ("collector", "active_minutes", int),
    "OPS_CLI_BINARY": ("command", "binary", str),
    "PUBLIC_BASE_URL": ("server", "public_base_url", str),
    "DASHBOARD_HOST": ("server", "host", str),
    "DASHBOARD_PORT": ("server", "port", int),
}


class ConfigLoader:
    """
    Loads and validates application configuration from YAML files.

    Expects the following directory structure:
        config/
        ├── collector.yaml  - command, collector, storage, server, logging
        └── alerts.yaml     - alert thresholds and destinations

    Example:
        >>> loader = ConfigLoader("config")
        >>> config = loader.load()
    """

    def __init__(
        self,
        config_dir: Path | str = "config",
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize config loader.

        Args:
            config_dir: Path to configuration directory (default: 'config').
            environ: Environment mapping used for overrides (default: os.environ).

        Raises:
            ConfigLoadError: If config path exists but is not a directory.
        """
        self.config_dir = Path(config_dir)
        self.environ = os.environ if environ is None else environ
        if self.config_dir.exists() and not self.config_dir.is_dir():
            raise ConfigLoadError(
                f"Configuration path is not a directory: {self.config_dir}",
                file_path=self.config_dir,
            )

    def _load_yaml(self, filename: str) -> Dict[str, Any]:
        """
        Load a YAML file from the config directory.

        Args:
            filename: Name of YAML file (e.g., 'alerts.yaml').

        Returns:
            Dict containing parsed YAML content; empty if the file is absent.

        Raises:
            ConfigLoadError: If the file is unreadable, invalid YAML, or not a mapping.
        """
        file_path = self.config_dir / filename
        if not file_path.exists():
            return {}

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigLoadError(
                f"Invalid YAML syntax in {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e
        except OSError as e:
            raise ConfigLoadError(
                f"Error reading {file_path}: {e}",
                file_path=file_path,
                cause=e,
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(
                f"Configuration file must contain a mapping: {file_path}",
                file_path=file_path,
            )
        return data

    def _apply_env_overrides(self, data: Dict[str, Any]) -> None:
        """
        Merge environment variable overrides into raw config data.

        Raises:
            ConfigLoadError: If an override cannot be converted.
        """
        for env_name, (section, key, convert) in ENV_OVERRIDES.items():
            raw = self.environ.get(env_name)
            if raw is None or raw == "":
                continue
            try:
                value = convert(raw)
            except ValueError as e:
                raise ConfigLoadError(
                    f"Invalid value for {env_name}: {raw!r}",
                    cause=e,
                ) from e
            data.setdefault(section, {})[key] = value

    def load(self) -> AppConfig:
        """
        Load and validate all configuration files.

        Returns:
            AppConfig: Validated application configuration.

        Raises:
            ConfigLoadError: If any configuration is invalid.
        """
        collector_data = self._load_yaml("collector.yaml")
        alerts_data = self._load_yaml("alerts.yaml")

        data: Dict[str, Any] = {}
        for section in ("command", "collector", "storage", "server", "logging"):
            if section in collector_data:
                data[section] = dict(collector_data[section] or {})
        unknown = set(collector_data) - {"command", "collector", "storage", "server", "logging"}
        if unknown:
            raise ConfigLoadError(
                f"Unknown sections in collector.yaml: {sorted(unknown)}",
                file_path=self.config_dir / "collector.yaml",
            )
        if alerts_data:
            data["alerts"] = dict(alerts_data)

        self._apply_env_overrides(data)

        try:
            return AppConfig(**data)
        except ValidationError as e:
            raise ConfigLoadError(
                f"Configuration validation failed: {e}",
                cause=e,
            ) from e


def load_config(config_dir: Path | str | None = None) -> AppConfig:
    """
    Convenience function to load application configuration.

    Args:
        config_dir: Path to configuration directory (default: $CONFIG_PATH or 'config').

    Returns:
        AppConfig: Validated application configuration.

    Raises:
        ConfigLoadError: If configuration loading fails.
    """
    if config_dir is None:
        config_dir = os.getenv("CONFIG_PATH", "config")
    loader = ConfigLoader(config_dir)
    return loader.load()
