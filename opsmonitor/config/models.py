"""
Pydantic models for application configuration.

This module defines all configuration models that are validated when loading
YAML configuration files. The models ensure type safety and provide sensible
defaults for every setting, so an empty configuration directory still yields
a runnable monitor.

Configuration files:
    - config/collector.yaml: Command, collector cadence, storage and server
    - config/alerts.yaml: Anomaly thresholds, cooldown and destinations

Example:
    >>> from opsmonitor.config.models import AppConfig
    >>> config = AppConfig()
    >>> config.alerts.cooldown_ms
    1800000
"""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================


class LogFormat(str, Enum):
    """Logging format options."""

    JSON = "json"
    TEXT = "text"


class LogLevel(str, Enum):
    """Logging level options."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


# Session window name -> active minutes passed to the external tool
DEFAULT_SESSION_WINDOWS: Dict[str, int] = {
    "24h": 1440,
    "7d": 10080,
    "30d": 43200,
}

PRIMARY_WINDOW = "24h"


# =============================================================================
# COMMAND CONFIGURATION
# =============================================================================


class CommandConfig(BaseModel):
    """Bounds and argv prefixes for external tool invocations."""

    model_config = {"frozen": True, "extra": "forbid"}

    binary: str = Field(
        default="openclaw",
        description="Automation tool executable",
        min_length=1,
    )
    timeout_ms: int = Field(
        default=30_000,
        description="Timeout for query subcommands",
        ge=100,
    )
    max_output_bytes: int = Field(
        default=5 * 1024 * 1024,
        description="Per-stream output cap for query subcommands",
        ge=1024,
    )
    send_timeout_ms: int = Field(
        default=20_000,
        description="Timeout for message sends",
        ge=100,
    )
    send_max_output_bytes: int = Field(
        default=2 * 1024 * 1024,
        description="Per-stream output cap for message sends",
        ge=1024,
    )
    task_list_command: List[str] = Field(
        default_factory=list,
        description="argv of the interactive task lister (empty disables idle input)",
    )
    task_list_lines: int = Field(
        default=40,
        description="Trailing log lines requested per task",
        ge=1,
    )
    log_capture_command: List[str] = Field(
        default_factory=list,
        description="argv prefix of the session log capture command",
    )
    task_timeout_ms: int = Field(
        default=20_000,
        description="Timeout for task listing and log capture",
        ge=100,
    )


# =============================================================================
# COLLECTOR CONFIGURATION
# =============================================================================


class CollectorConfig(BaseModel):
    """Refresh cadence and session windows."""

    model_config = {"frozen": True, "extra": "forbid"}

    refresh_interval_ms: int = Field(
        default=10_000,
        description="Primary refresh cadence (agents, 24h sessions, cron)",
        ge=500,
    )
    secondary_interval_ms: int = Field(
        default=60_000,
        description="Secondary session window refresh cadence",
        ge=500,
    )
    anomaly_interval_ms: int = Field(
        default=60_000,
        description="Anomaly detection cadence",
        ge=500,
    )
    active_minutes: int = Field(
        default=1440,
        description="Activity horizon reported in the overview",
        ge=1,
    )
    session_windows: Dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_SESSION_WINDOWS),
        description="Window name to active minutes",
    )
    stale_after_ms: Optional[int] = Field(
        default=None,
        description="Age after which the overview is flagged stale "
        "(defaults to three refresh intervals)",
        ge=0,
    )

    @field_validator("session_windows")
    @classmethod
    def validate_windows(cls, v: Dict[str, int]) -> Dict[str, int]:
        """Require the primary window and positive minute counts."""
        if PRIMARY_WINDOW not in v:
            raise ValueError(f"session_windows must define '{PRIMARY_WINDOW}'")
        for name, minutes in v.items():
            if minutes <= 0:
                raise ValueError(f"session window {name} must be positive")
        return v

    @property
    def secondary_windows(self) -> List[str]:
        """Windows refreshed on the slow cadence."""
        return [w for w in self.session_windows if w != PRIMARY_WINDOW]

    @property
    def effective_stale_after_ms(self) -> int:
        """Staleness cutoff for the overview indicator."""
        if self.stale_after_ms is not None:
            return self.stale_after_ms
        return self.refresh_interval_ms * 3


# =============================================================================
# STORAGE CONFIGURATION
# =============================================================================


class StorageConfig(BaseModel):
    """Locations of the durable stores."""

    model_config = {"frozen": True, "extra": "forbid"}

    db_path: str = Field(
        default="state/ops.db",
        description="SQLite time-series database path",
    )
    notify_state_path: str = Field(
        default="state/notify-state.json",
        description="Cooldown and idle-timer document path",
    )


# =============================================================================
# ALERT CONFIGURATION
# =============================================================================


class DestinationConfig(BaseModel):
    """A logical notification destination on the messaging channel."""

    model_config = {"frozen": True, "extra": "forbid"}

    channel: str = Field(default="telegram", description="Messaging channel")
    account: str = Field(default="default", description="Sending account id")
    target: str = Field(default="", description="Recipient id on the channel")
    label: str = Field(default="", description="Prefix tag shown in messages")


class AlertsConfig(BaseModel):
    """Anomaly thresholds, dedup granularity and notification routing."""

    model_config = {"frozen": True, "extra": "forbid"}

    cooldown_ms: int = Field(
        default=30 * 60 * 1000,
        description="Minimum time between notifications sharing a dedup key",
        ge=0,
    )
    token_spike_threshold: int = Field(
        default=3_000_000,
        description="24h token sum per agent that triggers a spike alert",
        ge=1,
    )
    token_spike_bucket_tokens: int = Field(
        default=50_000,
        description="Granularity of the token spike dedup bucket",
        ge=10_000,
    )
    idle_threshold_ms: int = Field(
        default=120_000,
        description="Idle duration before an idle-input alert",
        ge=0,
    )
    idle_prompt_glyph: str = Field(
        default="❯",
        description="Prompt marker that identifies a session waiting for input",
        min_length=1,
    )
    idle_agent_id: str = Field(
        default="coding",
        description="Agent id recorded on idle-input events",
    )
    idle_snippet_lines: int = Field(
        default=10,
        description="Trailing log lines included in idle-input messages",
        ge=1,
    )
    detail_session_prefix: str = Field(
        default="cc-",
        description="Session id prefix accepted by the detail log page",
    )
    detail_lines: int = Field(
        default=200,
        description="Log lines captured for the detail page",
        ge=1,
    )
    general: DestinationConfig = Field(
        default_factory=lambda: DestinationConfig(account="default", label="ops"),
        description="General alert destination",
    )
    secondary: DestinationConfig = Field(
        default_factory=lambda: DestinationConfig(account="coding", label="coding"),
        description="Interactive-session alert destination (supports buttons)",
    )

    @field_validator("token_spike_bucket_tokens")
    @classmethod
    def validate_bucket(cls, v: int) -> int:
        """Bucket must be a whole multiple of the 10k key unit."""
        if v % 10_000 != 0:
            raise ValueError("token_spike_bucket_tokens must be a multiple of 10000")
        return v


# =============================================================================
# SERVER CONFIGURATION
# =============================================================================


class ServerConfig(BaseModel):
    """HTTP server settings."""

    model_config = {"frozen": True, "extra": "forbid"}

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=3412, description="Listen port", ge=1, le=65535)
    public_base_url: Optional[str] = Field(
        default=None,
        description="Externally reachable dashboard URL used in alert links",
    )

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        """Normalize the base URL so paths can be appended."""
        if v is None:
            return None
        v = v.strip().rstrip("/")
        return v or None


class LoggingConfig(BaseModel):
    """Logging configuration."""

    model_config = {"frozen": True, "extra": "forbid"}

    format: LogFormat = Field(default=LogFormat.JSON, description="Renderer")
    level: LogLevel = Field(default=LogLevel.INFO, description="Minimum level")


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class AppConfig(BaseModel):
    """
    Root application configuration.

    Aggregates all configuration sections into a single validated object.

    Example:
        >>> config = AppConfig()
        >>> config.collector.session_windows["7d"]
        10080
    """

    model_config = {"frozen": True, "extra": "forbid"}

    command: CommandConfig = Field(default_factory=CommandConfig)
    collector: CollectorConfig = Field(default_factory=CollectorConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
