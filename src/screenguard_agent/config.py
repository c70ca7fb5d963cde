"""
ScreenGuardAgent Configuration
==============================

This module handles configuration loading for the screen guard agent.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    SCREENGUARD_ESCALATION_DELAY       -> timing.escalation_delay_sec
    SCREENGUARD_ZERO_TOLERANCE         -> timing.zero_tolerance
    SCREENGUARD_PERSISTENT_THRESHOLD   -> timing.persistent_threshold_sec
    SCREENGUARD_MIN_INTERVAL_MS        -> throttle.min_interval_sec
    SCREENGUARD_SKIP_FACTOR            -> throttle.skip_factor
    SCREENGUARD_NOTIFICATION_COOLDOWN  -> notifications.cooldown_sec
    SCREENGUARD_NOTIFICATIONS_ENABLED  -> notifications.enabled
    SCREENGUARD_SENSOR_URL             -> sensor.url
    SCREENGUARD_AGENT_PORT             -> server.port
    SCREENGUARD_LOG_LEVEL              -> logging.level
    PORT                               -> server.port

Example:
    from screenguard_agent.config import load_config, setup_logging

    settings = load_config()
    setup_logging(settings)
    print(settings.timing.escalation_delay_sec)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class AgentConfig(BaseModel):
    """Agent identification configuration."""

    name: str = Field(default="screenguard-agent", description="Agent name")
    version: str = Field(default="v0.1.0", description="Protocol version")


class ThrottleConfig(BaseModel):
    """Observation rate limiting between the sensor and the state machine."""

    min_interval_sec: float = Field(
        default=0.2,
        ge=0,
        description="Minimum time between two forwarded observations (seconds)",
    )
    skip_factor: int = Field(
        default=3,
        ge=1,
        description="Forward at most one of every N raw observations",
    )


class TimingConfig(BaseModel):
    """State machine and duration tracker timing."""

    escalation_delay_sec: float = Field(
        default=2.0,
        gt=0,
        description="Time in WARNING before escalating to ALERT (seconds)",
    )
    zero_tolerance: int = Field(
        default=10,
        ge=1,
        description="Consecutive zero-face observations before entering ERROR",
    )
    persistent_threshold_sec: float = Field(
        default=60.0,
        gt=0,
        description="ALERT dwell time before the threat is considered persistent",
    )
    persistence_poll_sec: float = Field(
        default=1.0,
        gt=0,
        description="Polling interval of the ALERT duration check (seconds)",
    )


class NotificationConfig(BaseModel):
    """User-facing notification dispatch configuration."""

    enabled: bool = Field(default=True, description="Dispatch notifications at all")
    cooldown_sec: float = Field(
        default=5.0,
        ge=0,
        description="Minimum time between two notifications (seconds)",
    )
    escalation_bypasses_cooldown: bool = Field(
        default=True,
        description="Notify WARNING -> ALERT escalation even inside the cooldown",
    )
    notify_persistent: bool = Field(
        default=True,
        description="Send a critical notification when a threat becomes persistent",
    )
    background_delivery: bool = Field(
        default=True,
        description="Invoke the notifier on a background thread, off the decision path",
    )


class SensorConfig(BaseModel):
    """External face-count sensor connection configuration."""

    url: Optional[str] = Field(
        default=None,
        description="WebSocket URL of the face-count sensor (None = disabled)",
    )
    reconnect_backoff_ms: int = Field(
        default=500,
        ge=100,
        description="Backoff in milliseconds between reconnect attempts",
    )
    max_reconnect_attempts: int = Field(
        default=0,
        ge=0,
        description="Maximum reconnection attempts (0 = unlimited)",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")
    status_push_interval_sec: float = Field(
        default=1.0,
        gt=0,
        description="Interval between status pushes on /ws/status",
    )
    event_history_size: int = Field(
        default=100,
        ge=1,
        description="Number of recent transition events kept for /events",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for ScreenGuardAgent.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    agent: AgentConfig = Field(default_factory=AgentConfig)
    throttle: ThrottleConfig = Field(default_factory=ThrottleConfig)
    timing: TimingConfig = Field(default_factory=TimingConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    sensor: SensorConfig = Field(default_factory=SensorConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Timing
    if env_delay := os.environ.get("SCREENGUARD_ESCALATION_DELAY"):
        config_data.setdefault("timing", {})["escalation_delay_sec"] = float(env_delay)
    if env_zeros := os.environ.get("SCREENGUARD_ZERO_TOLERANCE"):
        config_data.setdefault("timing", {})["zero_tolerance"] = int(env_zeros)
    if env_persist := os.environ.get("SCREENGUARD_PERSISTENT_THRESHOLD"):
        config_data.setdefault("timing", {})["persistent_threshold_sec"] = float(env_persist)

    # Throttle
    if env_interval := os.environ.get("SCREENGUARD_MIN_INTERVAL_MS"):
        config_data.setdefault("throttle", {})["min_interval_sec"] = int(env_interval) / 1000.0
    if env_skip := os.environ.get("SCREENGUARD_SKIP_FACTOR"):
        config_data.setdefault("throttle", {})["skip_factor"] = int(env_skip)

    # Notifications
    if env_cooldown := os.environ.get("SCREENGUARD_NOTIFICATION_COOLDOWN"):
        config_data.setdefault("notifications", {})["cooldown_sec"] = float(env_cooldown)
    if env_enabled := os.environ.get("SCREENGUARD_NOTIFICATIONS_ENABLED"):
        config_data.setdefault("notifications", {})["enabled"] = _env_flag(env_enabled)

    # Sensor
    if env_url := os.environ.get("SCREENGUARD_SENSOR_URL"):
        config_data.setdefault("sensor", {})["url"] = env_url

    # Server settings (PORT takes precedence for container platforms)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("SCREENGUARD_AGENT_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("SCREENGUARD_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
