"""Runtime settings for procwatt.

Values are layered, lowest to highest precedence:

1. Field defaults
2. YAML config file (``--config``)
3. ``PROCWATT_*`` environment variables
4. CLI options

Config format:
    interval_seconds: 2
    history_capacity: 100
    read_timeout_seconds: 5
    metrics_url: http://localhost:9090
    package_query: sum(node_rapl_package_joules_total)
    system_query: sum(ipmi_power_watts)
    csv_path: procwatt.csv
    log_level: INFO
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from procwatt.errors import ConfigurationInvalidError
from procwatt.utils.env import env_overrides
from procwatt.utils.logger import LogLevel

MIN_INTERVAL_SECONDS = 1
MAX_INTERVAL_SECONDS = 60

LOG_LEVELS = tuple(level.value for level in LogLevel)


class Settings(BaseModel):
    """Validated procwatt settings."""

    model_config = ConfigDict(extra="forbid")

    interval_seconds: int = Field(
        2,
        ge=MIN_INTERVAL_SECONDS,
        le=MAX_INTERVAL_SECONDS,
        description="Nominal seconds between ticks",
    )
    history_capacity: int = Field(
        100, ge=1, description="Power history samples kept per process"
    )
    read_timeout_seconds: float = Field(
        5.0, gt=0, description="Timeout applied to each source read"
    )
    degraded_warning_threshold: int = Field(
        3, ge=1, description="Consecutive degraded ticks before warning"
    )
    metrics_url: str | None = Field(
        None, description="Prometheus-compatible server for power figures"
    )
    package_query: str | None = Field(
        None, description="PromQL expression returning package watts"
    )
    system_query: str | None = Field(
        None, description="PromQL expression returning system watts"
    )
    simulate_power_mw: float | None = Field(
        None, gt=0, description="Use a fixed package power instead of hardware"
    )
    csv_path: str | None = Field(None, description="Diagnostic CSV export path")
    log_level: str = Field("INFO", description="Log level")
    log_file: str | None = Field(None, description="Log file path")

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: Any) -> str:
        level = str(value).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level


def load_config_file(config_path: str | Path) -> dict[str, Any]:
    """Load settings from a YAML file.

    Raises:
        ConfigurationInvalidError: If the file is missing, unparsable, or not
            a mapping.
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationInvalidError(f"Config file not found: {config_path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationInvalidError(f"Error parsing config: {e}") from e

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ConfigurationInvalidError("Config must be a YAML dictionary")

    return config


def settings_from_env() -> dict[str, Any]:
    """Collect ``PROCWATT_<FIELD>`` environment variables that are set."""
    return dict(env_overrides(Settings.model_fields))


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Build Settings from file, environment, and explicit overrides.

    Args:
        config_path: Optional YAML file.
        overrides: Highest-precedence values; None entries are ignored.

    Raises:
        ConfigurationInvalidError: If any value fails validation.
    """
    data: dict[str, Any] = {}
    if config_path is not None:
        data.update(load_config_file(config_path))
    data.update(settings_from_env())
    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigurationInvalidError(f"Invalid settings: {e}") from e


def validate_interval(seconds: Any) -> int:
    """Validate an operator-supplied tick interval.

    Returns:
        The interval as an int.

    Raises:
        ConfigurationInvalidError: If not an integer in 1-60.
    """
    if isinstance(seconds, bool):
        raise ConfigurationInvalidError(f"Interval must be an integer, got {seconds!r}")
    try:
        value = int(seconds)
    except (TypeError, ValueError):
        raise ConfigurationInvalidError(
            f"Interval must be an integer, got {seconds!r}"
        ) from None
    if isinstance(seconds, float) and value != seconds:
        raise ConfigurationInvalidError(f"Interval must be an integer, got {seconds!r}")
    if not MIN_INTERVAL_SECONDS <= value <= MAX_INTERVAL_SECONDS:
        raise ConfigurationInvalidError(
            f"Interval must be between {MIN_INTERVAL_SECONDS} and "
            f"{MAX_INTERVAL_SECONDS} seconds, got {value}"
        )
    return value
