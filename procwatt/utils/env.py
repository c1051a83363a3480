"""Environment variable lookup for procwatt settings.

Every ``Settings`` field can be supplied as ``PROCWATT_<FIELD>``. Values are
collected as strings and validated by the settings model; ``get_env`` with
``as_type`` covers the few switches read before settings exist.

Usage:
    from procwatt.utils.env import env_overrides, get_env

    level = get_env("PROCWATT_LOG_LEVEL", default="INFO")
    overrides = env_overrides(["interval_seconds", "csv_path"])
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from typing import Any

from procwatt.errors import ConfigurationInvalidError

ENV_PREFIX = "PROCWATT_"

_FALSE_VALUES = ("false", "0", "no", "off")


class EnvVarTypeError(ConfigurationInvalidError):
    """Raised when an environment variable cannot be converted to the expected type."""

    def __init__(self, name: str, value: str, expected_type: type) -> None:
        self.name = name
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Cannot convert {name}='{value}' to {expected_type.__name__}")


def _coerce_type(name: str, value: str, as_type: type) -> Any:
    """Convert a string value to the specified type.

    Raises:
        EnvVarTypeError: If conversion fails.
    """
    try:
        if as_type is bool:
            return value.strip().lower() not in _FALSE_VALUES
        return as_type(value)
    except (ValueError, TypeError) as e:
        raise EnvVarTypeError(name, value, as_type) from e


def _log_access(name: str, value: str | None) -> None:
    """Log environment variable access if the logger is configured."""
    from procwatt.utils.logger import Logger

    if Logger.is_configured():
        Logger.get("env").debug(f"ENV GET {name}={value}")


def env_name(field: str, prefix: str = ENV_PREFIX) -> str:
    """Environment variable name for a settings field."""
    return f"{prefix}{field.upper()}"


def get_env(
    name: str,
    *,
    default: Any = None,
    as_type: type | None = None,
    log: bool = False,
) -> Any:
    """Get an environment variable with optional type coercion.

    An empty value counts as unset, so ``PROCWATT_CSV_PATH=`` disables an
    option instead of passing an empty path through.

    Args:
        name: Environment variable name.
        default: Value returned when the variable is unset or empty.
        as_type: Type to convert the value to (bool, int, float, str).
        log: If True, log the access at DEBUG level.

    Raises:
        EnvVarTypeError: If as_type is given and conversion fails.
    """
    value = os.environ.get(name)

    if log:
        _log_access(name, value)

    if value is None or value == "":
        return default

    if as_type is not None:
        return _coerce_type(name, value, as_type)

    return value


def env_overrides(fields: Iterable[str], prefix: str = ENV_PREFIX) -> dict[str, str]:
    """Collect ``<prefix><FIELD>`` variables that are set.

    Returns:
        Mapping of field name to raw string value, for fields whose variable
        is set and non-empty.
    """
    values: dict[str, str] = {}
    for field in fields:
        value = get_env(env_name(field, prefix), log=True)
        if value is not None:
            values[field] = value
    return values
