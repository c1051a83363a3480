"""procwatt utilities - logging, environment lookup and display formatting."""

from procwatt.utils.env import EnvVarTypeError, env_overrides, get_env
from procwatt.utils.logger import (
    Logger,
    LoggerNotConfiguredError,
    LogLevel,
)

__all__ = [
    # Env
    "EnvVarTypeError",
    "env_overrides",
    "get_env",
    # Logger
    "LogLevel",
    "Logger",
    "LoggerNotConfiguredError",
]
