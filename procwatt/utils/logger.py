"""Centralized logging for procwatt.

Simple, explicit logging that requires configuration before use. The CLI
configures it from ``--log-level`` and ``--log-file``; the curses dashboard
sends it to a file (or nowhere) so records never land on the screen.

Usage:
    from procwatt.utils.logger import Logger

    # Configure once at startup (required before any logging)
    Logger.configure(level="INFO", output="stderr")

    # Get a logger anywhere in the codebase
    log = Logger.get("engine")
    log.info("Tick loop started")

    # Flush and close sinks before exit
    Logger.shutdown()
"""

import logging
import sys
from enum import Enum
from pathlib import Path
from typing import TextIO

from procwatt.errors import ConfigurationInvalidError


class LogLevel(Enum):
    """Log levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def parse(cls, value: "str | LogLevel") -> "LogLevel":
        """Accept a level name in any case.

        Raises:
            ConfigurationInvalidError: If the name is not a known level.
        """
        if isinstance(value, LogLevel):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            names = ", ".join(level.value for level in cls)
            raise ConfigurationInvalidError(
                f"Log level must be one of {names}, got {value!r}"
            ) from None

    def to_logging_level(self) -> int:
        """Convert to Python logging level."""
        level: int = getattr(logging, self.value)
        return level


class LoggerNotConfiguredError(Exception):
    """Raised when trying to use Logger before calling Logger.configure()."""

    def __init__(self) -> None:
        super().__init__(
            "Logger not configured. Call Logger.configure() at application startup."
        )


class Logger:
    """Centralized logging for procwatt.

    Must be configured once before use. Attempting to log before configuration
    raises LoggerNotConfiguredError.

    Example:
        >>> Logger.configure(level="INFO", output="procwatt.log")
        >>> log = Logger.get("sources.rapl")
        >>> log.info("RAPL domains: package-0, psys")
    """

    _configured: bool = False
    _root_name: str = "procwatt"

    @classmethod
    def configure(
        cls,
        level: str | LogLevel = "INFO",
        output: str | Path | TextIO | None = None,
        timestamps: bool = True,
    ) -> None:
        """Configure the logger. Must be called before any logging.

        Reconfiguring replaces the previous handler, so commands can narrow
        the output chosen by the CLI group.

        Args:
            level: Level name in any case, or a LogLevel.
            output: Where to send logs:
                - None: stdout (default)
                - "stderr": sys.stderr
                - str/Path: File path (appended to)
                - TextIO: Any file-like object
            timestamps: Include timestamps in messages (default True).

        Raises:
            ConfigurationInvalidError: If the level is unknown or the log file
                cannot be opened.
        """
        level = LogLevel.parse(level)

        new_handler: logging.Handler
        if output is None:
            new_handler = logging.StreamHandler(sys.stdout)
        elif output == "stderr":
            new_handler = logging.StreamHandler(sys.stderr)
        elif isinstance(output, str | Path):
            try:
                new_handler = logging.FileHandler(str(output), encoding="utf-8")
            except OSError as e:
                raise ConfigurationInvalidError(
                    f"Cannot open log file {output}: {e}"
                ) from e
        elif hasattr(output, "write"):
            new_handler = logging.StreamHandler(output)
        else:
            raise ValueError(f"Invalid output: {type(output)}")

        logger = logging.getLogger(cls._root_name)
        logger.setLevel(level.to_logging_level())

        for existing_handler in logger.handlers[:]:
            logger.removeHandler(existing_handler)
            existing_handler.close()

        new_handler.setLevel(level.to_logging_level())

        parts = ["%(asctime)s"] if timestamps else []
        parts += ["%(levelname)s", "[%(name)s]", "%(message)s"]
        new_handler.setFormatter(logging.Formatter(" ".join(parts)))
        logger.addHandler(new_handler)
        logger.propagate = False

        cls._configured = True

    @classmethod
    def get(cls, name: str | None = None) -> logging.Logger:
        """Get a logger instance.

        Args:
            name: Logger name (appended to "procwatt."). If None, returns root logger.

        Raises:
            LoggerNotConfiguredError: If configure() hasn't been called.
        """
        if not cls._configured:
            raise LoggerNotConfiguredError()

        if name:
            return logging.getLogger(f"{cls._root_name}.{name}")
        return logging.getLogger(cls._root_name)

    @classmethod
    def set_level(cls, level: str | LogLevel) -> None:
        """Change log level without reconfiguring.

        Raises:
            LoggerNotConfiguredError: If configure() hasn't been called.
            ConfigurationInvalidError: If the level is unknown.
        """
        if not cls._configured:
            raise LoggerNotConfiguredError()

        numeric = LogLevel.parse(level).to_logging_level()
        logger = logging.getLogger(cls._root_name)
        logger.setLevel(numeric)
        for handler in logger.handlers:
            handler.setLevel(numeric)

    @classmethod
    def is_configured(cls) -> bool:
        """Check if logger has been configured."""
        return cls._configured

    @classmethod
    def flush(cls) -> None:
        """Flush every handler attached to the procwatt root logger."""
        for handler in logging.getLogger(cls._root_name).handlers:
            handler.flush()

    @classmethod
    def shutdown(cls) -> None:
        """Flush and close all handlers.

        Called once on quit so file sinks are complete before the process
        exits. The logger must be configured again before further use.
        """
        logger = logging.getLogger(cls._root_name)
        for handler in logger.handlers[:]:
            handler.flush()
            logger.removeHandler(handler)
            handler.close()
        cls._configured = False
