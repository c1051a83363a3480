"""Error taxonomy for procwatt.

Three categories matter to callers:

- ``SourceUnavailableError``: a sampling backend cannot answer right now.
  Recoverable; the engine turns it into a degraded tick and retries on the
  next one.
- ``ConfigurationInvalidError``: the operator asked for something out of
  range (interval, focus rank, config value). Rejected at the command
  boundary; engine state is unchanged.
- ``StartupFailureError``: privileges or backend initialization failed before
  the tick loop started. The only category that terminates the program.
"""

from __future__ import annotations


class ProcwattError(Exception):
    """Base exception for procwatt errors."""

    pass


class SourceUnavailableError(ProcwattError):
    """Raised when a sample source cannot produce a reading."""

    def __init__(self, source: str, reason: str) -> None:
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")


class ConfigurationInvalidError(ProcwattError):
    """Raised when an interval, focus selection, or setting is rejected."""

    pass


class StartupFailureError(ProcwattError):
    """Raised when monitoring cannot start (missing backend or privilege)."""

    pass


class RecordNotFoundError(ProcwattError, KeyError):
    """Raised when no energy record exists for a process identity."""

    def __init__(self, identity: str) -> None:
        self.identity = identity
        super().__init__(f"No energy record for process: {identity}")

    def __str__(self) -> str:
        return f"No energy record for process: {self.identity}"
