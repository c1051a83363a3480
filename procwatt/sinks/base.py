"""Base class for diagnostic tick sinks."""

from abc import ABC, abstractmethod

from procwatt.models.energy_models import TickSummary


class TickSink(ABC):
    """Receives every tick summary the engine produces.

    Sinks are optional diagnostics; the engine's accumulated totals never
    depend on them.
    """

    @abstractmethod
    def write_tick(self, summary: TickSummary) -> None:
        """Record one tick."""
        pass

    def flush(self) -> None:
        """Push buffered output to its destination."""
        pass

    def close(self) -> None:
        """Flush and release resources. Safe to call more than once."""
        pass
