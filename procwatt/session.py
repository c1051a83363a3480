"""MonitorSession context manager that owns one attribution run."""

from __future__ import annotations

from types import TracebackType

from procwatt.config import Settings
from procwatt.core.control import EngineController
from procwatt.core.engine import AttributionEngine, EngineConfig
from procwatt.core.scheduler import TickListener, TickScheduler
from procwatt.core.store import AccumulatedStateStore
from procwatt.errors import SourceUnavailableError, StartupFailureError
from procwatt.models.energy_models import EngineStatus, ProcessEnergyView
from procwatt.sinks.base import TickSink
from procwatt.sinks.csv_sink import CsvTickSink
from procwatt.sources.base import PowerSampleSource, UtilizationSampleSource
from procwatt.sources.factory import create_power_source, create_utilization_source
from procwatt.utils.logger import Logger


class MonitorSession:
    """Build, start, and tear down the sampling pipeline.

    Entering the session opens both sources, starts the tick thread, and
    returns the session. Leaving it stops the thread, flushes and closes the
    diagnostic sink, closes the sources, and flushes the logs, in that order.

    Parameters
    ----------
    settings : Settings
        Validated runtime settings.
    power_source : PowerSampleSource, optional
        Use this source instead of platform discovery.
    utilization_source : UtilizationSampleSource, optional
        Use this source instead of psutil.
    tick_listener : callable, optional
        Called on the tick thread after every tick.

    Examples
    --------
    >>> with MonitorSession(load_settings()) as session:
    ...     session.scheduler.wait(10)
    ...     ranking = session.snapshot()
    """

    def __init__(
        self,
        settings: Settings,
        power_source: PowerSampleSource | None = None,
        utilization_source: UtilizationSampleSource | None = None,
        tick_listener: TickListener | None = None,
    ) -> None:
        self.settings = settings
        self._power_source = power_source
        self._utilization_source = utilization_source
        self._tick_listener = tick_listener
        self._logger = Logger.get("session")

        self.store = AccumulatedStateStore(history_capacity=settings.history_capacity)
        self.config = EngineConfig(interval_seconds=settings.interval_seconds)
        self.engine: AttributionEngine | None = None
        self.scheduler: TickScheduler | None = None
        self.controller: EngineController | None = None

    def __enter__(self) -> MonitorSession:
        """Open sources and start sampling.

        Raises:
            StartupFailureError: If no power source is available or a source
                cannot be opened.
        """
        power = self._power_source or create_power_source(self.settings)
        utilization = self._utilization_source or create_utilization_source()

        try:
            power.open()
        except SourceUnavailableError as e:
            raise StartupFailureError(f"Cannot open power source: {e}") from e

        try:
            utilization.open()
        except SourceUnavailableError as e:
            power.close()
            raise StartupFailureError(f"Cannot open utilization source: {e}") from e

        sink: TickSink | None = None
        if self.settings.csv_path:
            try:
                sink = CsvTickSink(self.settings.csv_path)
            except OSError as e:
                power.close()
                utilization.close()
                raise StartupFailureError(
                    f"Cannot open CSV file {self.settings.csv_path}: {e}"
                ) from e

        self.engine = AttributionEngine(
            power,
            utilization,
            self.store,
            config=self.config,
            read_timeout=self.settings.read_timeout_seconds,
            degraded_warning_threshold=self.settings.degraded_warning_threshold,
            sink=sink,
        )
        self.scheduler = TickScheduler(self.engine, tick_listener=self._tick_listener)
        self.controller = EngineController(self.scheduler.submit)

        self._logger.info(
            f"Session started: power={power.name}, utilization={utilization.name}, "
            f"interval={self.config.interval_seconds}s"
        )
        self.scheduler.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Stop sampling and release every resource."""
        if self.scheduler is not None:
            self.scheduler.stop()
        if self.engine is not None:
            status = self.engine.status()
            self._logger.info(
                f"Session ended after {status.tick_count} ticks "
                f"({status.degraded_ticks} degraded), "
                f"{status.record_count} processes"
            )
        Logger.flush()

    def snapshot(self) -> list[ProcessEnergyView]:
        """Ranked copy of all records."""
        return self.store.snapshot()

    def status(self) -> EngineStatus:
        """Engine counters.

        Raises:
            RuntimeError: If the session has not been entered.
        """
        if self.engine is None:
            raise RuntimeError("MonitorSession has not been started")
        return self.engine.status()
