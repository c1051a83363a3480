"""Attribution engine: turns power and utilization samples into per-process energy.

Each tick reads one utilization sample and one power sample, splits the
power across processes in proportion to their share of total utilization,
and integrates the shares over the actual elapsed time:

    ratio        = utilization[p] / max(total, sum(utilization))
    power_mw[p]  = package_power_mw * ratio
    energy_mj[p] = power_mw[p] * elapsed_seconds

Neither the OS nor the hardware exposes true per-process power, so the
ratio is re-derived every tick.
"""

from __future__ import annotations

import math
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import replace
from typing import Generic, TypeVar

from procwatt.config import validate_interval
from procwatt.core.store import AccumulatedStateStore
from procwatt.errors import SourceUnavailableError
from procwatt.models.energy_models import EngineStatus, ProcessIncrement, TickSummary
from procwatt.models.power_models import PowerSample, UtilizationSample
from procwatt.sinks.base import TickSink
from procwatt.sources.base import (
    PowerSampleSource,
    SampleSource,
    UtilizationSampleSource,
)
from procwatt.utils.logger import Logger

S = TypeVar("S")

DEFAULT_READ_TIMEOUT_SECONDS = 5.0
DEFAULT_DEGRADED_WARNING_THRESHOLD = 3


def _valid_power(value: float | None) -> float | None:
    if value is None or not math.isfinite(value) or value < 0:
        return None
    return value


def _utilization_problem(sample: UtilizationSample) -> str | None:
    """Reason a utilization sample cannot be attributed, or None if it can."""
    if not math.isfinite(sample.total_percent):
        return f"invalid total utilization {sample.total_percent}"
    invalid = sorted(
        name
        for name, percent in sample.per_process.items()
        if not math.isfinite(percent)
    )
    if invalid:
        return f"invalid utilization for {', '.join(invalid)}"
    return None


class EngineConfig:
    """Operator-adjustable engine settings.

    The foreground writes here (through commands); the tick loop reads.
    Accumulated records are never reachable from this object.
    """

    def __init__(self, interval_seconds: int = 2, focus: str | None = None) -> None:
        self._lock = threading.Lock()
        self._interval_seconds = validate_interval(interval_seconds)
        self._focus = focus

    @property
    def interval_seconds(self) -> int:
        with self._lock:
            return self._interval_seconds

    @property
    def focus(self) -> str | None:
        with self._lock:
            return self._focus

    def set_interval(self, seconds: int) -> int:
        """Set the tick interval.

        Raises:
            ConfigurationInvalidError: If not an integer in 1-60.
        """
        value = validate_interval(seconds)
        with self._lock:
            self._interval_seconds = value
        return value

    def set_focus(self, identity: str | None) -> None:
        """Select the process shown in detail, or clear the selection."""
        with self._lock:
            self._focus = identity


class _TimedReader(Generic[S]):
    """Runs a source's read() on a dedicated worker with a timeout.

    A read that overruns keeps its worker busy; until it finishes, further
    reads are reported unavailable immediately instead of queueing.
    """

    def __init__(
        self, source: SampleSource, read: Callable[[], S], timeout: float
    ) -> None:
        self._source = source
        self._read = read
        self._timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"procwatt-read-{source.name}"
        )
        self._pending: Future[S] | None = None

    def read(self) -> S:
        """Return a sample or raise SourceUnavailableError."""
        name = self._source.name
        if self._pending is not None and not self._pending.done():
            raise SourceUnavailableError(name, "previous read still in progress")

        future = self._executor.submit(self._read)
        self._pending = future
        try:
            return future.result(timeout=self._timeout)
        except FuturesTimeoutError:
            raise SourceUnavailableError(
                name, f"read timed out after {self._timeout:.1f}s"
            ) from None
        except SourceUnavailableError:
            raise
        except Exception as e:
            raise SourceUnavailableError(name, f"{type(e).__name__}: {e}") from e

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)


class AttributionEngine:
    """Samples both sources and folds per-process energy into the store.

    The engine is the store's only writer. ``tick()`` is called by one
    thread at a time (the scheduler); ``status()``, ``config`` and the store's
    read methods may be used concurrently from other threads.
    """

    def __init__(
        self,
        power_source: PowerSampleSource,
        utilization_source: UtilizationSampleSource,
        store: AccumulatedStateStore | None = None,
        *,
        config: EngineConfig | None = None,
        read_timeout: float = DEFAULT_READ_TIMEOUT_SECONDS,
        degraded_warning_threshold: int = DEFAULT_DEGRADED_WARNING_THRESHOLD,
        sink: TickSink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Create an engine.

        Args:
            power_source: Opened (or to-be-opened) power source.
            utilization_source: Opened (or to-be-opened) utilization source.
            store: Store to accumulate into. A new one is created if omitted.
            config: Interval/focus configuration channel.
            read_timeout: Seconds allowed for each source read.
            degraded_warning_threshold: Consecutive degraded ticks that raise
                the warning flag.
            sink: Optional diagnostic sink receiving every tick summary.
            clock: Wall-clock used for timestamps.
        """
        if read_timeout <= 0:
            raise ValueError("read_timeout must be greater than zero")
        if degraded_warning_threshold < 1:
            raise ValueError("degraded_warning_threshold must be at least 1")

        self.power_source = power_source
        self.utilization_source = utilization_source
        self.store = store if store is not None else AccumulatedStateStore()
        self.config = config if config is not None else EngineConfig()
        self._sink = sink
        self._clock = clock
        self._degraded_warning_threshold = degraded_warning_threshold
        self._logger = Logger.get("engine")

        self._power_reader: _TimedReader[PowerSample] = _TimedReader(
            power_source, power_source.read, read_timeout
        )
        self._utilization_reader: _TimedReader[UtilizationSample] = _TimedReader(
            utilization_source, utilization_source.read, read_timeout
        )

        self._status_lock = threading.Lock()
        self._started_at = clock()
        self._last_update = self._started_at
        self._tick_count = 0
        self._degraded_ticks = 0
        self._consecutive_degraded = 0
        self._degraded_warning = False
        self._last_summary: TickSummary | None = None
        self._closed = False

    @property
    def sink(self) -> TickSink | None:
        return self._sink

    @property
    def last_update(self) -> float:
        """Wall-clock time of the most recent tick (degraded or not)."""
        with self._status_lock:
            return self._last_update

    @property
    def degraded_warning(self) -> bool:
        """True while consecutive degraded ticks are at or above the threshold."""
        with self._status_lock:
            return self._degraded_warning

    def tick(self, elapsed_seconds: float) -> TickSummary:
        """Run one sample-attribute-accumulate cycle.

        Args:
            elapsed_seconds: Actual wall-clock seconds since the previous tick.

        Returns:
            TickSummary describing what was attributed.

        Raises:
            ValueError: If elapsed_seconds is not a positive finite number.
            RuntimeError: If the engine has been closed.
        """
        if self._closed:
            raise RuntimeError("tick() called on a closed AttributionEngine")
        if not math.isfinite(elapsed_seconds) or elapsed_seconds <= 0:
            raise ValueError(
                f"elapsed_seconds must be positive and finite, got {elapsed_seconds}"
            )

        # Sampling happens outside the store lock
        reasons: list[str] = []
        utilization: UtilizationSample | None = None
        power: PowerSample | None = None

        try:
            utilization = self._utilization_reader.read()
        except SourceUnavailableError as e:
            reasons.append(str(e))

        try:
            power = self._power_reader.read()
        except SourceUnavailableError as e:
            reasons.append(str(e))

        if utilization is not None:
            problem = _utilization_problem(utilization)
            if problem is not None:
                reasons.append(f"{self.utilization_source.name}: {problem}")
                utilization = None

        if power is not None:
            power = self._usable_power(power, reasons)

        now = self._clock()

        if utilization is None or power is None:
            return self._degraded_tick(
                now, elapsed_seconds, power, utilization, reasons
            )

        increments = self._attribute(utilization, power, elapsed_seconds)

        overflowed = [
            inc.identity
            for inc in increments
            if not (
                math.isfinite(inc.cpu_energy_mj) and math.isfinite(inc.system_energy_mj)
            )
        ]
        if overflowed:
            reasons.append(f"energy increment overflow for {', '.join(overflowed)}")
            return self._degraded_tick(
                now, elapsed_seconds, power, utilization, reasons
            )

        # All increments are finite and non-negative from here on
        if increments:
            with self.store.writer() as writer:
                for inc in increments:
                    record = writer.record_for(inc.identity, now)
                    record.add_increment(
                        timestamp=now,
                        utilization_percent=inc.utilization_percent,
                        cpu_power_mw=inc.cpu_power_mw,
                        cpu_energy_mj=inc.cpu_energy_mj,
                        system_power_mw=inc.system_power_mw,
                        system_energy_mj=inc.system_energy_mj,
                    )

        summary = TickSummary(
            tick=self._next_tick_index(),
            timestamp=now,
            elapsed_seconds=elapsed_seconds,
            package_power_mw=power.package_power_mw,
            system_power_mw=power.system_power_mw,
            total_cpu_percent=utilization.total_percent,
            records_touched=len(increments),
            degraded=False,
            cpu_energy_mj=math.fsum(inc.cpu_energy_mj for inc in increments),
            system_energy_mj=math.fsum(inc.system_energy_mj for inc in increments),
            increments=tuple(increments),
        )
        self._finish_tick(summary)
        return summary

    def _usable_power(
        self, power: PowerSample, reasons: list[str]
    ) -> PowerSample | None:
        """Drop negative or non-finite fields; None if nothing usable remains."""
        package = _valid_power(power.package_power_mw)
        system = _valid_power(power.system_power_mw)
        dropped = (package is None and power.package_power_mw is not None) or (
            system is None and power.system_power_mw is not None
        )

        if package is None and system is None:
            if dropped:
                reasons.append(
                    f"{self.power_source.name}: invalid power reading "
                    f"(package={power.package_power_mw}, "
                    f"system={power.system_power_mw})"
                )
            else:
                reasons.append(f"{self.power_source.name}: no power reading available")
            return None

        if dropped:
            self._logger.debug(
                f"Discarded invalid power field from {self.power_source.name}: "
                f"package={power.package_power_mw}, system={power.system_power_mw}"
            )
            return replace(power, package_power_mw=package, system_power_mw=system)
        return power

    def _degraded_tick(
        self,
        now: float,
        elapsed_seconds: float,
        power: PowerSample | None,
        utilization: UtilizationSample | None,
        reasons: list[str],
    ) -> TickSummary:
        summary = TickSummary(
            tick=self._next_tick_index(),
            timestamp=now,
            elapsed_seconds=elapsed_seconds,
            package_power_mw=power.package_power_mw if power else None,
            system_power_mw=power.system_power_mw if power else None,
            total_cpu_percent=utilization.total_percent if utilization else None,
            records_touched=0,
            degraded=True,
            reasons=tuple(reasons),
        )
        self._finish_tick(summary)
        return summary

    def _attribute(
        self,
        utilization: UtilizationSample,
        power: PowerSample,
        elapsed_seconds: float,
    ) -> list[ProcessIncrement]:
        """Split this tick's power across processes.

        Returns an empty list when total utilization is zero (no data, not
        zero power).
        """
        if utilization.total_percent <= 0:
            return []

        shares = {
            name: percent
            for name, percent in utilization.per_process.items()
            if percent > 0 and math.isfinite(percent)
        }
        if not shares:
            return []

        # Shares must never sum past the total they are divided by
        denominator = max(utilization.total_percent, math.fsum(shares.values()))

        package_mw = power.package_power_mw
        system_mw = power.system_power_mw
        increments: list[ProcessIncrement] = []

        for identity in sorted(shares):
            percent = shares[identity]
            ratio = percent / denominator

            cpu_power = package_mw * ratio if package_mw is not None else None
            system_power = system_mw * ratio if system_mw is not None else None

            increments.append(
                ProcessIncrement(
                    identity=identity,
                    utilization_percent=percent,
                    ratio=ratio,
                    cpu_power_mw=cpu_power,
                    cpu_energy_mj=(
                        cpu_power * elapsed_seconds if cpu_power is not None else 0.0
                    ),
                    system_power_mw=system_power,
                    system_energy_mj=(
                        system_power * elapsed_seconds
                        if system_power is not None
                        else 0.0
                    ),
                )
            )

        return increments

    def _next_tick_index(self) -> int:
        with self._status_lock:
            return self._tick_count + 1

    def _finish_tick(self, summary: TickSummary) -> None:
        """Update counters, raise or clear the degraded warning, feed the sink."""
        entered_warning = False
        recovered = False

        with self._status_lock:
            self._tick_count = summary.tick
            self._last_update = summary.timestamp
            self._last_summary = summary

            if summary.degraded:
                self._degraded_ticks += 1
                self._consecutive_degraded += 1
                if (
                    not self._degraded_warning
                    and self._consecutive_degraded >= self._degraded_warning_threshold
                ):
                    self._degraded_warning = True
                    entered_warning = True
            else:
                recovered = self._degraded_warning
                self._consecutive_degraded = 0
                self._degraded_warning = False

            consecutive = self._consecutive_degraded

        if summary.degraded:
            self._logger.debug(
                f"Tick {summary.tick} degraded: {'; '.join(summary.reasons)}"
            )
        else:
            self._logger.debug(
                f"Tick {summary.tick}: {summary.records_touched} processes, "
                f"{summary.cpu_energy_mj:.1f} mJ over {summary.elapsed_seconds:.3f}s"
            )

        if entered_warning:
            self._logger.warning(
                f"{consecutive} consecutive degraded ticks: "
                f"{'; '.join(summary.reasons)}"
            )
        elif recovered:
            self._logger.info("Sampling recovered after degraded ticks")

        if self._sink is not None:
            try:
                self._sink.write_tick(summary)
            except (OSError, ValueError) as e:
                self._logger.error(f"Diagnostic sink disabled after write error: {e}")
                self._sink = None

    def status(self) -> EngineStatus:
        """Return aggregate counters for presentation."""
        cpu_total, system_total = self.store.totals()
        record_count = len(self.store)
        now = self._clock()
        with self._status_lock:
            return EngineStatus(
                started_at=self._started_at,
                runtime_seconds=max(0.0, now - self._started_at),
                tick_count=self._tick_count,
                degraded_ticks=self._degraded_ticks,
                consecutive_degraded=self._consecutive_degraded,
                degraded_warning=self._degraded_warning,
                interval_seconds=self.config.interval_seconds,
                focus=self.config.focus,
                record_count=record_count,
                cpu_energy_mj=cpu_total,
                system_energy_mj=system_total,
                last_tick=self._last_summary,
            )

    def close(self) -> None:
        """Stop read workers and flush and close the sink. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._power_reader.shutdown()
        self._utilization_reader.shutdown()
        if self._sink is not None:
            try:
                self._sink.close()
            except OSError as e:
                self._logger.error(f"Failed to close diagnostic sink: {e}")
