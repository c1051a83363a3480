"""Background thread that drives the attribution engine."""

from __future__ import annotations

import queue
import threading
import time
from collections.abc import Callable

from procwatt.core.control import Command, Quit, SelectFocus, SetInterval
from procwatt.core.engine import AttributionEngine
from procwatt.errors import ConfigurationInvalidError
from procwatt.models.energy_models import TickSummary
from procwatt.utils.logger import Logger

TickListener = Callable[[TickSummary], None]


class TickScheduler:
    """Run ``engine.tick`` every configured interval on a daemon thread.

    Elapsed time is measured between tick starts with a monotonic clock, so a
    slow read or a late wake-up is integrated over the time that really
    passed. Commands are drained before each tick; an interval change or
    quit wakes the thread immediately instead of waiting out the old
    interval. A tick or listener that raises is logged and the loop keeps
    running.
    """

    def __init__(
        self,
        engine: AttributionEngine,
        commands: queue.Queue[Command] | None = None,
        tick_listener: TickListener | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Create a scheduler.

        Args:
            engine: Engine to drive. Its sources must already be open.
            commands: Queue of operator commands to apply between ticks.
            tick_listener: Optional callback invoked after every tick.
            clock: Monotonic clock used to measure elapsed time.
        """
        self.engine = engine
        self.commands: queue.Queue[Command] = (
            commands if commands is not None else queue.Queue()
        )
        self._tick_listener = tick_listener
        self._clock = clock
        self._logger = Logger.get("scheduler")

        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name="procwatt-scheduler", daemon=True
        )
        self._thread_started = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._thread_started and self._thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        """True once a Quit command was applied or stop() was called."""
        return self._stop_event.is_set()

    def start(self) -> None:
        """Start the background tick thread."""
        if self._thread_started or self._stopped:
            return
        self._thread_started = True
        self._thread.start()

    def submit(self, command: Command) -> None:
        """Queue a command and wake the tick thread."""
        self.commands.put(command)
        self._wake_event.set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a stop has been requested.

        Returns:
            True if stop was requested, False on timeout.
        """
        return self._stop_event.wait(timeout)

    def stop(self) -> None:
        """Stop ticking, then release the engine's resources.

        No read starts after this returns. The thread is joined before the
        sink is flushed and the sources are closed. Safe to call repeatedly.
        """
        if self._stopped:
            return
        self._stopped = True
        self._stop_event.set()
        self._wake_event.set()

        if self._thread_started and threading.current_thread() is not self._thread:
            self._thread.join()

        self.engine.close()
        self.engine.power_source.close()
        self.engine.utilization_source.close()
        self._logger.info("Sampling stopped")

    def _run(self) -> None:
        last_start = self._clock()
        self._logger.info(
            f"Sampling every {self.engine.config.interval_seconds}s "
            f"from {self.engine.power_source.name}"
        )

        while not self._stop_event.is_set():
            deadline = last_start + self.engine.config.interval_seconds
            self._sleep_until(deadline)
            self.drain_commands()
            if self._stop_event.is_set():
                break

            # An interval change moves the deadline; go back to waiting
            if self._clock() < last_start + self.engine.config.interval_seconds:
                continue

            start = self._clock()
            elapsed = start - last_start
            last_start = start
            if elapsed <= 0:
                continue

            try:
                summary = self.engine.tick(elapsed)
            except Exception:
                self._logger.exception(f"Tick failed after {elapsed:.3f}s")
                continue

            if self._tick_listener is not None:
                try:
                    self._tick_listener(summary)
                except Exception:
                    self._logger.exception(
                        f"Tick listener failed on tick {summary.tick}"
                    )

    def _sleep_until(self, deadline: float) -> None:
        while not self._stop_event.is_set():
            remaining = deadline - self._clock()
            if remaining <= 0:
                return
            if self._wake_event.wait(remaining):
                self._wake_event.clear()
                return

    def drain_commands(self) -> int:
        """Apply every queued command to the engine configuration.

        Returns:
            Number of commands applied.
        """
        applied = 0
        while True:
            try:
                command = self.commands.get_nowait()
            except queue.Empty:
                return applied

            applied += 1
            if isinstance(command, Quit):
                self._logger.info("Quit requested")
                self._stop_event.set()
            elif isinstance(command, SetInterval):
                try:
                    value = self.engine.config.set_interval(command.seconds)
                except ConfigurationInvalidError as e:
                    self._logger.warning(f"Ignoring interval change: {e}")
                else:
                    self._logger.info(f"Interval set to {value}s")
            elif isinstance(command, SelectFocus):
                self.engine.config.set_focus(command.identity)
