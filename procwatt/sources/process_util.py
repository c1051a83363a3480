"""Per-process CPU utilization from psutil."""

from __future__ import annotations

import psutil

from procwatt.errors import SourceUnavailableError
from procwatt.models.power_models import UtilizationSample
from procwatt.sources.base import UtilizationSampleSource
from procwatt.utils.logger import Logger

# Pseudo-processes that account for idle time rather than work
IDLE_PROCESS_NAMES = frozenset({"System Idle Process", "Idle", "idle"})


class PsutilUtilizationSource(UtilizationSampleSource):
    """Utilization source built on ``psutil.process_iter``.

    psutil reports each process's CPU percent relative to the previous call
    for the same process, so open() primes the counters and the first read
    covers the interval since then. Instances sharing a name are merged, and
    the total is the sum over all non-idle processes.
    """

    ATTRS = ["pid", "name", "cpu_percent"]

    def __init__(self) -> None:
        """Initialize the psutil utilization source."""
        self._logger = Logger.get("sources.psutil")

    @property
    def name(self) -> str:
        """Return the name of the utilization source."""
        return "psutil"

    def open(self) -> None:
        """Prime psutil's per-process CPU counters."""
        try:
            self._collect()
        except psutil.Error as e:
            raise SourceUnavailableError(self.name, str(e)) from e
        super().open()

    def read(self) -> UtilizationSample:
        """Collect utilization for all visible processes.

        Raises:
            SourceUnavailableError: If the source is not open or process
                enumeration failed.
        """
        if not self._opened:
            raise SourceUnavailableError(self.name, "source is not open")

        try:
            instances = self._collect()
        except psutil.Error as e:
            raise SourceUnavailableError(self.name, str(e)) from e

        return UtilizationSample.from_instances(instances)

    def _collect(self) -> list[tuple[str, float]]:
        """Return (name, cpu_percent) for each non-idle process."""
        instances: list[tuple[str, float]] = []
        skipped = 0

        for proc in psutil.process_iter(self.ATTRS):
            try:
                info = proc.info
                pid = info.get("pid") or 0
                name = info.get("name") or f"pid_{pid}"

                if pid == 0 or name in IDLE_PROCESS_NAMES:
                    continue

                cpu_percent = info.get("cpu_percent") or 0.0
                instances.append((name, float(cpu_percent)))
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                skipped += 1
                continue

        if skipped:
            self._logger.debug(f"Skipped {skipped} vanished or inaccessible processes")

        return instances
