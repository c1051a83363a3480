"""CSV export of per-tick energy increments."""

from __future__ import annotations

import csv
from datetime import datetime
from pathlib import Path
from typing import TextIO

from procwatt.models.energy_models import TickSummary
from procwatt.sinks.base import TickSink

CSV_COLUMNS = [
    "timestamp",
    "tick",
    "elapsed_seconds",
    "process",
    "utilization_percent",
    "cpu_power_mw",
    "cpu_energy_mj",
    "system_power_mw",
    "system_energy_mj",
    "degraded",
    "reason",
]


def _fmt(value: float | None, digits: int = 3) -> str:
    if value is None:
        return ""
    return f"{value:.{digits}f}"


class CsvTickSink(TickSink):
    """Append one row per attributed increment, and one per degraded tick.

    Parameters
    ----------
    path : str | Path
        Output file. Overwritten when the sink is opened.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._file: TextIO | None = open(self.path, "w", newline="")
        self._writer = csv.writer(self._file)
        self._writer.writerow(CSV_COLUMNS)
        self._rows = 0

    @property
    def rows_written(self) -> int:
        """Data rows written (header excluded)."""
        return self._rows

    @property
    def closed(self) -> bool:
        return self._file is None

    def write_tick(self, summary: TickSummary) -> None:
        """Write rows for a tick.

        Raises:
            ValueError: If the sink has been closed.
        """
        if self._file is None:
            raise ValueError("write to closed CsvTickSink")

        timestamp = datetime.fromtimestamp(summary.timestamp).isoformat()

        if summary.degraded:
            self._writer.writerow(
                [
                    timestamp,
                    summary.tick,
                    _fmt(summary.elapsed_seconds, 4),
                    "",
                    "",
                    "",
                    "",
                    "",
                    "",
                    "true",
                    "; ".join(summary.reasons),
                ]
            )
            self._rows += 1
            return

        for inc in summary.increments:
            self._writer.writerow(
                [
                    timestamp,
                    summary.tick,
                    _fmt(summary.elapsed_seconds, 4),
                    inc.identity,
                    _fmt(inc.utilization_percent, 2),
                    _fmt(inc.cpu_power_mw),
                    _fmt(inc.cpu_energy_mj),
                    _fmt(inc.system_power_mw),
                    _fmt(inc.system_energy_mj) if inc.system_power_mw is not None else "",
                    "false",
                    "",
                ]
            )
            self._rows += 1

    def flush(self) -> None:
        if self._file is not None:
            self._file.flush()

    def close(self) -> None:
        if self._file is not None:
            self._file.flush()
            self._file.close()
            self._file = None
