"""Non-interactive text mode: one line per tick."""

from __future__ import annotations

import json
import time
from datetime import datetime

from procwatt.config import Settings
from procwatt.models.energy_models import TickSummary
from procwatt.models.report_models import SessionReport
from procwatt.session import MonitorSession
from procwatt.sources.base import PowerSampleSource, UtilizationSampleSource
from procwatt.utils.formatting import (
    format_duration,
    format_energy_mj,
    format_percent,
    format_power_mw,
)

POLL_SECONDS = 0.2


def run_top(
    settings: Settings,
    duration_seconds: float | None = None,
    top_n_processes: int = 3,
    output_format: str = "text",
    output_file: str | None = None,
    power_source: PowerSampleSource | None = None,
    utilization_source: UtilizationSampleSource | None = None,
) -> SessionReport:
    """Sample until interrupted (or for a fixed duration) and print each tick.

    Args:
        settings: Validated runtime settings.
        duration_seconds: Stop after this many seconds (None = until interrupted).
        top_n_processes: Number of processes shown on each line.
        output_format: "text" for compact lines, "json" for one object per tick.
        output_file: Optional path for the final JSON session report.
        power_source: Override platform power discovery.
        utilization_source: Override the psutil utilization source.

    Returns:
        The final SessionReport.

    Raises:
        StartupFailureError: If sampling cannot start.
    """
    if duration_seconds is not None and duration_seconds <= 0:
        raise ValueError("duration_seconds must be greater than zero")

    def on_tick(summary: TickSummary) -> None:
        if output_format == "json":
            print(json.dumps(summary.to_dict()))
        else:
            _display_tick_compact(summary, session, top_n_processes)

    session = MonitorSession(
        settings,
        power_source=power_source,
        utilization_source=utilization_source,
        tick_listener=on_tick,
    )

    start_time = time.monotonic()
    with session:
        assert session.scheduler is not None
        print(
            f"Sampling every {session.config.interval_seconds}s. "
            "Press Ctrl+C to stop."
        )
        print("-" * 60)
        try:
            while not session.scheduler.wait(POLL_SECONDS):
                if (
                    duration_seconds is not None
                    and time.monotonic() - start_time >= duration_seconds
                ):
                    break
        except KeyboardInterrupt:
            print("\nStopping...")

    report = SessionReport.build(session.status(), session.snapshot())
    _display_summary(report, top_n_processes)

    if output_file:
        _write_report(report, output_file)
        print(f"\nReport written to: {output_file}")

    return report


def _display_tick_compact(
    summary: TickSummary, session: MonitorSession, top_n: int
) -> None:
    """Print a single line for one tick."""
    timestamp = datetime.fromtimestamp(summary.timestamp).strftime("%H:%M:%S")
    parts = [timestamp, f"#{summary.tick}"]

    if summary.degraded:
        parts.append("DEGRADED")
        parts.append("; ".join(summary.reasons))
        print(" | ".join(parts))
        return

    parts.append(f"Pkg: {format_power_mw(summary.package_power_mw)}")
    if summary.system_power_mw is not None:
        parts.append(f"Sys: {format_power_mw(summary.system_power_mw)}")
    parts.append(f"CPU: {format_percent(summary.total_cpu_percent)}")

    top = session.store.ranked(top_n)
    if top:
        parts.append(
            "Top: "
            + ", ".join(
                f"{view.identity[:15]}({format_energy_mj(view.cpu_energy_mj)})"
                for view in top
            )
        )

    print(" | ".join(parts))


def _display_summary(report: SessionReport, top_n: int) -> None:
    print()
    print("=" * 60)
    print(
        f"Runtime {format_duration(report.runtime_seconds)}  "
        f"Ticks {report.tick_count} ({report.degraded_ticks} degraded)"
    )
    print(
        f"CPU energy {format_energy_mj(report.cpu_energy_mj)}  "
        f"System energy {format_energy_mj(report.system_energy_mj)}"
    )
    if report.processes:
        print(f"\nTop {top_n} processes by energy:")
        print(f"{'#':>3} {'Name':<25} {'CPU energy':>12} {'Avg power':>12}")
        for entry in report.processes[:top_n]:
            print(
                f"{entry.rank:>3} {entry.name[:24]:<25} "
                f"{format_energy_mj(entry.cpu_energy_mj):>12} "
                f"{format_power_mw(entry.average_power_mw):>12}"
            )


def _write_report(report: SessionReport, filename: str) -> None:
    """Write the session report to a JSON file."""
    with open(filename, "w") as f:
        json.dump(report.model_dump(), f, indent=2)
