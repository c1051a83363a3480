"""Read-only views of accumulated energy state handed to presentation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ProcessEnergyView:
    """Immutable copy of one process's accumulated statistics.

    Attributes:
        identity: Process name (all instances sharing it are merged).
        cpu_energy_mj: Cumulative energy attributed from package power.
        system_energy_mj: Cumulative energy attributed from system power.
        last_utilization_percent: Utilization in the most recent tick it was seen.
        last_power_mw: Package power share in the most recent tick it was seen,
            None if package power was absent in that tick.
        last_system_power_mw: System power share in that tick, None if absent.
        power_history: Recent package power shares, oldest first.
        first_seen: Unix timestamp of the first attribution.
        last_seen: Unix timestamp of the latest attribution.
        tick_count: Number of ticks that touched this record.
    """

    identity: str
    cpu_energy_mj: float
    system_energy_mj: float
    last_utilization_percent: float
    last_power_mw: float | None
    last_system_power_mw: float | None
    power_history: tuple[float, ...]
    first_seen: float
    last_seen: float
    tick_count: int

    @property
    def average_power_mw(self) -> float:
        """Mean of the retained power history (0.0 when empty)."""
        if not self.power_history:
            return 0.0
        return sum(self.power_history) / len(self.power_history)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "identity": self.identity,
            "cpu_energy_mj": round(self.cpu_energy_mj, 3),
            "system_energy_mj": round(self.system_energy_mj, 3),
            "last_utilization_percent": round(self.last_utilization_percent, 2),
            "last_power_mw": (
                round(self.last_power_mw, 3) if self.last_power_mw is not None else None
            ),
            "last_system_power_mw": (
                round(self.last_system_power_mw, 3)
                if self.last_system_power_mw is not None
                else None
            ),
            "average_power_mw": round(self.average_power_mw, 3),
            "tick_count": self.tick_count,
        }


@dataclass(frozen=True)
class ProcessIncrement:
    """Energy attributed to one process in one tick."""

    identity: str
    utilization_percent: float
    ratio: float
    cpu_power_mw: float | None
    cpu_energy_mj: float
    system_power_mw: float | None
    system_energy_mj: float


@dataclass(frozen=True)
class TickSummary:
    """Outcome of one sample-attribute-accumulate cycle.

    Attributes:
        tick: 1-based tick index within the session.
        timestamp: Unix timestamp at which the tick completed sampling.
        elapsed_seconds: Actual wall-clock time since the previous tick.
        package_power_mw: Package power this tick, None if unavailable.
        system_power_mw: System power this tick, None if unavailable.
        total_cpu_percent: Aggregate utilization, None if unavailable.
        records_touched: Number of process records updated.
        degraded: True if a required sample was unavailable.
        reasons: Why the tick was degraded (empty for healthy ticks).
        cpu_energy_mj: Package energy attributed across all processes.
        system_energy_mj: System energy attributed across all processes.
        increments: Per-process increments applied this tick.
    """

    tick: int
    timestamp: float
    elapsed_seconds: float
    package_power_mw: float | None
    system_power_mw: float | None
    total_cpu_percent: float | None
    records_touched: int
    degraded: bool
    reasons: tuple[str, ...] = ()
    cpu_energy_mj: float = 0.0
    system_energy_mj: float = 0.0
    increments: tuple[ProcessIncrement, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary (increments omitted)."""
        return {
            "tick": self.tick,
            "timestamp": datetime.fromtimestamp(self.timestamp).isoformat(),
            "elapsed_seconds": round(self.elapsed_seconds, 4),
            "package_power_mw": self.package_power_mw,
            "system_power_mw": self.system_power_mw,
            "total_cpu_percent": self.total_cpu_percent,
            "records_touched": self.records_touched,
            "degraded": self.degraded,
            "reasons": list(self.reasons),
            "cpu_energy_mj": round(self.cpu_energy_mj, 3),
            "system_energy_mj": round(self.system_energy_mj, 3),
        }


@dataclass(frozen=True)
class EngineStatus:
    """Aggregate counters exposed alongside the ranked snapshot."""

    started_at: float
    runtime_seconds: float
    tick_count: int
    degraded_ticks: int
    consecutive_degraded: int
    degraded_warning: bool
    interval_seconds: int
    focus: str | None
    record_count: int
    cpu_energy_mj: float
    system_energy_mj: float
    last_tick: TickSummary | None = None
