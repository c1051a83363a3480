"""Data structures for the samples consumed by the attribution engine."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class PowerDomain(str, Enum):
    """Power measurement domains the engine attributes."""

    PACKAGE = "package"  # CPU die: cores + cache
    SYSTEM = "system"  # Whole device, all components


class PowerSourceKind(str, Enum):
    """Backend that produced a power reading."""

    RAPL = "rapl"  # Intel/AMD Running Average Power Limit
    POWERMETRICS = "powermetrics"  # macOS powermetrics
    METRICS_SERVER = "metrics_server"  # Prometheus-compatible HTTP API
    STATIC = "static"  # Fixed values (simulation, tests)
    COMPOSITE = "composite"  # Field-wise merge of several backends


@dataclass(frozen=True)
class PowerSample:
    """One power reading, each field independently optional.

    Attributes:
        timestamp: Unix timestamp of the reading.
        package_power_mw: CPU package power in milliwatts, None if unavailable.
        system_power_mw: Whole-system power in milliwatts, None if unavailable.
    """

    timestamp: float
    package_power_mw: float | None = None
    system_power_mw: float | None = None

    @property
    def is_empty(self) -> bool:
        """True when neither package nor system power was available."""
        return self.package_power_mw is None and self.system_power_mw is None

    def get(self, domain: PowerDomain) -> float | None:
        """Get power for a specific domain."""
        if domain == PowerDomain.PACKAGE:
            return self.package_power_mw
        return self.system_power_mw

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "timestamp": datetime.fromtimestamp(self.timestamp).isoformat(),
            "package_power_mw": self.package_power_mw,
            "system_power_mw": self.system_power_mw,
        }


@dataclass(frozen=True)
class UtilizationSample:
    """Per-process CPU utilization for one tick.

    Keys are process names: instances of the same executable are merged.
    Values may exceed 100 on multi-core systems.

    Attributes:
        per_process: Process name -> utilization percent.
        total_percent: Aggregate utilization the shares are divided by.
    """

    per_process: dict[str, float] = field(default_factory=dict)
    total_percent: float = 0.0

    @classmethod
    def from_instances(
        cls,
        instances: Iterable[tuple[str, float]],
        total_percent: float | None = None,
    ) -> UtilizationSample:
        """Build a sample from (name, percent) pairs, merging by name.

        Args:
            instances: One pair per OS process; names may repeat.
            total_percent: Aggregate utilization. Defaults to the sum of all
                merged per-process values.

        Returns:
            UtilizationSample with one entry per distinct name.
        """
        merged: dict[str, float] = {}
        for name, percent in instances:
            merged[name] = merged.get(name, 0.0) + max(float(percent), 0.0)

        if total_percent is None:
            total_percent = sum(merged.values())

        return cls(per_process=merged, total_percent=float(total_percent))

    @property
    def attributed_percent(self) -> float:
        """Sum of all per-process utilization values."""
        return sum(self.per_process.values())

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dictionary."""
        return {
            "per_process": {k: round(v, 2) for k, v in self.per_process.items()},
            "total_percent": round(self.total_percent, 2),
        }
