"""Mutable per-process energy record owned by the attribution engine."""

from __future__ import annotations

from procwatt.core.accumulator import EnergyAccumulator
from procwatt.core.ring_buffer import RingBuffer
from procwatt.models.energy_models import ProcessEnergyView

DEFAULT_HISTORY_CAPACITY = 100


class ProcessEnergyRecord:
    """Accumulated statistics for one process name.

    Created the first tick a name is seen with utilization > 0 and kept
    (frozen) after the process exits. Only the engine mutates records, and
    only inside the store's write section; readers get ``view()`` copies.
    """

    __slots__ = (
        "identity",
        "last_utilization_percent",
        "last_power_mw",
        "last_system_power_mw",
        "first_seen",
        "last_seen",
        "tick_count",
        "power_history",
        "_cpu_energy",
        "_system_energy",
    )

    def __init__(
        self,
        identity: str,
        created_at: float,
        history_capacity: int = DEFAULT_HISTORY_CAPACITY,
    ) -> None:
        self.identity = identity
        self.last_utilization_percent = 0.0
        self.last_power_mw: float | None = None
        self.last_system_power_mw: float | None = None
        self.first_seen = created_at
        self.last_seen = created_at
        self.tick_count = 0
        self.power_history: RingBuffer[float] = RingBuffer(history_capacity)
        self._cpu_energy = EnergyAccumulator()
        self._system_energy = EnergyAccumulator()

    @property
    def cpu_energy_mj(self) -> float:
        """Cumulative package energy in millijoules."""
        return self._cpu_energy.value

    @property
    def system_energy_mj(self) -> float:
        """Cumulative system energy in millijoules."""
        return self._system_energy.value

    def add_increment(
        self,
        *,
        timestamp: float,
        utilization_percent: float,
        cpu_power_mw: float | None,
        cpu_energy_mj: float,
        system_power_mw: float | None,
        system_energy_mj: float,
    ) -> None:
        """Fold one tick's attribution into the record.

        Last-seen fields are overwritten, so a tick without package power
        leaves last_power_mw as None. The package power share is pushed onto
        the history only when package power was available this tick.

        Raises:
            ValueError: If an energy increment is negative or not finite.
        """
        self._cpu_energy.add(cpu_energy_mj)
        if system_power_mw is not None:
            self._system_energy.add(system_energy_mj)

        self.last_utilization_percent = utilization_percent
        self.last_power_mw = cpu_power_mw
        if cpu_power_mw is not None:
            self.power_history.append(cpu_power_mw)
        self.last_system_power_mw = system_power_mw
        self.last_seen = timestamp
        self.tick_count += 1

    def view(self) -> ProcessEnergyView:
        """Return an immutable copy for readers."""
        return ProcessEnergyView(
            identity=self.identity,
            cpu_energy_mj=self.cpu_energy_mj,
            system_energy_mj=self.system_energy_mj,
            last_utilization_percent=self.last_utilization_percent,
            last_power_mw=self.last_power_mw,
            last_system_power_mw=self.last_system_power_mw,
            power_history=self.power_history.to_tuple(),
            first_seen=self.first_seen,
            last_seen=self.last_seen,
            tick_count=self.tick_count,
        )

    def __repr__(self) -> str:
        return (
            f"ProcessEnergyRecord(identity={self.identity!r}, "
            f"cpu_energy_mj={self.cpu_energy_mj:.3f})"
        )
