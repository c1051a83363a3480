"""Accumulated per-process energy state shared between sampler and readers."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager

from procwatt.core.records import DEFAULT_HISTORY_CAPACITY, ProcessEnergyRecord
from procwatt.errors import RecordNotFoundError
from procwatt.models.energy_models import ProcessEnergyView


class StoreWriter:
    """Mutation handle valid only inside ``AccumulatedStateStore.writer()``."""

    def __init__(self, store: AccumulatedStateStore) -> None:
        self._store = store
        self._active = True

    def record_for(self, identity: str, timestamp: float) -> ProcessEnergyRecord:
        """Look up the record for a process name, creating it on first sight.

        Raises:
            RuntimeError: If used after the write section has ended.
        """
        if not self._active:
            raise RuntimeError("StoreWriter used outside of its write section")

        record = self._store._records.get(identity)
        if record is None:
            record = ProcessEnergyRecord(
                identity,
                created_at=timestamp,
                history_capacity=self._store.history_capacity,
            )
            self._store._records[identity] = record
        return record

    def _close(self) -> None:
        self._active = False


class AccumulatedStateStore:
    """Mapping of process name to accumulated energy record.

    A single writer (the attribution engine) mutates records through
    ``writer()``; any number of readers take ``snapshot()`` or ``get()``
    copies. One coarse lock guards the whole map and is held only for the
    short mutation or copy, never across a source read.
    """

    def __init__(self, history_capacity: int = DEFAULT_HISTORY_CAPACITY) -> None:
        """Create an empty store.

        Args:
            history_capacity: Power history length kept per record.
        """
        if history_capacity < 1:
            raise ValueError("history_capacity must be at least 1")

        self.history_capacity = history_capacity
        self._records: dict[str, ProcessEnergyRecord] = {}
        self._lock = threading.Lock()
        self._version = 0

    @contextmanager
    def writer(self) -> Iterator[StoreWriter]:
        """Hold the store lock and yield a mutation handle."""
        with self._lock:
            handle = StoreWriter(self)
            try:
                yield handle
            finally:
                handle._close()
                self._version += 1

    @property
    def version(self) -> int:
        """Number of completed write sections."""
        with self._lock:
            return self._version

    def snapshot(self) -> list[ProcessEnergyView]:
        """Return all records ranked by cumulative CPU energy.

        Ordering is descending by ``cpu_energy_mj`` with ties broken by name,
        so repeated calls without an intervening tick agree.
        """
        with self._lock:
            views = [record.view() for record in self._records.values()]
        views.sort(key=lambda v: (-v.cpu_energy_mj, v.identity))
        return views

    def ranked(self, limit: int) -> list[ProcessEnergyView]:
        """Return the top ``limit`` entries of ``snapshot()``."""
        return self.snapshot()[: max(limit, 0)]

    def get(self, identity: str) -> ProcessEnergyView:
        """Return the record for a process name.

        Raises:
            RecordNotFoundError: If the name has never been attributed energy.
        """
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                raise RecordNotFoundError(identity)
            return record.view()

    def totals(self) -> tuple[float, float]:
        """Return session-wide (cpu_energy_mj, system_energy_mj)."""
        with self._lock:
            cpu = sum(r.cpu_energy_mj for r in self._records.values())
            system = sum(r.system_energy_mj for r in self._records.values())
        return cpu, system

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __contains__(self, identity: object) -> bool:
        with self._lock:
            return identity in self._records
