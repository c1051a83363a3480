"""Field-wise merge of several power backends."""

from __future__ import annotations

import time

from procwatt.errors import SourceUnavailableError
from procwatt.models.power_models import PowerSample, PowerSourceKind
from procwatt.sources.base import PowerSampleSource
from procwatt.utils.logger import Logger


class CompositePowerSource(PowerSampleSource):
    """Combines backends so package and system power can come from different places.

    For each field the first backend (in construction order) that reports a
    value wins. A failing backend only blanks the fields it would have
    provided; the read fails only when no backend produced anything.
    """

    def __init__(self, sources: list[PowerSampleSource]) -> None:
        if not sources:
            raise ValueError("CompositePowerSource needs at least one source")
        self._sources = list(sources)
        self._logger = Logger.get("sources.composite")

    @property
    def name(self) -> str:
        return "+".join(source.name for source in self._sources)

    @property
    def kind(self) -> PowerSourceKind:
        return PowerSourceKind.COMPOSITE

    @property
    def sources(self) -> list[PowerSampleSource]:
        """Underlying backends in priority order."""
        return list(self._sources)

    def open(self) -> None:
        """Open every backend; close the already-opened ones on failure."""
        opened: list[PowerSampleSource] = []
        try:
            for source in self._sources:
                source.open()
                opened.append(source)
        except SourceUnavailableError:
            for source in opened:
                source.close()
            raise
        super().open()

    def close(self) -> None:
        """Close every backend."""
        for source in self._sources:
            source.close()
        super().close()

    def check_permissions(self) -> bool:
        """True if every backend has the permissions it needs."""
        return all(source.check_permissions() for source in self._sources)

    def read(self) -> PowerSample:
        """Read every backend and merge the results.

        Raises:
            SourceUnavailableError: If no backend produced a value.
        """
        package_mw: float | None = None
        system_mw: float | None = None
        errors: list[str] = []

        for source in self._sources:
            try:
                sample = source.read()
            except SourceUnavailableError as e:
                errors.append(str(e))
                continue

            if package_mw is None:
                package_mw = sample.package_power_mw
            if system_mw is None:
                system_mw = sample.system_power_mw

        if errors:
            self._logger.debug(f"Partial power read: {'; '.join(errors)}")

        if package_mw is None and system_mw is None:
            if errors:
                raise SourceUnavailableError(self.name, "; ".join(errors))
            return PowerSample(timestamp=time.time())

        return PowerSample(
            timestamp=time.time(),
            package_power_mw=package_mw,
            system_power_mw=system_mw,
        )
