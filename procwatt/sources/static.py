"""Fixed-value sources for simulation runs."""

from __future__ import annotations

import time

from procwatt.errors import SourceUnavailableError
from procwatt.models.power_models import (
    PowerSample,
    PowerSourceKind,
    UtilizationSample,
)
from procwatt.sources.base import PowerSampleSource, UtilizationSampleSource


class StaticPowerSource(PowerSampleSource):
    """Power source that always reports the same figures.

    Used by ``--simulate`` to exercise the full pipeline on machines
    without a readable power backend.
    """

    def __init__(
        self,
        package_power_mw: float | None = None,
        system_power_mw: float | None = None,
    ) -> None:
        self.package_power_mw = package_power_mw
        self.system_power_mw = system_power_mw

    @property
    def name(self) -> str:
        return "static"

    @property
    def kind(self) -> PowerSourceKind:
        return PowerSourceKind.STATIC

    def read(self) -> PowerSample:
        """Return the configured figures.

        Raises:
            SourceUnavailableError: If neither figure is configured.
        """
        if self.package_power_mw is None and self.system_power_mw is None:
            raise SourceUnavailableError(self.name, "no power configured")
        return PowerSample(
            timestamp=time.time(),
            package_power_mw=self.package_power_mw,
            system_power_mw=self.system_power_mw,
        )


class StaticUtilizationSource(UtilizationSampleSource):
    """Utilization source that always reports the same mapping."""

    def __init__(
        self,
        per_process: dict[str, float],
        total_percent: float | None = None,
    ) -> None:
        self.per_process = dict(per_process)
        self.total_percent = total_percent

    @property
    def name(self) -> str:
        return "static"

    def read(self) -> UtilizationSample:
        return UtilizationSample.from_instances(
            self.per_process.items(), total_percent=self.total_percent
        )
