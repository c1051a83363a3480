"""Factory for creating platform-appropriate sample sources."""

from __future__ import annotations

import platform
from dataclasses import dataclass

from procwatt.config import Settings
from procwatt.errors import StartupFailureError
from procwatt.sources.base import PowerSampleSource, UtilizationSampleSource
from procwatt.sources.composite import CompositePowerSource
from procwatt.sources.metrics_server import MetricsServerPowerSource
from procwatt.sources.powermetrics import PowermetricsPowerSource
from procwatt.sources.process_util import PsutilUtilizationSource
from procwatt.sources.rapl import RaplPowerSource
from procwatt.sources.static import StaticPowerSource
from procwatt.utils.logger import Logger


@dataclass
class SourceCandidate:
    """A power backend considered during discovery."""

    name: str
    source: PowerSampleSource | None
    available: bool
    detail: str = ""


def probe_power_sources(
    settings: Settings, system: str | None = None
) -> list[SourceCandidate]:
    """Check every power backend relevant to this platform and settings.

    Automatically considers:
    - Linux: RAPL powercap counters
    - macOS: powermetrics
    - Any platform: a metrics server if ``metrics_url`` is set

    Returns:
        One candidate per backend, available or not, in priority order.
    """
    log = Logger.get("sources.factory")
    system = system or platform.system()
    candidates: list[SourceCandidate] = []

    if system == "Linux":
        rapl = RaplPowerSource()
        if rapl.is_available():
            candidates.append(SourceCandidate("rapl", rapl, True))
        else:
            candidates.append(
                SourceCandidate(
                    "rapl",
                    None,
                    False,
                    "needs read access to /sys/class/powercap/intel-rapl/",
                )
            )
    elif system == "Darwin":
        powermetrics = PowermetricsPowerSource(timeout=settings.read_timeout_seconds)
        if powermetrics.check_permissions():
            candidates.append(SourceCandidate("powermetrics", powermetrics, True))
        else:
            candidates.append(
                SourceCandidate(
                    "powermetrics",
                    None,
                    False,
                    "needs passwordless sudo for powermetrics",
                )
            )

    if settings.metrics_url:
        if not settings.package_query and not settings.system_query:
            candidates.append(
                SourceCandidate(
                    "metrics_server",
                    None,
                    False,
                    "metrics_url set but no package_query or system_query",
                )
            )
        else:
            candidates.append(
                SourceCandidate(
                    "metrics_server",
                    MetricsServerPowerSource(
                        settings.metrics_url,
                        package_query=settings.package_query,
                        system_query=settings.system_query,
                        timeout=settings.read_timeout_seconds,
                    ),
                    True,
                    settings.metrics_url,
                )
            )

    for candidate in candidates:
        state = "available" if candidate.available else "unavailable"
        log.debug(f"Power source {candidate.name}: {state} {candidate.detail}".rstrip())

    return candidates


def create_power_source(
    settings: Settings, system: str | None = None
) -> PowerSampleSource:
    """Create the power source for this platform and settings.

    Returns:
        A single backend, or a CompositePowerSource when several apply.

    Raises:
        StartupFailureError: If no power backend is usable.
    """
    if settings.simulate_power_mw is not None:
        return StaticPowerSource(package_power_mw=settings.simulate_power_mw)

    candidates = probe_power_sources(settings, system=system)
    sources = [c.source for c in candidates if c.available and c.source is not None]

    if not sources:
        reasons = "; ".join(f"{c.name}: {c.detail}" for c in candidates) or (
            f"no supported power backend on {system or platform.system()}"
        )
        raise StartupFailureError(f"No power sources available ({reasons})")

    if len(sources) == 1:
        return sources[0]
    return CompositePowerSource(sources)


def create_utilization_source() -> UtilizationSampleSource:
    """Create the per-process utilization source."""
    return PsutilUtilizationSource()
