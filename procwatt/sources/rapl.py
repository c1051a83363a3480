"""Linux RAPL (Running Average Power Limit) power source.

RAPL exposes cumulative energy counters for Intel and AMD CPUs through the
powercap sysfs interface at /sys/class/powercap/intel-rapl/.

Top-level domains used here:
- package-N: CPU package power (cores + uncore), summed across sockets
- psys: Entire platform (on some systems), reported as system power

Sub-domains (core, uncore, dram) are contained in the package figure and
are not read.

Note: Reading RAPL requires either:
1. Root access
2. Read permissions on /sys/class/powercap/intel-rapl/
3. CAP_SYS_RAWIO capability
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path

from procwatt.errors import SourceUnavailableError
from procwatt.models.power_models import PowerDomain, PowerSample, PowerSourceKind
from procwatt.sources.base import PowerSampleSource
from procwatt.utils.logger import Logger

RAPL_PREFIXES = ("intel-rapl", "amd-rapl")


@dataclass
class RaplDomain:
    """One readable RAPL energy counter.

    Attributes:
        name: Domain name from sysfs (e.g., "package-0", "psys").
        domain: Which power field the counter feeds.
        energy_path: Path to the energy_uj file.
        max_energy_uj: Counter value at which it wraps (0 if unknown).
        last_energy_uj: Previous counter value, None before the first read.
        last_time: Monotonic time of the previous read.
    """

    name: str
    domain: PowerDomain
    energy_path: Path
    max_energy_uj: int = 0
    last_energy_uj: int | None = None
    last_time: float = 0.0


class RaplPowerSource(PowerSampleSource):
    """Power source reading RAPL energy counters.

    Power is derived from the counter delta over the actual time between two
    reads. open() takes the baseline; a domain whose baseline could not be
    read reports nothing until its following read.
    """

    POWERCAP_PATH = Path("/sys/class/powercap")

    def __init__(self, powercap_path: Path | None = None) -> None:
        """Initialize the RAPL source.

        Args:
            powercap_path: Root of the powercap tree (tests point this at a
                temporary directory).
        """
        self._powercap_path = powercap_path or self.POWERCAP_PATH
        self._domains: list[RaplDomain] = []
        self._logger = Logger.get("sources.rapl")

    @property
    def name(self) -> str:
        """Return the name of the power source."""
        return "rapl"

    @property
    def kind(self) -> PowerSourceKind:
        """Return the backend type."""
        return PowerSourceKind.RAPL

    @property
    def domains(self) -> list[RaplDomain]:
        """Discovered domains (empty until open())."""
        return list(self._domains)

    def is_available(self) -> bool:
        """Check if RAPL is present and at least one counter is readable."""
        return bool(self._discover_domains())

    def check_permissions(self) -> bool:
        """Check if the discovered energy files are readable."""
        return self.is_available()

    def open(self) -> None:
        """Discover domains and take the baseline reading.

        Raises:
            SourceUnavailableError: If no readable domain exists.
        """
        self._domains = self._discover_domains()
        if not self._domains:
            raise SourceUnavailableError(
                self.name,
                f"no readable RAPL energy counters under {self._powercap_path}",
            )

        for domain in self._domains:
            try:
                domain.last_energy_uj = _read_int(domain.energy_path)
                domain.last_time = time.monotonic()
            except (OSError, ValueError):
                domain.last_energy_uj = None

        names = ", ".join(d.name for d in self._domains)
        self._logger.info(f"RAPL domains: {names}")
        super().open()

    def close(self) -> None:
        """Forget discovered domains."""
        self._domains = []
        super().close()

    def read(self) -> PowerSample:
        """Read package and platform power from counter deltas.

        Raises:
            SourceUnavailableError: If the source is not open or every
                counter failed to read.
        """
        if not self._opened:
            raise SourceUnavailableError(self.name, "source is not open")

        package_mw: float | None = None
        system_mw: float | None = None
        failures = 0

        for domain in self._domains:
            try:
                power_mw = self._read_domain_power(domain)
            except (OSError, ValueError) as e:
                failures += 1
                self._logger.debug(f"Failed to read {domain.name}: {e}")
                continue

            if power_mw is None:
                continue

            if domain.domain == PowerDomain.PACKAGE:
                package_mw = (package_mw or 0.0) + power_mw
            else:
                system_mw = (system_mw or 0.0) + power_mw

        if failures == len(self._domains):
            raise SourceUnavailableError(self.name, "all RAPL counters unreadable")

        return PowerSample(
            timestamp=time.time(),
            package_power_mw=package_mw,
            system_power_mw=system_mw,
        )

    def _read_domain_power(self, domain: RaplDomain) -> float | None:
        """Convert a counter delta to milliwatts.

        Returns:
            Power in mW, or None when there is no usable baseline yet.
        """
        current_energy = _read_int(domain.energy_path)
        current_time = time.monotonic()

        last_energy = domain.last_energy_uj
        time_delta = current_time - domain.last_time

        domain.last_energy_uj = current_energy
        domain.last_time = current_time

        if last_energy is None or time_delta < 0.001:
            return None

        energy_delta = current_energy - last_energy
        if energy_delta < 0:
            if domain.max_energy_uj <= 0:
                return None
            # Counter wrapped around
            energy_delta = (domain.max_energy_uj - last_energy) + current_energy

        # uJ per second is uW; divide by 1000 for mW
        return max(0.0, energy_delta / time_delta / 1000.0)

    def _discover_domains(self) -> list[RaplDomain]:
        """Find readable top-level package and psys domains."""
        domains: list[RaplDomain] = []

        for prefix in RAPL_PREFIXES:
            base = self._powercap_path / prefix
            if not base.exists():
                continue

            try:
                entries = sorted(base.iterdir())
            except (PermissionError, OSError):
                continue

            for entry in entries:
                if not entry.is_dir() or not entry.name.startswith(f"{prefix}:"):
                    continue
                # Only top-level zones (intel-rapl:0), not intel-rapl:0:0
                if entry.name.count(":") != 1:
                    continue
                domain = self._load_domain(entry)
                if domain is not None:
                    domains.append(domain)

        return domains

    def _load_domain(self, domain_path: Path) -> RaplDomain | None:
        """Build a RaplDomain if its energy counter is readable."""
        energy_file = domain_path / "energy_uj"
        name_file = domain_path / "name"
        max_energy_file = domain_path / "max_energy_range_uj"

        if not energy_file.exists():
            return None

        try:
            if name_file.exists():
                name = name_file.read_text().strip()
            else:
                name = domain_path.name

            max_energy = 0
            if max_energy_file.exists():
                max_energy = _read_int(max_energy_file)

            # Test that we can read energy
            _read_int(energy_file)
        except (PermissionError, OSError, ValueError):
            return None

        if name.lower().startswith("psys"):
            power_domain = PowerDomain.SYSTEM
        elif name.lower().startswith("package"):
            power_domain = PowerDomain.PACKAGE
        else:
            return None

        return RaplDomain(
            name=name,
            domain=power_domain,
            energy_path=energy_file,
            max_energy_uj=max_energy,
        )


def _read_int(path: Path) -> int:
    return int(path.read_text().strip())
