"""macOS power source using the powermetrics tool.

powermetrics needs root, so the source runs it through ``sudo -n`` and
fails fast instead of prompting. Patterns matched (in priority order):

1. "Combined Power (CPU + GPU + ANE): XXX mW" (Apple Silicon)
2. "CPU Power: XXX mW" (older/Intel Macs)

The combined figure is the SoC package, so it feeds package power; there is
no whole-system figure on this backend.
"""

from __future__ import annotations

import platform
import re
import subprocess
import time

from procwatt.errors import SourceUnavailableError
from procwatt.models.power_models import PowerSample, PowerSourceKind
from procwatt.sources.base import PowerSampleSource
from procwatt.utils.logger import Logger

_COMBINED_PATTERN = re.compile(r"Combined Power \(CPU \+ GPU \+ ANE\):\s*([\d.]+)\s*mW")
_CPU_PATTERN = re.compile(r"CPU Power:\s*([\d.]+)\s*mW")


def parse_powermetrics_output(output: str) -> float | None:
    """Extract package power in milliwatts from powermetrics text output.

    Returns:
        Power in mW, or None if no known line was found.
    """
    match = _COMBINED_PATTERN.search(output)
    if match:
        return float(match.group(1))

    cpu_match = _CPU_PATTERN.search(output)
    if cpu_match:
        return float(cpu_match.group(1))

    return None


class PowermetricsPowerSource(PowerSampleSource):
    """Power source for macOS built on powermetrics."""

    def __init__(self, sample_interval_ms: int = 100, timeout: float = 5.0) -> None:
        """Initialize the powermetrics source.

        Args:
            sample_interval_ms: powermetrics sample window per read.
            timeout: Seconds before a powermetrics invocation is abandoned.
        """
        self._sample_interval_ms = sample_interval_ms
        self._timeout = timeout
        self._logger = Logger.get("sources.powermetrics")

    @property
    def name(self) -> str:
        """Return the name of the power source."""
        return "powermetrics"

    @property
    def kind(self) -> PowerSourceKind:
        """Return the backend type."""
        return PowerSourceKind.POWERMETRICS

    def _command(self) -> list[str]:
        return [
            "sudo",
            "-n",
            "powermetrics",
            "-n",
            "1",
            "-i",
            str(self._sample_interval_ms),
            "--samplers",
            "cpu_power",
        ]

    def check_permissions(self) -> bool:
        """Check that powermetrics runs under passwordless sudo."""
        if platform.system() != "Darwin":
            return False

        try:
            result = subprocess.run(
                self._command(),
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (subprocess.SubprocessError, FileNotFoundError, PermissionError):
            return False

        return result.returncode == 0

    def open(self) -> None:
        """Verify powermetrics can be run.

        Raises:
            SourceUnavailableError: If not on macOS or sudo is not passwordless.
        """
        if not self.check_permissions():
            raise SourceUnavailableError(
                self.name,
                "requires macOS and passwordless sudo for powermetrics",
            )
        super().open()

    def read(self) -> PowerSample:
        """Run one powermetrics sample and parse package power.

        Raises:
            SourceUnavailableError: If powermetrics fails, times out, or
                prints nothing recognizable.
        """
        try:
            result = subprocess.run(
                self._command(),
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except subprocess.TimeoutExpired:
            raise SourceUnavailableError(self.name, "powermetrics timeout") from None
        except (subprocess.SubprocessError, FileNotFoundError, PermissionError) as e:
            raise SourceUnavailableError(self.name, str(e)) from e

        if result.returncode != 0:
            raise SourceUnavailableError(
                self.name, f"powermetrics exited with status {result.returncode}"
            )

        power_mw = parse_powermetrics_output(result.stdout)
        if power_mw is None:
            self._logger.debug("powermetrics output had no power line")
            raise SourceUnavailableError(self.name, "no power figure in output")

        return PowerSample(timestamp=time.time(), package_power_mw=power_mw)
