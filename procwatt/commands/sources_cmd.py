"""Report which power backends are usable on this machine."""

from __future__ import annotations

import time

from procwatt.config import Settings
from procwatt.errors import SourceUnavailableError
from procwatt.sources.factory import SourceCandidate, probe_power_sources
from procwatt.utils.formatting import format_power_mw

SAMPLE_DELAY_SECONDS = 0.5


def show_power_sources(settings: Settings, system: str | None = None) -> list[SourceCandidate]:
    """Display available power sources and one sample reading from each.

    Returns:
        The probed candidates, available or not.
    """
    candidates = probe_power_sources(settings, system=system)

    print("Power Monitoring Capabilities")
    print("=" * 50)
    print()

    available = [c for c in candidates if c.available and c.source is not None]

    for candidate in candidates:
        state = "available" if candidate.available else "unavailable"
        line = f"  {candidate.name:<16} {state}"
        if candidate.detail:
            line += f" ({candidate.detail})"
        print(line)

    if not available:
        print()
        print("No power sources available.")
        print()
        print("Troubleshooting:")
        print("  Linux:")
        print("    - Check /sys/class/powercap/intel-rapl/ exists")
        print("    - May need: sudo chmod -R a+r /sys/class/powercap/")
        print()
        print("  macOS:")
        print("    - Requires passwordless sudo for powermetrics")
        print("    - Add to /etc/sudoers:")
        print("      username ALL=(ALL) NOPASSWD: /usr/bin/powermetrics")
        print()
        print("  Any platform:")
        print("    - Set --metrics-url and PROCWATT_PACKAGE_QUERY for a metrics server")
        print("    - Or use --simulate POWER_MW to try the pipeline")
        return candidates

    print()
    print("Sample readings:")
    for candidate in available:
        assert candidate.source is not None
        source = candidate.source
        try:
            with source:
                # Counter-based backends need a baseline before the first delta
                source.read()
                time.sleep(SAMPLE_DELAY_SECONDS)
                sample = source.read()
        except SourceUnavailableError as e:
            print(f"  {candidate.name:<16} error: {e.reason}")
            continue
        print(
            f"  {candidate.name:<16} package {format_power_mw(sample.package_power_mw)}"
            f"  system {format_power_mw(sample.system_power_mw)}"
        )

    return candidates
