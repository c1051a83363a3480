"""Human-readable formatting for power, energy, and durations."""

from __future__ import annotations

from collections.abc import Iterable

NOT_AVAILABLE = "N/A"

_SPARK_CHARS = "▁▂▃▄▅▆▇█"


def format_power_mw(power_mw: float | None) -> str:
    """Format a milliwatt reading, switching to watts above 1 W."""
    if power_mw is None:
        return NOT_AVAILABLE
    if abs(power_mw) >= 1000.0:
        return f"{power_mw / 1000.0:.2f} W"
    return f"{power_mw:.0f} mW"


def format_energy_mj(energy_mj: float | None) -> str:
    """Format a millijoule total as mJ, J, kJ, or Wh."""
    if energy_mj is None:
        return NOT_AVAILABLE
    joules = energy_mj / 1000.0
    if joules < 1.0:
        return f"{energy_mj:.0f} mJ"
    if joules < 1000.0:
        return f"{joules:.1f} J"
    if joules < 3600.0:
        return f"{joules / 1000.0:.2f} kJ"
    return f"{joules / 3600.0:.2f} Wh"


def format_percent(percent: float | None) -> str:
    """Format a utilization percentage."""
    if percent is None:
        return NOT_AVAILABLE
    return f"{percent:.1f}%"


def format_duration(seconds: float) -> str:
    """Format a runtime as HH:MM:SS, prefixed with days when needed."""
    total = int(max(seconds, 0.0))
    days = total // 86400
    hours = (total % 86400) // 3600
    minutes = (total % 3600) // 60
    secs = total % 60
    if days > 0:
        return f"{days}d {hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def sparkline(values: Iterable[float], width: int | None = None) -> str:
    """Render values as a unicode sparkline scaled to their own maximum.

    Args:
        values: Samples, oldest first.
        width: Keep only the most recent ``width`` samples.
    """
    samples = list(values)
    if width is not None:
        samples = samples[-width:]
    if not samples:
        return ""
    peak = max(samples)
    if peak <= 0:
        return _SPARK_CHARS[0] * len(samples)
    top = len(_SPARK_CHARS) - 1
    return "".join(
        _SPARK_CHARS[min(top, int(max(v, 0.0) / peak * top))] for v in samples
    )
