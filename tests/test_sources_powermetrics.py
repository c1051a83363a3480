"""Tests for the macOS powermetrics power source."""

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from procwatt.errors import SourceUnavailableError
from procwatt.sources.powermetrics import (
    PowermetricsPowerSource,
    parse_powermetrics_output,
)

APPLE_SILICON_OUTPUT = """
**** Processor usage ****

CPU Power: 1234 mW
GPU Power: 56 mW
ANE Power: 0 mW
Combined Power (CPU + GPU + ANE): 1290 mW
"""

INTEL_OUTPUT = """
**** Processor usage ****
CPU Power: 8421.5 mW
"""


def test_parse_prefers_combined_power() -> None:
    assert parse_powermetrics_output(APPLE_SILICON_OUTPUT) == 1290.0


def test_parse_falls_back_to_cpu_power() -> None:
    assert parse_powermetrics_output(INTEL_OUTPUT) == 8421.5


def test_parse_returns_none_without_power_lines() -> None:
    assert parse_powermetrics_output("nothing to see") is None


def _completed(returncode: int = 0, stdout: str = "") -> MagicMock:
    result = MagicMock()
    result.returncode = returncode
    result.stdout = stdout
    return result


@patch("procwatt.sources.powermetrics.subprocess.run")
def test_read_reports_package_power(mock_run) -> None:
    mock_run.return_value = _completed(stdout=APPLE_SILICON_OUTPUT)

    sample = PowermetricsPowerSource().read()

    assert sample.package_power_mw == 1290.0
    assert sample.system_power_mw is None
    command = mock_run.call_args.args[0]
    assert command[:3] == ["sudo", "-n", "powermetrics"]


@pytest.mark.parametrize(
    "outcome,message",
    [
        (subprocess.TimeoutExpired(cmd="powermetrics", timeout=5), "timeout"),
        (FileNotFoundError("sudo"), "sudo"),
        (_completed(returncode=1), "status 1"),
        (_completed(stdout="garbage"), "no power figure"),
    ],
)
@patch("procwatt.sources.powermetrics.subprocess.run")
def test_read_failures_raise_unavailable(mock_run, outcome, message) -> None:
    if isinstance(outcome, Exception):
        mock_run.side_effect = outcome
    else:
        mock_run.return_value = outcome

    with pytest.raises(SourceUnavailableError, match=message):
        PowermetricsPowerSource().read()


@patch("procwatt.sources.powermetrics.platform.system", return_value="Linux")
def test_open_requires_macos(_mock_system) -> None:
    source = PowermetricsPowerSource()

    assert not source.check_permissions()
    with pytest.raises(SourceUnavailableError, match="macOS"):
        source.open()
