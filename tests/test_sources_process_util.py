"""Tests for the psutil utilization source."""

from unittest.mock import MagicMock, PropertyMock, patch

import psutil
import pytest

from procwatt.errors import SourceUnavailableError
from procwatt.sources.process_util import PsutilUtilizationSource


def _proc(pid: int, name: str | None, cpu_percent: float | None) -> MagicMock:
    proc = MagicMock()
    proc.info = {"pid": pid, "name": name, "cpu_percent": cpu_percent}
    return proc


def _vanished(error: Exception) -> MagicMock:
    proc = MagicMock()
    type(proc).info = PropertyMock(side_effect=error)
    return proc


@pytest.fixture
def process_iter():
    with patch("procwatt.sources.process_util.psutil.process_iter") as mock_iter:
        yield mock_iter


def test_read_merges_instances_and_skips_idle(process_iter) -> None:
    processes = [
        _proc(0, "System Idle Process", 350.0),
        _proc(1, "idle", 10.0),
        _proc(100, "python", 20.0),
        _proc(101, "python", 30.0),
        _proc(200, "bash", 5.0),
        _proc(300, None, 1.0),
        _proc(400, "sleepy", None),
    ]
    process_iter.side_effect = lambda attrs: iter(processes)

    source = PsutilUtilizationSource()
    source.open()
    sample = source.read()

    assert sample.per_process == {
        "python": 50.0,
        "bash": 5.0,
        "pid_300": 1.0,
        "sleepy": 0.0,
    }
    assert sample.total_percent == pytest.approx(56.0)
    process_iter.assert_called_with(["pid", "name", "cpu_percent"])


def test_read_tolerates_vanished_processes(process_iter) -> None:
    processes = [
        _vanished(psutil.NoSuchProcess(10)),
        _vanished(psutil.AccessDenied(11)),
        _vanished(psutil.ZombieProcess(12)),
        _proc(13, "survivor", 40.0),
    ]
    process_iter.side_effect = lambda attrs: iter(processes)

    source = PsutilUtilizationSource()
    source.open()

    assert source.read().per_process == {"survivor": 40.0}


def test_read_before_open_raises(process_iter) -> None:
    with pytest.raises(SourceUnavailableError, match="not open"):
        PsutilUtilizationSource().read()


def test_enumeration_failure_raises_unavailable(process_iter) -> None:
    process_iter.side_effect = [iter([]), psutil.Error("proc not mounted")]

    source = PsutilUtilizationSource()
    source.open()

    with pytest.raises(SourceUnavailableError):
        source.read()


def test_open_primes_counters_so_first_read_has_data(process_iter) -> None:
    process_iter.side_effect = lambda attrs: iter([_proc(100, "python", 40.0)])

    source = PsutilUtilizationSource()
    source.open()
    assert process_iter.call_count == 1

    sample = source.read()

    assert process_iter.call_count == 2
    assert sample.per_process == {"python": 40.0}
