"""Tests for the CSV diagnostic sink."""

import csv

import pytest

from procwatt.models.energy_models import ProcessIncrement, TickSummary
from procwatt.sinks.csv_sink import CSV_COLUMNS, CsvTickSink


def _summary(tick: int, degraded: bool = False) -> TickSummary:
    increments = ()
    if not degraded:
        increments = (
            ProcessIncrement(
                identity="python",
                utilization_percent=75.0,
                ratio=0.75,
                cpu_power_mw=7500.0,
                cpu_energy_mj=15000.0,
                system_power_mw=None,
                system_energy_mj=0.0,
            ),
            ProcessIncrement(
                identity="bash",
                utilization_percent=25.0,
                ratio=0.25,
                cpu_power_mw=2500.0,
                cpu_energy_mj=5000.0,
                system_power_mw=None,
                system_energy_mj=0.0,
            ),
        )
    return TickSummary(
        tick=tick,
        timestamp=1_700_000_000.0,
        elapsed_seconds=2.0,
        package_power_mw=None if degraded else 10000.0,
        system_power_mw=None,
        total_cpu_percent=100.0,
        records_touched=len(increments),
        degraded=degraded,
        reasons=("rapl: all RAPL counters unreadable",) if degraded else (),
        increments=increments,
    )


def _read_rows(path):
    with open(path, newline="") as f:
        return list(csv.reader(f))


def test_csv_sink_writes_header_and_increments(tmp_path) -> None:
    path = tmp_path / "ticks.csv"
    sink = CsvTickSink(path)
    sink.write_tick(_summary(1))
    sink.close()

    rows = _read_rows(path)
    assert rows[0] == CSV_COLUMNS
    assert len(rows) == 3
    record = dict(zip(CSV_COLUMNS, rows[1]))
    assert record["process"] == "python"
    assert record["cpu_power_mw"] == "7500.000"
    assert record["cpu_energy_mj"] == "15000.000"
    assert record["system_power_mw"] == ""
    assert record["system_energy_mj"] == ""
    assert record["degraded"] == "false"
    assert sink.rows_written == 2


def test_csv_sink_writes_degraded_row(tmp_path) -> None:
    path = tmp_path / "ticks.csv"
    sink = CsvTickSink(path)
    sink.write_tick(_summary(1, degraded=True))
    sink.flush()

    rows = _read_rows(path)
    record = dict(zip(CSV_COLUMNS, rows[1]))
    assert record["degraded"] == "true"
    assert record["reason"] == "rapl: all RAPL counters unreadable"
    assert record["process"] == ""
    sink.close()


def test_csv_sink_close_is_idempotent(tmp_path) -> None:
    sink = CsvTickSink(tmp_path / "ticks.csv")
    sink.close()
    sink.close()

    assert sink.closed
    with pytest.raises(ValueError):
        sink.write_tick(_summary(1))
