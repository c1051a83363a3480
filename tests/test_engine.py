"""Tests for the attribution engine."""

import math
import threading
import time

import pytest
from fakes import (
    ScriptedPowerSource,
    ScriptedUtilizationSource,
    power,
    unavailable,
    utilization,
)

from procwatt.core.engine import AttributionEngine, EngineConfig
from procwatt.core.store import AccumulatedStateStore
from procwatt.errors import ConfigurationInvalidError
from procwatt.models.power_models import UtilizationSample
from procwatt.sinks.base import TickSink
from procwatt.sources.static import StaticPowerSource, StaticUtilizationSource


def _engine(power_source, util_source, **kwargs) -> AttributionEngine:
    kwargs.setdefault("clock", lambda: 1000.0)
    return AttributionEngine(power_source, util_source, **kwargs)


@pytest.fixture
def two_process_engine():
    """A at 40%, B at 10%, total 50%, package 20 W."""
    engine = _engine(
        StaticPowerSource(package_power_mw=20000.0),
        StaticUtilizationSource({"A": 40.0, "B": 10.0}, total_percent=50.0),
    )
    yield engine
    engine.close()


class RecordingSink(TickSink):
    def __init__(self, fail: bool = False) -> None:
        self.summaries = []
        self.fail = fail
        self.closed = False

    def write_tick(self, summary) -> None:
        if self.fail:
            raise OSError("disk full")
        self.summaries.append(summary)

    def close(self) -> None:
        self.closed = True


def test_proportional_attribution(two_process_engine) -> None:
    """Energy is split by utilization share and integrated over elapsed time."""
    summary = two_process_engine.tick(2.0)

    store = two_process_engine.store
    assert store.get("A").cpu_energy_mj == pytest.approx(32000.0)
    assert store.get("B").cpu_energy_mj == pytest.approx(8000.0)
    assert store.get("A").last_power_mw == pytest.approx(16000.0)
    assert store.get("B").last_power_mw == pytest.approx(4000.0)

    assert not summary.degraded
    assert summary.records_touched == 2
    assert summary.cpu_energy_mj == pytest.approx(40000.0)


def test_increments_sum_to_total_energy() -> None:
    """Shares of a full-utilization tick add up to power times elapsed."""
    engine = _engine(
        StaticPowerSource(package_power_mw=12345.6),
        StaticUtilizationSource({"a": 13.3, "b": 27.1, "c": 59.6}),
    )
    summary = engine.tick(1.7)
    engine.close()

    total = math.fsum(inc.cpu_energy_mj for inc in summary.increments)
    assert total == pytest.approx(12345.6 * 1.7, rel=1e-9)


def test_shares_never_exceed_total_when_processes_oversum() -> None:
    """Per-process values above the reported total are normalized down."""
    engine = _engine(
        StaticPowerSource(package_power_mw=10000.0),
        StaticUtilizationSource({"a": 60.0, "b": 60.0}, total_percent=100.0),
    )
    summary = engine.tick(1.0)
    engine.close()

    assert sum(inc.ratio for inc in summary.increments) == pytest.approx(1.0)
    assert summary.cpu_energy_mj == pytest.approx(10000.0)


def test_energy_is_monotonic(two_process_engine) -> None:
    previous = 0.0
    for elapsed in (1.0, 0.5, 2.0, 0.001):
        two_process_engine.tick(elapsed)
        current = two_process_engine.store.get("A").cpu_energy_mj
        assert current >= previous
        previous = current


def test_history_is_bounded() -> None:
    engine = _engine(
        StaticPowerSource(package_power_mw=1000.0),
        StaticUtilizationSource({"a": 100.0}),
        store=AccumulatedStateStore(history_capacity=5),
    )
    for _ in range(12):
        engine.tick(1.0)
    engine.close()

    view = engine.store.get("a")
    assert len(view.power_history) == 5
    assert view.tick_count == 12


def test_zero_total_utilization_attributes_nothing() -> None:
    """A zero total means no data for the tick, not a degraded tick."""
    engine = _engine(
        StaticPowerSource(package_power_mw=5000.0),
        StaticUtilizationSource({"a": 0.0}, total_percent=0.0),
    )
    summary = engine.tick(1.0)
    engine.close()

    assert not summary.degraded
    assert summary.records_touched == 0
    assert len(engine.store) == 0


def test_both_sources_unavailable_is_degraded() -> None:
    engine = _engine(
        ScriptedPowerSource(power(1000.0), unavailable("power")),
        ScriptedUtilizationSource(utilization({"a": 50.0}), unavailable("util")),
    )
    engine.tick(1.0)
    before = engine.store.get("a")

    summary = engine.tick(1.0)
    engine.close()

    assert summary.degraded
    assert summary.records_touched == 0
    assert len(summary.reasons) == 2
    assert engine.store.get("a").cpu_energy_mj == before.cpu_energy_mj
    assert engine.store.get("a").tick_count == before.tick_count


def test_empty_power_sample_is_degraded() -> None:
    engine = _engine(
        ScriptedPowerSource(power()),
        ScriptedUtilizationSource(utilization({"a": 50.0})),
    )
    summary = engine.tick(1.0)
    engine.close()

    assert summary.degraded
    assert "no power reading" in summary.reasons[0]
    assert len(engine.store) == 0


def test_degraded_tick_advances_last_update() -> None:
    times = iter([1000.0, 1005.0, 1010.0])
    engine = AttributionEngine(
        ScriptedPowerSource(unavailable()),
        ScriptedUtilizationSource(utilization({"a": 50.0})),
        clock=lambda: next(times),
    )
    engine.tick(1.0)
    engine.close()

    assert engine.last_update == 1005.0


def test_missing_package_keeps_cpu_totals_and_accumulates_system() -> None:
    """CPU totals and history hold; the last-seen package share becomes N/A."""
    engine = _engine(
        ScriptedPowerSource(power(10000.0, 20000.0), power(None, 20000.0)),
        ScriptedUtilizationSource(utilization({"a": 100.0})),
    )
    engine.tick(1.0)
    summary = engine.tick(1.0)
    engine.close()

    view = engine.store.get("a")
    assert not summary.degraded
    assert view.cpu_energy_mj == pytest.approx(10000.0)
    assert view.system_energy_mj == pytest.approx(40000.0)
    assert view.last_power_mw is None
    assert view.power_history == (10000.0,)


def test_instances_merge_by_name() -> None:
    merged = UtilizationSample.from_instances(
        [("python", 20.0), ("python", 30.0), ("bash", 50.0)]
    )
    engine = _engine(
        ScriptedPowerSource(power(1000.0)),
        ScriptedUtilizationSource(merged),
    )
    engine.tick(1.0)
    engine.close()

    assert len(engine.store) == 2
    assert engine.store.get("python").cpu_energy_mj == pytest.approx(500.0)


def test_snapshot_ordering_is_stable() -> None:
    engine = _engine(
        StaticPowerSource(package_power_mw=3000.0),
        StaticUtilizationSource({"b": 25.0, "a": 25.0, "c": 50.0}),
    )
    engine.tick(1.0)
    engine.close()

    first = [v.identity for v in engine.store.snapshot()]
    second = [v.identity for v in engine.store.snapshot()]
    assert first == second == ["c", "a", "b"]


def test_consecutive_degraded_ticks_raise_and_clear_warning(log_output) -> None:
    engine = _engine(
        ScriptedPowerSource(
            unavailable(), unavailable(), unavailable(), power(1000.0)
        ),
        ScriptedUtilizationSource(utilization({"a": 100.0})),
    )

    engine.tick(1.0)
    engine.tick(1.0)
    assert not engine.degraded_warning

    engine.tick(1.0)
    assert engine.degraded_warning
    assert engine.status().consecutive_degraded == 3
    assert "3 consecutive degraded ticks" in log_output.getvalue()

    engine.tick(1.0)
    engine.close()
    assert not engine.degraded_warning
    assert engine.status().consecutive_degraded == 0
    assert engine.status().degraded_ticks == 3


def test_read_timeout_produces_degraded_tick() -> None:
    slow = ScriptedPowerSource(power(1000.0))
    slow.release.clear()
    engine = _engine(
        slow,
        ScriptedUtilizationSource(utilization({"a": 100.0})),
        read_timeout=0.05,
    )

    try:
        summary = engine.tick(1.0)
        assert summary.degraded
        assert "timed out" in summary.reasons[0]

        # The stuck read still occupies the worker
        summary = engine.tick(1.0)
        assert summary.degraded
        assert "still in progress" in summary.reasons[0]
        assert slow.reads == 1
    finally:
        slow.release.set()
        engine.close()


def test_unexpected_source_exception_is_degraded() -> None:
    engine = _engine(
        ScriptedPowerSource(RuntimeError("driver bug")),
        ScriptedUtilizationSource(utilization({"a": 100.0})),
    )
    summary = engine.tick(1.0)
    engine.close()

    assert summary.degraded
    assert "RuntimeError: driver bug" in summary.reasons[0]


@pytest.mark.parametrize("elapsed", [0.0, -1.0, math.nan, math.inf])
def test_invalid_elapsed_rejected(two_process_engine, elapsed) -> None:
    with pytest.raises(ValueError):
        two_process_engine.tick(elapsed)


def test_tick_after_close_raises(two_process_engine) -> None:
    two_process_engine.close()
    with pytest.raises(RuntimeError):
        two_process_engine.tick(1.0)


def test_sink_receives_every_tick_and_is_closed() -> None:
    sink = RecordingSink()
    engine = _engine(
        ScriptedPowerSource(power(1000.0), unavailable()),
        ScriptedUtilizationSource(utilization({"a": 100.0})),
        sink=sink,
    )
    engine.tick(1.0)
    engine.tick(1.0)
    engine.close()

    assert [s.degraded for s in sink.summaries] == [False, True]
    assert sink.closed


def test_failing_sink_is_disabled(log_output) -> None:
    sink = RecordingSink(fail=True)
    engine = _engine(
        StaticPowerSource(package_power_mw=1000.0),
        StaticUtilizationSource({"a": 100.0}),
        sink=sink,
    )
    engine.tick(1.0)
    summary = engine.tick(1.0)
    engine.close()

    assert engine.sink is None
    assert not summary.degraded
    assert "sink disabled" in log_output.getvalue()


def test_status_reports_totals(two_process_engine) -> None:
    two_process_engine.tick(2.0)
    status = two_process_engine.status()

    assert status.tick_count == 1
    assert status.record_count == 2
    assert status.cpu_energy_mj == pytest.approx(40000.0)
    assert status.interval_seconds == 2
    assert status.last_tick is not None


def test_engine_config_validates_interval() -> None:
    config = EngineConfig()
    assert config.set_interval(10) == 10
    assert config.interval_seconds == 10

    with pytest.raises(ConfigurationInvalidError):
        config.set_interval(61)
    assert config.interval_seconds == 10

    config.set_focus("python")
    assert config.focus == "python"
    config.set_focus(None)
    assert config.focus is None


def test_invalid_power_field_is_dropped_for_the_tick() -> None:
    """A negative system reading is ignored; package power is still attributed."""
    engine = _engine(
        ScriptedPowerSource(power(1000.0, -500.0)),
        ScriptedUtilizationSource(utilization({"a": 50.0, "b": 50.0})),
    )
    summary = engine.tick(1.0)
    engine.close()

    assert not summary.degraded
    assert summary.system_power_mw is None
    for identity in ("a", "b"):
        view = engine.store.get(identity)
        assert view.cpu_energy_mj == pytest.approx(500.0)
        assert view.system_energy_mj == 0.0
        assert view.last_system_power_mw is None
        assert view.tick_count == 1


def test_nan_package_power_keeps_system_attribution() -> None:
    engine = _engine(
        ScriptedPowerSource(power(math.nan, 2000.0)),
        ScriptedUtilizationSource(utilization({"a": 50.0, "b": 50.0})),
    )
    summary = engine.tick(1.0)
    engine.close()

    assert not summary.degraded
    view = engine.store.get("a")
    assert view.cpu_energy_mj == 0.0
    assert view.system_energy_mj == pytest.approx(1000.0)
    assert view.last_power_mw is None
    assert view.power_history == ()


def test_power_sample_with_no_valid_field_is_degraded() -> None:
    engine = _engine(
        ScriptedPowerSource(power(math.inf, -1.0)),
        ScriptedUtilizationSource(utilization({"a": 100.0})),
    )
    summary = engine.tick(1.0)
    engine.close()

    assert summary.degraded
    assert "invalid power reading" in summary.reasons[0]
    assert len(engine.store) == 0


def test_nan_total_utilization_is_degraded_and_store_untouched() -> None:
    engine = _engine(
        ScriptedPowerSource(power(1000.0)),
        ScriptedUtilizationSource(
            utilization({"a": 100.0}), utilization({"a": 50.0}, total=math.nan)
        ),
    )
    engine.tick(1.0)
    before = engine.store.get("a")

    summary = engine.tick(1.0)
    engine.close()

    assert summary.degraded
    assert "invalid total utilization" in summary.reasons[0]
    assert engine.store.get("a") == before
    assert engine.status().tick_count == 2


def test_non_finite_process_utilization_is_degraded() -> None:
    engine = _engine(
        ScriptedPowerSource(power(1000.0)),
        ScriptedUtilizationSource(
            UtilizationSample(
                per_process={"a": math.inf, "b": 10.0}, total_percent=100.0
            )
        ),
    )
    summary = engine.tick(1.0)
    engine.close()

    assert summary.degraded
    assert "invalid utilization for a" in summary.reasons[0]
    assert len(engine.store) == 0


def test_store_stays_readable_while_a_read_blocks() -> None:
    """Readers are never held up by a source read in progress."""
    slow = ScriptedPowerSource(power(1000.0))
    engine = _engine(
        slow,
        ScriptedUtilizationSource(utilization({"a": 100.0})),
        read_timeout=1.0,
    )
    engine.tick(1.0)

    slow.release.clear()
    results = []
    worker = threading.Thread(target=lambda: results.append(engine.tick(1.0)))
    worker.start()
    try:
        deadline = time.monotonic() + 2.0
        while slow.reads < 2 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert slow.reads == 2

        started = time.monotonic()
        snapshot = engine.store.snapshot()
        view = engine.store.get("a")
        assert time.monotonic() - started < 0.5
        assert [v.identity for v in snapshot] == ["a"]
        assert view.tick_count == 1

        worker.join(timeout=5.0)
        assert not worker.is_alive()
        assert results[0].degraded
        assert "timed out" in results[0].reasons[0]
    finally:
        slow.release.set()

    # Once the stuck read finishes, the reader accepts new reads again
    for _ in range(50):
        summary = engine.tick(1.0)
        if not summary.degraded:
            break
        time.sleep(0.02)
    engine.close()

    assert not summary.degraded
    assert engine.store.get("a").tick_count == 2
