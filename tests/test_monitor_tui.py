"""Tests for monitor TUI input handling."""

import pytest

from procwatt.commands.monitor_tui import MonitorState
from procwatt.core.control import EngineController, Quit, SelectFocus, SetInterval
from procwatt.models.energy_models import ProcessEnergyView


def _view(identity: str) -> ProcessEnergyView:
    return ProcessEnergyView(
        identity=identity,
        cpu_energy_mj=1.0,
        system_energy_mj=0.0,
        last_utilization_percent=1.0,
        last_power_mw=1.0,
        last_system_power_mw=None,
        power_history=(1.0,),
        first_seen=1.0,
        last_seen=1.0,
        tick_count=1,
    )


@pytest.fixture
def state() -> MonitorState:
    state = MonitorState(EngineController(), interval_seconds=2)
    state.snapshot = [_view("python"), _view("bash")]
    return state


def _queued(state: MonitorState) -> list:
    commands = []
    while not state.controller.commands.empty():
        commands.append(state.controller.commands.get_nowait())
    return commands


def _type(state: MonitorState, text: str) -> None:
    for ch in text:
        state.handle_key(ord(ch))


def test_quit_key(state) -> None:
    assert state.handle_key(ord("q"))
    assert state.controller.quit_requested
    assert _queued(state) == [Quit()]


def test_interval_keys(state) -> None:
    state.handle_key(ord("+"))
    state.handle_key(ord("+"))
    state.handle_key(ord("-"))

    assert _queued(state) == [SetInterval(3), SetInterval(4), SetInterval(3)]
    assert state.interval_seconds == 3


def test_interval_key_out_of_range_shows_message(state) -> None:
    state.interval_seconds = 1
    state.handle_key(ord("-"))

    assert _queued(state) == []
    assert "between 1 and 60" in state.message


def test_rank_keys_select_focus(state) -> None:
    state.handle_key(ord("2"))
    state.handle_key(ord("0"))
    state.handle_key(ord("9"))

    assert _queued(state) == [SelectFocus("bash"), SelectFocus(None)]
    assert "between 1 and 2" in state.message


def test_command_line(state) -> None:
    state.handle_key(ord(":"))
    assert state.command_mode

    _type(state, "interval 9x")
    state.handle_key(127)
    state.handle_key(10)

    assert not state.command_mode
    assert _queued(state) == [SetInterval(9)]
    assert state.interval_seconds == 9
    assert state.message == "OK: interval 9"


def test_command_line_error_and_escape(state) -> None:
    state.handle_key(ord(":"))
    _type(state, "bogus")
    state.handle_key(10)
    assert "Unknown command" in state.message

    state.handle_key(ord(":"))
    _type(state, "quit")
    state.handle_key(27)

    assert not state.command_mode
    assert _queued(state) == []
    assert not state.controller.quit_requested


def test_no_key_needs_no_redraw(state) -> None:
    assert not state.handle_key(-1)
    assert not state.handle_key(ord("x"))
