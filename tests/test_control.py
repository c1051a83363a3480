"""Tests for operator commands and their validation."""

import pytest

from procwatt.core.control import (
    EngineController,
    Quit,
    SelectFocus,
    SetInterval,
    parse_command,
    resolve_focus,
)
from procwatt.errors import ConfigurationInvalidError
from procwatt.models.energy_models import ProcessEnergyView


def _view(identity: str, energy: float) -> ProcessEnergyView:
    return ProcessEnergyView(
        identity=identity,
        cpu_energy_mj=energy,
        system_energy_mj=0.0,
        last_utilization_percent=10.0,
        last_power_mw=energy,
        last_system_power_mw=None,
        power_history=(energy,),
        first_seen=1.0,
        last_seen=2.0,
        tick_count=1,
    )


@pytest.fixture
def snapshot() -> list[ProcessEnergyView]:
    return [_view("python", 30.0), _view("bash", 20.0), _view("sshd", 10.0)]


def test_resolve_focus_by_rank(snapshot) -> None:
    assert resolve_focus(1, snapshot) == "python"
    assert resolve_focus(3, snapshot) == "sshd"


@pytest.mark.parametrize("rank", [0, 4, -1])
def test_resolve_focus_out_of_range(snapshot, rank) -> None:
    with pytest.raises(ConfigurationInvalidError):
        resolve_focus(rank, snapshot)


def test_resolve_focus_empty_snapshot() -> None:
    with pytest.raises(ConfigurationInvalidError, match="No processes"):
        resolve_focus(1, [])


@pytest.mark.parametrize(
    "text,expected",
    [
        ("interval 5", SetInterval(5)),
        ("  INTERVAL   60 ", SetInterval(60)),
        ("focus 2", SelectFocus("bash")),
        ("focus clear", SelectFocus(None)),
        ("quit", Quit()),
        ("q", Quit()),
    ],
)
def test_parse_command(snapshot, text, expected) -> None:
    assert parse_command(text, snapshot) == expected


@pytest.mark.parametrize(
    "text",
    [
        "",
        "interval",
        "interval 0",
        "interval 61",
        "interval 2.5",
        "interval x",
        "focus 9",
        "focus",
        "quit now",
        "restart",
    ],
)
def test_parse_command_rejects_invalid(snapshot, text) -> None:
    with pytest.raises(ConfigurationInvalidError):
        parse_command(text, snapshot)


def test_controller_queues_valid_commands(snapshot) -> None:
    controller = EngineController()

    controller.set_interval(10)
    controller.select_focus(1, snapshot)
    controller.clear_focus()
    controller.quit()

    queued = [controller.commands.get_nowait() for _ in range(4)]
    assert queued == [SetInterval(10), SelectFocus("python"), SelectFocus(None), Quit()]
    assert controller.quit_requested


@pytest.mark.parametrize("seconds", [0, 61, 1.5, True])
def test_controller_rejects_invalid_interval(seconds) -> None:
    controller = EngineController()

    with pytest.raises(ConfigurationInvalidError):
        controller.set_interval(seconds)
    assert controller.commands.empty()


def test_controller_uses_submit_callback(snapshot) -> None:
    submitted = []
    controller = EngineController(submitted.append)

    controller.execute("interval 3", snapshot)
    controller.execute("quit", snapshot)

    assert submitted == [SetInterval(3), Quit()]
    assert controller.quit_requested
    assert controller.commands.empty()
