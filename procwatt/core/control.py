"""Operator commands and the controller that turns input into them.

The presentation layer never touches engine state directly. Key presses and
console lines become ``Command`` objects that are validated here and queued
for the scheduler, which applies them between ticks.
"""

from __future__ import annotations

import queue
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from procwatt.config import validate_interval
from procwatt.errors import ConfigurationInvalidError
from procwatt.models.energy_models import ProcessEnergyView


@dataclass(frozen=True)
class SetInterval:
    """Change the tick interval (whole seconds, 1-60)."""

    seconds: int


@dataclass(frozen=True)
class SelectFocus:
    """Show one process in detail; None clears the selection."""

    identity: str | None


@dataclass(frozen=True)
class Quit:
    """Stop sampling and shut down."""


Command = SetInterval | SelectFocus | Quit


def resolve_focus(rank: int, snapshot: Sequence[ProcessEnergyView]) -> str:
    """Map a 1-based rank in a snapshot to a process name.

    Raises:
        ConfigurationInvalidError: If the snapshot is empty or rank is out of
            range.
    """
    if not snapshot:
        raise ConfigurationInvalidError("No processes to focus yet")
    if isinstance(rank, bool) or not isinstance(rank, int):
        raise ConfigurationInvalidError(f"Rank must be an integer, got {rank!r}")
    if not 1 <= rank <= len(snapshot):
        raise ConfigurationInvalidError(
            f"Rank must be between 1 and {len(snapshot)}, got {rank}"
        )
    return snapshot[rank - 1].identity


def parse_command(text: str, snapshot: Sequence[ProcessEnergyView]) -> Command:
    """Parse a console line.

    Accepted forms::

        interval N
        focus N      (rank in the current ranking)
        focus clear
        quit

    Raises:
        ConfigurationInvalidError: If the line is not a valid command.
    """
    parts = text.strip().split()
    if not parts:
        raise ConfigurationInvalidError("Empty command")

    verb = parts[0].lower()
    args = parts[1:]

    if verb in ("quit", "q", "exit"):
        if args:
            raise ConfigurationInvalidError("quit takes no arguments")
        return Quit()

    if verb == "interval":
        if len(args) != 1:
            raise ConfigurationInvalidError("Usage: interval N")
        return SetInterval(validate_interval(_parse_int(args[0], "Interval")))

    if verb == "focus":
        if len(args) != 1:
            raise ConfigurationInvalidError("Usage: focus N | focus clear")
        if args[0].lower() in ("clear", "none"):
            return SelectFocus(None)
        return SelectFocus(resolve_focus(_parse_int(args[0], "Rank"), snapshot))

    raise ConfigurationInvalidError(f"Unknown command: {verb}")


def _parse_int(token: str, label: str) -> int:
    try:
        return int(token)
    except ValueError:
        raise ConfigurationInvalidError(
            f"{label} must be an integer, got {token!r}"
        ) from None


class EngineController:
    """Validate operator input and queue it for the scheduler.

    Validation happens here, on the caller's thread, so a rejected command
    raises immediately and never reaches the engine.
    """

    def __init__(self, submit: Callable[[Command], None] | None = None) -> None:
        """Create a controller.

        Args:
            submit: Delivers a command to the tick loop (usually
                ``TickScheduler.submit``). Defaults to the local ``commands``
                queue.
        """
        self.commands: queue.Queue[Command] = queue.Queue()
        self._submit = submit if submit is not None else self.commands.put
        self._quit_requested = False

    @property
    def quit_requested(self) -> bool:
        return self._quit_requested

    def set_interval(self, seconds: int) -> SetInterval:
        """Queue an interval change.

        Raises:
            ConfigurationInvalidError: If seconds is not an integer in 1-60.
        """
        command = SetInterval(validate_interval(seconds))
        self._submit(command)
        return command

    def select_focus(
        self, rank: int, snapshot: Sequence[ProcessEnergyView]
    ) -> SelectFocus:
        """Queue a focus change by rank in the latest snapshot.

        Raises:
            ConfigurationInvalidError: If the rank does not resolve.
        """
        command = SelectFocus(resolve_focus(rank, snapshot))
        self._submit(command)
        return command

    def clear_focus(self) -> SelectFocus:
        command = SelectFocus(None)
        self._submit(command)
        return command

    def quit(self) -> Quit:
        command = Quit()
        self._quit_requested = True
        self._submit(command)
        return command

    def execute(self, text: str, snapshot: Sequence[ProcessEnergyView]) -> Command:
        """Parse a console line and queue the resulting command.

        Raises:
            ConfigurationInvalidError: If the line is not a valid command.
        """
        command = parse_command(text, snapshot)
        if isinstance(command, Quit):
            self._quit_requested = True
        self._submit(command)
        return command
