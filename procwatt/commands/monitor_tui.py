"""Text-based UI for live per-process energy attribution."""

from __future__ import annotations

import curses
import time
from typing import TYPE_CHECKING, Any

from procwatt.core.control import EngineController
from procwatt.errors import ConfigurationInvalidError, RecordNotFoundError
from procwatt.models.energy_models import EngineStatus, ProcessEnergyView
from procwatt.utils.formatting import (
    NOT_AVAILABLE,
    format_duration,
    format_energy_mj,
    format_percent,
    format_power_mw,
    sparkline,
)

if TYPE_CHECKING:
    from procwatt.session import MonitorSession

    _CursesWindow = Any  # curses window type
else:
    _CursesWindow = object

HEADER_ROWS = 6
FOCUS_ROWS = 5
RENDER_PERIOD_SECONDS = 0.5

_ENTER_KEYS = (10, 13, curses.KEY_ENTER)
_BACKSPACE_KEYS = (8, 127, curses.KEY_BACKSPACE)
_ESCAPE = 27


class MonitorState:
    """Input and display state for the monitor TUI.

    Holds the latest ranking so rank keys resolve against what the operator
    is looking at, not against a newer tick.
    """

    def __init__(self, controller: EngineController, interval_seconds: int) -> None:
        self.controller = controller
        self.interval_seconds = interval_seconds
        self.snapshot: list[ProcessEnergyView] = []
        self.command_mode = False
        self.command_buffer = ""
        self.message = ""

    def handle_key(self, ch: int) -> bool:
        """Apply one key press.

        Returns:
            True if the screen needs to be redrawn.
        """
        if ch == -1:
            return False
        if self.command_mode:
            return self._handle_command_key(ch)

        try:
            if ch == ord("q"):
                self.controller.quit()
            elif ch in (ord("+"), ord("=")):
                command = self.controller.set_interval(self.interval_seconds + 1)
                self.interval_seconds = command.seconds
                self.message = f"Interval {command.seconds}s"
            elif ch == ord("-"):
                command = self.controller.set_interval(self.interval_seconds - 1)
                self.interval_seconds = command.seconds
                self.message = f"Interval {command.seconds}s"
            elif ord("1") <= ch <= ord("9"):
                focus = self.controller.select_focus(ch - ord("0"), self.snapshot)
                self.message = f"Focus: {focus.identity}"
            elif ch == ord("0"):
                self.controller.clear_focus()
                self.message = "Focus cleared"
            elif ch == ord(":"):
                self.command_mode = True
                self.command_buffer = ""
                self.message = ""
            else:
                return False
        except ConfigurationInvalidError as e:
            self.message = str(e)
        return True

    def _handle_command_key(self, ch: int) -> bool:
        if ch in _ENTER_KEYS:
            text = self.command_buffer
            self.command_mode = False
            self.command_buffer = ""
            if not text.strip():
                return True
            try:
                command = self.controller.execute(text, self.snapshot)
            except ConfigurationInvalidError as e:
                self.message = str(e)
                return True
            seconds = getattr(command, "seconds", None)
            if seconds is not None:
                self.interval_seconds = seconds
            self.message = f"OK: {text.strip()}"
        elif ch == _ESCAPE:
            self.command_mode = False
            self.command_buffer = ""
        elif ch in _BACKSPACE_KEYS:
            self.command_buffer = self.command_buffer[:-1]
        elif 32 <= ch < 127:
            self.command_buffer += chr(ch)
        else:
            return False
        return True


def run_monitor_tui(session: MonitorSession) -> None:
    """Run the curses dashboard until the operator quits.

    Args:
        session: An entered MonitorSession; sampling is already running.
    """
    curses.wrapper(_curses_main, session)


def _curses_main(stdscr: _CursesWindow, session: MonitorSession) -> None:
    curses.curs_set(0)
    stdscr.nodelay(True)
    stdscr.timeout(100)  # 100ms timeout for responsive input

    assert session.controller is not None and session.scheduler is not None
    state = MonitorState(session.controller, session.config.interval_seconds)
    last_render = 0.0
    last_version = -1
    needs_render = True

    while not session.scheduler.stop_requested and not state.controller.quit_requested:
        ch = stdscr.getch()
        if ch == curses.KEY_RESIZE:
            needs_render = True
        elif state.handle_key(ch):
            needs_render = True

        now = time.monotonic()
        version = session.store.version
        if version != last_version or now - last_render >= RENDER_PERIOD_SECONDS:
            needs_render = True

        if needs_render:
            state.snapshot = session.snapshot()
            status = session.status()
            state.interval_seconds = status.interval_seconds
            _render(stdscr, state, status, session)
            last_render = now
            last_version = version
            needs_render = False


def _render(
    stdscr: _CursesWindow,
    state: MonitorState,
    status: EngineStatus,
    session: MonitorSession,
) -> None:
    stdscr.erase()
    height, width = stdscr.getmaxyx()

    _render_header(stdscr, status, session, width)
    table_rows = max(height - HEADER_ROWS - FOCUS_ROWS - 2, 1)
    _render_table(stdscr, HEADER_ROWS, state.snapshot[:table_rows], status.focus)
    _render_focus(stdscr, height - FOCUS_ROWS - 1, status.focus, session, width)
    _render_footer(stdscr, height - 1, state)

    stdscr.refresh()


def _render_header(
    stdscr: _CursesWindow,
    status: EngineStatus,
    session: MonitorSession,
    width: int,
) -> None:
    """Render the title, session counters, and current power readings."""
    _safe_addstr(stdscr, 0, 0, "procwatt", curses.A_BOLD)
    _safe_addstr(stdscr, 0, 40, time.strftime("%Y-%m-%d %H:%M:%S"))

    source = session.engine.power_source.name if session.engine else NOT_AVAILABLE
    _safe_addstr(
        stdscr,
        1,
        0,
        f"Runtime {format_duration(status.runtime_seconds)}  "
        f"Ticks {status.tick_count}  "
        f"Interval {status.interval_seconds}s  "
        f"Source {source}",
    )

    last = status.last_tick
    package = last.package_power_mw if last else None
    system = last.system_power_mw if last else None
    total_cpu = last.total_cpu_percent if last else None
    _safe_addstr(
        stdscr,
        2,
        0,
        f"Package {format_power_mw(package):>10}  "
        f"System {format_power_mw(system):>10}  "
        f"CPU {format_percent(total_cpu):>7}",
    )
    _safe_addstr(
        stdscr,
        3,
        0,
        f"Energy  CPU {format_energy_mj(status.cpu_energy_mj)}  "
        f"System {format_energy_mj(status.system_energy_mj)}  "
        f"Processes {status.record_count}",
    )

    if status.degraded_warning:
        reason = "; ".join(last.reasons) if last else ""
        _safe_addstr(
            stdscr,
            4,
            0,
            f"DEGRADED: {status.consecutive_degraded} ticks without data {reason}",
            curses.A_BOLD | curses.A_REVERSE,
        )
    else:
        _safe_addstr(
            stdscr, 4, 0, "q quit  +/- interval  1-9 focus  0 clear  : command"
        )
    _safe_hline(stdscr, 5, 0, "=", min(width, 80))


def _render_table(
    stdscr: _CursesWindow,
    row: int,
    views: list[ProcessEnergyView],
    focus: str | None,
) -> None:
    """Render the ranked process table."""
    header = (
        f"{'#':>3} {'NAME':<24} {'CPU%':>7} {'POWER':>10} "
        f"{'CPU ENERGY':>11} {'SYS ENERGY':>11}"
    )
    _safe_addstr(stdscr, row, 0, header, curses.A_BOLD)
    row += 1

    if not views:
        _safe_addstr(stdscr, row, 2, "Waiting for data…")
        return

    for rank, view in enumerate(views, start=1):
        system = (
            format_energy_mj(view.system_energy_mj)
            if view.last_system_power_mw is not None or view.system_energy_mj > 0
            else NOT_AVAILABLE
        )
        line = (
            f"{rank:>3} {view.identity[:24]:<24} "
            f"{format_percent(view.last_utilization_percent):>7} "
            f"{format_power_mw(view.last_power_mw):>10} "
            f"{format_energy_mj(view.cpu_energy_mj):>11} "
            f"{system:>11}"
        )
        attr = curses.A_REVERSE if view.identity == focus else 0
        _safe_addstr(stdscr, row, 0, line, attr)
        row += 1


def _render_focus(
    stdscr: _CursesWindow,
    row: int,
    focus: str | None,
    session: MonitorSession,
    width: int,
) -> None:
    """Render the focused process's power history."""
    _safe_hline(stdscr, row, 0, "-", min(width, 80))
    row += 1
    if focus is None:
        _safe_addstr(stdscr, row, 0, "No process focused (press 1-9)")
        return

    try:
        view = session.store.get(focus)
    except RecordNotFoundError:
        _safe_addstr(stdscr, row, 0, f"{focus}: no data")
        return

    _safe_addstr(stdscr, row, 0, view.identity, curses.A_BOLD)
    _safe_addstr(
        stdscr,
        row + 1,
        0,
        f"Now {format_power_mw(view.last_power_mw)}  "
        f"Avg {format_power_mw(view.average_power_mw)}  "
        f"Peak {format_power_mw(max(view.power_history, default=0.0))}  "
        f"Ticks {view.tick_count}",
    )
    _safe_addstr(
        stdscr, row + 2, 0, sparkline(view.power_history, width=max(width - 1, 1))
    )


def _render_footer(stdscr: _CursesWindow, row: int, state: MonitorState) -> None:
    if state.command_mode:
        _safe_addstr(stdscr, row, 0, f":{state.command_buffer}", curses.A_BOLD)
    elif state.message:
        _safe_addstr(stdscr, row, 0, state.message)


def _safe_addstr(
    stdscr: _CursesWindow,
    row: int,
    col: int,
    text: str | None = None,
    attr: int = 0,
) -> None:
    try:
        if text is None:
            text = ""
        stdscr.addstr(row, col, text, attr)
    except curses.error:
        pass


def _safe_hline(stdscr: _CursesWindow, row: int, col: int, ch: str, width: int) -> None:
    try:
        stdscr.hline(row, col, ch, width)
    except curses.error:
        pass
