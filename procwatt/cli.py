#!/usr/bin/env python3
"""procwatt CLI - per-process power attribution from the command line."""

import os
import sys

import click

from procwatt.config import Settings, load_settings
from procwatt.errors import ConfigurationInvalidError, StartupFailureError
from procwatt.utils.env import get_env
from procwatt.utils.logger import Logger

STARTUP_FAILURE_EXIT_CODE = 2


def _settings_options(func):
    """Options shared by every command that samples power."""
    options = [
        click.option(
            "--interval",
            "-i",
            type=int,
            default=None,
            help="Seconds between ticks (1-60, default 2)",
        ),
        click.option(
            "--config",
            "config_path",
            type=click.Path(exists=True, dir_okay=False),
            default=None,
            help="YAML configuration file",
        ),
        click.option(
            "--csv",
            "csv_path",
            type=click.Path(dir_okay=False),
            default=None,
            help="Write every tick's increments to a CSV file",
        ),
        click.option(
            "--log-file",
            type=click.Path(dir_okay=False),
            default=None,
            help="Write logs to this file",
        ),
        click.option(
            "--log-level",
            type=click.Choice(
                ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False
            ),
            default=None,
            help="Log level (default INFO)",
        ),
        click.option(
            "--metrics-url",
            default=None,
            help="Prometheus-compatible server providing power figures",
        ),
        click.option(
            "--simulate",
            "simulate_power_mw",
            type=float,
            default=None,
            metavar="POWER_MW",
            help="Use a constant package power instead of hardware counters",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _build_settings(
    interval,
    config_path,
    csv_path,
    log_file,
    log_level,
    metrics_url,
    simulate_power_mw,
) -> Settings:
    try:
        return load_settings(
            config_path,
            overrides={
                "interval_seconds": interval,
                "csv_path": csv_path,
                "log_file": log_file,
                "log_level": log_level,
                "metrics_url": metrics_url,
                "simulate_power_mw": simulate_power_mw,
            },
        )
    except ConfigurationInvalidError as e:
        raise click.ClickException(str(e)) from e


def _configure_logging(level, output) -> None:
    try:
        Logger.configure(level=level, output=output)
    except ConfigurationInvalidError as e:
        raise click.ClickException(str(e)) from e


def _startup_failed(error: StartupFailureError) -> None:
    click.echo(f"Error: {error}", err=True)
    Logger.shutdown()
    sys.exit(STARTUP_FAILURE_EXIT_CODE)


@click.group()
def procwatt():
    """procwatt attributes CPU package power to individual processes."""
    # Configure logger at startup if not already configured
    if not Logger.is_configured():
        _configure_logging(get_env("PROCWATT_LOG_LEVEL", default="INFO"), "stderr")


@procwatt.command()
@_settings_options
def monitor(
    interval,
    config_path,
    csv_path,
    log_file,
    log_level,
    metrics_url,
    simulate_power_mw,
):
    r"""Live dashboard of per-process energy.

    \b
    Keys:
      q        quit
      + / -    change the interval by one second
      1-9      focus the process at that rank (0 clears)
      :        command line (interval N, focus N, quit)
    """
    from procwatt.commands.monitor_tui import run_monitor_tui
    from procwatt.session import MonitorSession

    settings = _build_settings(
        interval,
        config_path,
        csv_path,
        log_file,
        log_level,
        metrics_url,
        simulate_power_mw,
    )

    # Log output would corrupt the curses screen
    _configure_logging(settings.log_level, settings.log_file or os.devnull)

    try:
        with MonitorSession(settings) as session:
            try:
                run_monitor_tui(session)
            except KeyboardInterrupt:
                pass
    except StartupFailureError as e:
        _startup_failed(e)
    finally:
        Logger.shutdown()


@procwatt.command()
@_settings_options
@click.option(
    "--duration",
    "-d",
    type=float,
    default=None,
    help="Stop after this many seconds (default: until Ctrl+C)",
)
@click.option(
    "--top",
    "top_n",
    type=click.IntRange(min=1),
    default=3,
    show_default=True,
    help="Processes shown per line",
)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Per-tick output format",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the final session report to a JSON file",
)
def top(
    interval,
    config_path,
    csv_path,
    log_file,
    log_level,
    metrics_url,
    simulate_power_mw,
    duration,
    top_n,
    fmt,
    output,
):
    r"""Print one line per tick, then a session summary.

    \b
    Examples:
      procwatt top                       # Until Ctrl+C
      procwatt top -i 5 -d 60            # One minute at 5s ticks
      procwatt top -o report.json        # Save the final ranking
      procwatt top --simulate 15000      # Fixed 15 W package power
    """
    from procwatt.commands.top_cmd import run_top

    settings = _build_settings(
        interval,
        config_path,
        csv_path,
        log_file,
        log_level,
        metrics_url,
        simulate_power_mw,
    )
    _configure_logging(settings.log_level, settings.log_file or "stderr")

    if duration is not None and duration <= 0:
        raise click.BadParameter("must be greater than zero", param_hint="--duration")

    try:
        run_top(
            settings,
            duration_seconds=duration,
            top_n_processes=top_n,
            output_format=fmt,
            output_file=output,
        )
    except StartupFailureError as e:
        _startup_failed(e)
    finally:
        Logger.shutdown()


@procwatt.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML configuration file",
)
@click.option(
    "--metrics-url",
    default=None,
    help="Prometheus-compatible server providing power figures",
)
def sources(config_path, metrics_url):
    """List power backends available on this system."""
    from procwatt.commands.sources_cmd import show_power_sources

    try:
        settings = load_settings(config_path, overrides={"metrics_url": metrics_url})
    except ConfigurationInvalidError as e:
        raise click.ClickException(str(e)) from e

    show_power_sources(settings)


@procwatt.command()
def version():
    """Display procwatt version information."""
    from procwatt import __version__

    click.echo(f"procwatt {__version__}")


if __name__ == "__main__":
    procwatt()
