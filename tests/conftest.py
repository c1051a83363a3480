"""Shared fixtures for procwatt tests."""

from io import StringIO

import pytest

from procwatt.utils.logger import Logger


@pytest.fixture(autouse=True)
def log_output():
    """Configure the logger for every test and capture its output."""
    output = StringIO()
    Logger.configure(level="DEBUG", output=output, timestamps=False)
    yield output
    Logger.shutdown()
