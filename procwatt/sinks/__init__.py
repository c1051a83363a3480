"""Optional diagnostic sinks for tick data."""

from procwatt.sinks.base import TickSink
from procwatt.sinks.csv_sink import CSV_COLUMNS, CsvTickSink

__all__ = [
    "CSV_COLUMNS",
    "CsvTickSink",
    "TickSink",
]
