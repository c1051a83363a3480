"""Data models for procwatt."""

from procwatt.models.energy_models import (
    EngineStatus,
    ProcessEnergyView,
    ProcessIncrement,
    TickSummary,
)
from procwatt.models.power_models import (
    PowerDomain,
    PowerSample,
    PowerSourceKind,
    UtilizationSample,
)
from procwatt.models.report_models import ProcessEnergyEntry, SessionReport

__all__ = [
    "EngineStatus",
    "PowerDomain",
    "PowerSample",
    "PowerSourceKind",
    "ProcessEnergyEntry",
    "ProcessEnergyView",
    "ProcessIncrement",
    "SessionReport",
    "TickSummary",
    "UtilizationSample",
]
