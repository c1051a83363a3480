"""Attribution engine, accumulated state, and the tick loop."""

from procwatt.core.accumulator import EnergyAccumulator
from procwatt.core.control import (
    Command,
    EngineController,
    Quit,
    SelectFocus,
    SetInterval,
    parse_command,
    resolve_focus,
)
from procwatt.core.engine import AttributionEngine, EngineConfig
from procwatt.core.records import ProcessEnergyRecord
from procwatt.core.ring_buffer import RingBuffer
from procwatt.core.scheduler import TickScheduler
from procwatt.core.store import AccumulatedStateStore, StoreWriter

__all__ = [
    "AccumulatedStateStore",
    "AttributionEngine",
    "Command",
    "EnergyAccumulator",
    "EngineConfig",
    "EngineController",
    "ProcessEnergyRecord",
    "Quit",
    "RingBuffer",
    "SelectFocus",
    "SetInterval",
    "StoreWriter",
    "TickScheduler",
    "parse_command",
    "resolve_focus",
]
