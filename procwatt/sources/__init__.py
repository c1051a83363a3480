"""Power and utilization sample sources."""

from procwatt.sources.base import (
    PowerSampleSource,
    SampleSource,
    UtilizationSampleSource,
)
from procwatt.sources.composite import CompositePowerSource
from procwatt.sources.factory import (
    create_power_source,
    create_utilization_source,
    probe_power_sources,
)
from procwatt.sources.metrics_server import MetricsServerPowerSource
from procwatt.sources.powermetrics import PowermetricsPowerSource
from procwatt.sources.process_util import PsutilUtilizationSource
from procwatt.sources.rapl import RaplPowerSource
from procwatt.sources.static import StaticPowerSource, StaticUtilizationSource

__all__ = [
    "CompositePowerSource",
    "MetricsServerPowerSource",
    "PowerSampleSource",
    "PowermetricsPowerSource",
    "PsutilUtilizationSource",
    "RaplPowerSource",
    "SampleSource",
    "StaticPowerSource",
    "StaticUtilizationSource",
    "UtilizationSampleSource",
    "create_power_source",
    "create_utilization_source",
    "probe_power_sources",
]
