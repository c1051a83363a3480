"""Pydantic models for the end-of-session JSON report."""

from __future__ import annotations

import time
from datetime import datetime

from pydantic import BaseModel, Field

from procwatt.models.energy_models import EngineStatus, ProcessEnergyView


class ProcessEnergyEntry(BaseModel):
    """One ranked process in the session report."""

    rank: int = Field(..., ge=1, description="Rank by cumulative CPU energy")
    name: str = Field(..., description="Process name (instances merged)")
    cpu_energy_mj: float = Field(
        ..., ge=0, description="Cumulative energy attributed from package power"
    )
    system_energy_mj: float = Field(
        ..., ge=0, description="Cumulative energy attributed from system power"
    )
    last_utilization_percent: float = Field(
        ..., ge=0, description="CPU utilization in the last tick it was seen"
    )
    last_power_mw: float | None = Field(
        ..., description="Package power share in the last tick it was seen"
    )
    average_power_mw: float = Field(
        ..., ge=0, description="Mean package power share over retained history"
    )
    tick_count: int = Field(..., ge=0, description="Ticks that touched this process")


class SessionReport(BaseModel):
    """Accumulated state at the end of a monitoring session."""

    generated_at: str = Field(..., description="ISO timestamp of the report")
    runtime_seconds: float = Field(..., ge=0, description="Session wall-clock runtime")
    tick_count: int = Field(..., ge=0, description="Ticks executed")
    degraded_ticks: int = Field(..., ge=0, description="Ticks with missing samples")
    interval_seconds: int = Field(..., ge=1, le=60, description="Final tick interval")
    cpu_energy_mj: float = Field(..., ge=0, description="Total attributed CPU energy")
    system_energy_mj: float = Field(
        ..., ge=0, description="Total attributed system energy"
    )
    processes: list[ProcessEnergyEntry] = Field(
        default_factory=list, description="Processes ranked by CPU energy"
    )

    @classmethod
    def build(
        cls,
        status: EngineStatus,
        snapshot: list[ProcessEnergyView],
        top_n: int | None = None,
    ) -> SessionReport:
        """Build a report from engine status and a ranked snapshot."""
        views = snapshot if top_n is None else snapshot[:top_n]
        return cls(
            generated_at=datetime.fromtimestamp(time.time()).isoformat(),
            runtime_seconds=round(status.runtime_seconds, 3),
            tick_count=status.tick_count,
            degraded_ticks=status.degraded_ticks,
            interval_seconds=status.interval_seconds,
            cpu_energy_mj=round(status.cpu_energy_mj, 3),
            system_energy_mj=round(status.system_energy_mj, 3),
            processes=[
                ProcessEnergyEntry(
                    rank=rank,
                    name=view.identity,
                    cpu_energy_mj=round(view.cpu_energy_mj, 3),
                    system_energy_mj=round(view.system_energy_mj, 3),
                    last_utilization_percent=round(view.last_utilization_percent, 2),
                    last_power_mw=(
                        round(view.last_power_mw, 3)
                        if view.last_power_mw is not None
                        else None
                    ),
                    average_power_mw=round(view.average_power_mw, 3),
                    tick_count=view.tick_count,
                )
                for rank, view in enumerate(views, start=1)
            ],
        )
