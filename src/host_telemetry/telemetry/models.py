"""Typed telemetry models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class TelemetrySnapshot:
    """Point-in-time read of host metrics; memory values are in bytes."""

    host_name: str
    cpu_temp: float
    disk_used_percent: int
    total_mem: int
    avail_mem: int
    is_throttled: bool
