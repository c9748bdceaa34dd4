"""Host telemetry provider backed by psutil.

CPU temperature and throttling are read the way a Raspberry Pi exposes them
(``cpu_thermal`` sensor, ``vcgencmd get_throttled``) with fallbacks that keep
the provider usable on ordinary Linux hosts.
"""

from __future__ import annotations

import logging
import shutil
import socket
import subprocess
from pathlib import Path
from typing import Protocol

import psutil

from host_telemetry.errors import ProviderError
from host_telemetry.telemetry.models import TelemetrySnapshot

LOG = logging.getLogger(__name__)

_SENSOR_NAMES = ("cpu_thermal", "coretemp", "k10temp", "acpitz")
_THERMAL_ZONE = Path("/sys/class/thermal/thermal_zone0/temp")
_VCGENCMD_TIMEOUT_S = 2.0


class TelemetryProvider(Protocol):
    """Anything able to produce a fresh snapshot on demand."""

    def snapshot(self) -> TelemetrySnapshot:  # pragma: no cover - interface
        ...


class HostTelemetryProvider:
    """Sample the local host for each upload cycle."""

    def __init__(self, disk_path: str = "/", thermal_zone: Path = _THERMAL_ZONE) -> None:
        self._disk_path = disk_path
        self._thermal_zone = thermal_zone

    def snapshot(self) -> TelemetrySnapshot:
        try:
            vm = psutil.virtual_memory()
            du = psutil.disk_usage(self._disk_path)
        except (OSError, psutil.Error) as exc:
            raise ProviderError(f"Unable to read host metrics: {exc}") from exc

        return TelemetrySnapshot(
            host_name=socket.gethostname(),
            cpu_temp=self._cpu_temp(),
            disk_used_percent=int(du.percent),
            total_mem=int(vm.total),
            avail_mem=int(vm.available),
            is_throttled=self._is_throttled(),
        )

    def _cpu_temp(self) -> float:
        try:
            temps = psutil.sensors_temperatures()
        except (AttributeError, OSError):
            # sensors_temperatures is missing on some platforms
            temps = {}

        for name in _SENSOR_NAMES:
            entries = temps.get(name)
            if entries and entries[0].current is not None:
                return float(entries[0].current)

        try:
            raw = self._thermal_zone.read_text(encoding="utf-8").strip()
        except OSError:
            LOG.debug("No CPU temperature source available")
            return 0.0
        try:
            return int(raw) / 1000.0
        except ValueError as exc:
            raise ProviderError(f"Unexpected thermal zone value: {raw!r}") from exc

    def _is_throttled(self) -> bool:
        vcgencmd = shutil.which("vcgencmd")
        if vcgencmd is None:
            return False
        try:
            result = subprocess.run(
                [vcgencmd, "get_throttled"],
                capture_output=True,
                text=True,
                check=True,
                timeout=_VCGENCMD_TIMEOUT_S,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise ProviderError(f"vcgencmd get_throttled failed: {exc}") from exc
        return parse_throttled(result.stdout)


def parse_throttled(output: str) -> bool:
    """Interpret ``vcgencmd get_throttled`` output such as ``throttled=0x50005``."""
    _, sep, value = output.strip().partition("=")
    if not sep:
        raise ProviderError(f"Unexpected vcgencmd output: {output!r}")
    try:
        return int(value, 16) != 0
    except ValueError as exc:
        raise ProviderError(f"Unexpected vcgencmd output: {output!r}") from exc


__all__ = ["TelemetryProvider", "HostTelemetryProvider", "parse_throttled"]
