"""Host telemetry sampling."""

from host_telemetry.telemetry.models import TelemetrySnapshot
from host_telemetry.telemetry.provider import HostTelemetryProvider, TelemetryProvider

__all__ = [
    "HostTelemetryProvider",
    "TelemetryProvider",
    "TelemetrySnapshot",
]
