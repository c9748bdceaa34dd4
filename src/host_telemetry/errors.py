"""Exception hierarchy shared by the telemetry uploader components."""

from __future__ import annotations


class TelemetryError(RuntimeError):
    """Base class for failures that end a single upload cycle."""


class ConfigError(TelemetryError):
    """Raised when a required MQTT setting is missing or malformed."""

    def __init__(self, field: str, message: str | None = None) -> None:
        self.field = field
        super().__init__(message or f"{field} has not been configured")


class ConnectError(TelemetryError):
    """Raised when the broker connection or handshake fails."""


class PublishError(TelemetryError):
    """Raised when a single topic could not be handed to the broker."""

    def __init__(self, topic: str, message: str) -> None:
        self.topic = topic
        super().__init__(f"{topic}: {message}")


class ProviderError(TelemetryError):
    """Raised when host telemetry could not be sampled."""


__all__ = [
    "TelemetryError",
    "ConfigError",
    "ConnectError",
    "PublishError",
    "ProviderError",
]
