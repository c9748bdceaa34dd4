"""Scheduler-facing upload cycle."""

from __future__ import annotations

import logging
from typing import Optional

from host_telemetry.config import AppConfig
from host_telemetry.errors import ConfigError, ConnectError, TelemetryError
from host_telemetry.mqtt.connection import BrokerConnection
from host_telemetry.mqtt.publisher import TelemetryPublisher
from host_telemetry.telemetry.provider import HostTelemetryProvider, TelemetryProvider

LOG = logging.getLogger(__name__)


class Uploader:
    """Fetch a snapshot and hand it to the publisher once per scheduler tick.

    ``run`` never raises: every failure ends the current cycle, is logged,
    and the next tick simply tries again.
    """

    def __init__(
        self,
        provider: TelemetryProvider,
        publisher: TelemetryPublisher,
        connection: Optional[BrokerConnection] = None,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self.provider = provider
        self.publisher = publisher
        self.connection = connection
        self._log = logger or LOG

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        provider: Optional[TelemetryProvider] = None,
        *,
        logger: logging.Logger | None = None,
    ) -> Uploader:
        """Build and initialize the connection/publisher pair.

        Initialization failures are logged and left for the first cycle's
        reconnect attempt to surface again.
        """
        log = logger or LOG
        connection = BrokerConnection(logger=log)
        try:
            connection.initialize(config.mqtt)
        except (ConfigError, ConnectError) as exc:
            log.error("MQTT initialization failed: %s", exc)
        publisher = TelemetryPublisher(connection, config.mqtt, logger=log)
        if provider is None:
            provider = HostTelemetryProvider(disk_path=config.disk_path)
        return cls(provider, publisher, connection, logger=log)

    def run(self) -> None:
        try:
            snapshot = self.provider.snapshot()
        except Exception as exc:
            self._log.error("Error getting device status. %s", exc)
            return

        try:
            self.publisher.publish(snapshot)
        except TelemetryError as exc:
            self._log.error("Error sending telemetry to MQTT: %s", exc)

    def close(self) -> None:
        if self.connection is not None:
            self.connection.close()

    def __enter__(self) -> "Uploader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["Uploader"]
