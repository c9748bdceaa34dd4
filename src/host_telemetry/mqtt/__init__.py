"""MQTT transport: broker connection and telemetry publisher."""

from host_telemetry.mqtt.connection import BrokerConnection, ConnectionState, parse_broker_uri
from host_telemetry.mqtt.publisher import PublishRecord, TelemetryPublisher

__all__ = [
    "BrokerConnection",
    "ConnectionState",
    "PublishRecord",
    "TelemetryPublisher",
    "parse_broker_uri",
]
