"""Long-lived MQTT broker connection built on paho-mqtt.

The connection owns a single paho client for the life of the process.
paho runs its network loop on a background thread and reports connection
loss through callbacks; those callbacks only ever update the connection
state, which is guarded by a lock. The client is built with paho's
automatic reconnect turned off, so the loop thread exits when the link
drops and reconnecting is left to :meth:`BrokerConnection.ensure_connected`
on the upload cycle's thread. Every other operation is a blocking call made
from that thread too.
"""

from __future__ import annotations

import enum
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

import paho.mqtt.client as mqtt  # type: ignore[import]

from host_telemetry.config import MqttConfig
from host_telemetry.errors import ConfigError, ConnectError, PublishError

LOG = logging.getLogger(__name__)

DISCONNECT_GRACE_S = 0.25
PUBLISH_TIMEOUT_S = 10.0
KEEPALIVE_S = 60


class ConnectionState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class BrokerAddress:
    """Broker endpoint parsed from a URI such as ``tcp://host:1883``."""

    host: str
    port: int
    tls: bool = False
    transport: str = "tcp"
    path: str = "/mqtt"


_SCHEMES: dict[str, tuple[int, bool, str]] = {
    "tcp": (1883, False, "tcp"),
    "mqtt": (1883, False, "tcp"),
    "ssl": (8883, True, "tcp"),
    "tls": (8883, True, "tcp"),
    "mqtts": (8883, True, "tcp"),
    "ws": (80, False, "websockets"),
    "wss": (443, True, "websockets"),
}


def parse_broker_uri(uri: str) -> BrokerAddress:
    """Split a broker URI into host, port and transport settings.

    A bare ``host`` or ``host:port`` is treated as ``tcp://``.
    """
    text = uri.strip()
    if "://" not in text:
        text = f"tcp://{text}"
    parts = urlsplit(text)
    scheme = parts.scheme.lower()
    if scheme not in _SCHEMES:
        raise ConfigError("broker", f"Unsupported broker scheme: {parts.scheme!r}")
    default_port, tls, transport = _SCHEMES[scheme]
    try:
        port = parts.port or default_port
    except ValueError as exc:
        raise ConfigError("broker", f"Invalid broker port in {uri!r}") from exc
    if not parts.hostname:
        raise ConfigError("broker", f"Broker URI has no host: {uri!r}")
    return BrokerAddress(
        host=parts.hostname,
        port=port,
        tls=tls,
        transport=transport,
        path=parts.path or "/mqtt",
    )


class BrokerConnection:
    """Connect, reconnect on demand and disconnect from one MQTT broker."""

    def __init__(
        self,
        *,
        logger: logging.Logger | None = None,
        grace_period_s: float = DISCONNECT_GRACE_S,
        publish_timeout_s: float = PUBLISH_TIMEOUT_S,
    ) -> None:
        self._log = logger or LOG
        self._grace_period_s = grace_period_s
        self._publish_timeout_s = publish_timeout_s
        self._lock = threading.Lock()
        self._state = ConnectionState.UNINITIALIZED
        self._client: Any = None
        self._config: Optional[MqttConfig] = None
        self._connack = threading.Event()
        self._connack_error: Optional[str] = None
        self._pending: list[Any] = []

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def initialize(self, config: MqttConfig) -> None:
        """Validate ``config`` and connect, blocking until the handshake ends.

        A disabled configuration is a no-op. A missing broker, username or
        password disables MQTT on ``config`` and raises :class:`ConfigError`.
        """
        if not config.enabled:
            self._log.info("MQTT has been disabled")
            return
        for field_name, label in (
            ("broker", "MQTT broker"),
            ("username", "MQTT username"),
            ("password", "MQTT password"),
        ):
            if not getattr(config, field_name):
                self._log.error("%s has not been configured.", label)
                config.enabled = False
                raise ConfigError(field_name)
        if self.state is ConnectionState.CLOSED:
            raise ConnectError("MQTT connection has been closed")

        try:
            address = parse_broker_uri(config.broker)
        except ConfigError:
            self._log.error("MQTT broker address %r is invalid.", config.broker)
            config.enabled = False
            raise

        with self._lock:
            previous = self._client
            was_connected = self._state is ConnectionState.CONNECTED
            self._client = None
        if previous is not None:
            self._log.info("Replacing the existing MQTT client")
            self._release(previous, was_connected)

        self._config = config
        self._client = self._create_client(config, address)
        self._log.info("Connecting to the MQTT broker %s", config.broker)
        self._handshake(
            lambda: self._client.connect(address.host, address.port, keepalive=KEEPALIVE_S)
        )

    def ensure_connected(self) -> None:
        """Make one blocking reconnect attempt unless already connected."""
        state = self.state
        if state is ConnectionState.CONNECTED:
            return
        if self._client is None or state is ConnectionState.CLOSED:
            raise ConnectError("MQTT connection has not been initialized")
        self._log.info("Reconnecting to MQTT broker")
        # join the exited (or stalled) loop thread before opening a new socket
        self._client.loop_stop()
        self._handshake(self._client.reconnect)

    def publish(self, topic: str, payload: str, retained: bool = True) -> None:
        """Send one QoS 0 message, blocking until paho has written it."""
        if self.state is not ConnectionState.CONNECTED:
            raise PublishError(topic, "not connected to the MQTT broker")
        try:
            info = self._client.publish(topic, payload, qos=0, retain=retained)
        except (OSError, ValueError) as exc:
            raise PublishError(topic, str(exc)) from exc
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(topic, mqtt.error_string(info.rc))
        try:
            info.wait_for_publish(timeout=self._publish_timeout_s)
        except (RuntimeError, ValueError) as exc:
            raise PublishError(topic, str(exc)) from exc
        if not info.is_published():
            self._pending.append(info)
            raise PublishError(topic, "timed out waiting for the message to be sent")

    def close(self) -> None:
        """Disconnect after a short grace period; safe to call repeatedly."""
        with self._lock:
            client = self._client
            was_connected = self._state is ConnectionState.CONNECTED
            self._state = ConnectionState.CLOSED
            self._client = None
        if client is None:
            return
        self._release(client, was_connected)
        self._log.info("MQTT connection closed")

    def _release(self, client: Any, was_connected: bool) -> None:
        if was_connected:
            self._drain_pending(time.monotonic() + self._grace_period_s)
            try:
                client.disconnect()
            except (OSError, ValueError) as exc:
                self._log.warning("Error disconnecting from MQTT broker: %s", exc)
        client.loop_stop()
        self._pending.clear()

    def _create_client(self, config: MqttConfig, address: BrokerAddress) -> Any:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id or "",
            transport=address.transport,
            reconnect_on_failure=False,
        )
        client.username_pw_set(config.username, config.password)
        if address.tls:
            client.tls_set()
        if address.transport == "websockets":
            client.ws_set_options(path=address.path)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        return client

    def _handshake(self, start: Callable[[], Any]) -> None:
        """Run ``start`` and wait for the broker's CONNACK."""
        timeout = self._config.connect_timeout_s if self._config else 10.0
        self._connack.clear()
        self._connack_error = None
        self._set_state(ConnectionState.CONNECTING)
        try:
            start()
        except (OSError, ValueError) as exc:
            self._set_state(ConnectionState.DISCONNECTED)
            self._log.error("Error connecting to MQTT broker. %s", exc)
            raise ConnectError(f"Error connecting to MQTT broker: {exc}") from exc

        self._client.loop_start()
        if not self._connack.wait(timeout):
            self._set_state(ConnectionState.DISCONNECTED)
            self._log.error("Timed out waiting for MQTT broker handshake")
            raise ConnectError(
                f"Timed out after {timeout:.1f}s waiting for MQTT broker handshake"
            )
        if self._connack_error is not None:
            self._log.error("MQTT broker refused connection: %s", self._connack_error)
            raise ConnectError(f"MQTT broker refused connection: {self._connack_error}")

    def _set_state(self, state: ConnectionState) -> None:
        with self._lock:
            if self._state is not ConnectionState.CLOSED:
                self._state = state

    def _on_connect(
        self, client: Any, userdata: Any, flags: Any, reason_code: Any, properties: Any = None
    ) -> None:
        if getattr(reason_code, "is_failure", False):
            self._connack_error = str(reason_code)
            self._set_state(ConnectionState.DISCONNECTED)
        else:
            self._connack_error = None
            self._set_state(ConnectionState.CONNECTED)
            self._log.info("Connected to the MQTT broker.")
        self._connack.set()

    def _on_disconnect(
        self,
        client: Any,
        userdata: Any,
        disconnect_flags: Any,
        reason_code: Any,
        properties: Any = None,
    ) -> None:
        with self._lock:
            if self._state is ConnectionState.CLOSED:
                return
            self._state = ConnectionState.DISCONNECTED
        self._log.error("Disconnected from MQTT broker. %s", reason_code)

    def _drain_pending(self, deadline: float) -> None:
        for info in self._pending:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            try:
                info.wait_for_publish(timeout=remaining)
            except (RuntimeError, ValueError):
                continue


__all__ = [
    "BrokerAddress",
    "BrokerConnection",
    "ConnectionState",
    "DISCONNECT_GRACE_S",
    "parse_broker_uri",
]
