"""Broker reachability probe used by the diagnostics command."""

from __future__ import annotations

import socket
import ssl
import time
from dataclasses import dataclass

from host_telemetry.mqtt.connection import BrokerAddress


@dataclass(slots=True)
class BrokerProbe:
    """What a single connection attempt to the broker endpoint found."""

    host: str
    port: int
    reachable: bool
    tls_checked: bool = False
    latency_ms: float | None = None
    error: str | None = None


def probe_broker(address: BrokerAddress, timeout: float = 2.0) -> BrokerProbe:
    """Open a TCP connection to ``address``.

    Secure schemes also complete a TLS handshake against the system trust
    store, which catches certificate problems paho would only report as a
    failed connect. No MQTT packets are sent.
    """
    started = time.perf_counter()
    try:
        sock = socket.create_connection((address.host, address.port), timeout=timeout)
    except OSError as exc:
        return BrokerProbe(address.host, address.port, reachable=False, error=str(exc))

    with sock:
        if address.tls:
            context = ssl.create_default_context()
            try:
                with context.wrap_socket(sock, server_hostname=address.host):
                    pass
            except OSError as exc:
                return BrokerProbe(
                    address.host,
                    address.port,
                    reachable=False,
                    tls_checked=True,
                    error=f"TLS handshake failed: {exc}",
                )
        elapsed_ms = (time.perf_counter() - started) * 1000

    return BrokerProbe(
        address.host,
        address.port,
        reachable=True,
        tls_checked=address.tls,
        latency_ms=round(elapsed_ms, 1),
    )
