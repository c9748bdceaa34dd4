"""Publish one telemetry snapshot as a fixed set of retained MQTT topics."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from host_telemetry.config import MqttConfig
from host_telemetry.errors import PublishError
from host_telemetry.telemetry.models import TelemetrySnapshot

LOG = logging.getLogger(__name__)

TOPIC_PREFIX = "home"
LASTDATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class Connection(Protocol):
    """The subset of :class:`BrokerConnection` a publisher depends on."""

    def ensure_connected(self) -> None:  # pragma: no cover - interface
        ...

    def publish(self, topic: str, payload: str, retained: bool = True) -> None:  # pragma: no cover - interface
        ...


@dataclass(slots=True)
class PublishRecord:
    """Bookkeeping updated by each publish cycle."""

    last_attempt: Optional[datetime] = None
    last_success: Optional[datetime] = None
    ignore_inbound: bool = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_mem_used(total_mem: int, avail_mem: int) -> str:
    """Return the used-memory percentage with one decimal place.

    A host reporting no total memory is published as ``0.0``.
    """
    if total_mem <= 0:
        return "0.0"
    return f"{(total_mem - avail_mem) / total_mem * 100:.1f}"


def build_messages(snapshot: TelemetrySnapshot, now: datetime) -> list[tuple[str, str]]:
    """Return the ordered ``(topic, payload)`` pairs for one snapshot."""
    base = f"{TOPIC_PREFIX}/{snapshot.host_name}"
    return [
        (f"{base}/lastdate", now.astimezone(timezone.utc).strftime(LASTDATE_FORMAT)),
        (f"{base}/cputemp", f"{snapshot.cpu_temp:.1f}"),
        (f"{base}/diskused", f"{snapshot.disk_used_percent:d}"),
        (f"{base}/memused", format_mem_used(snapshot.total_mem, snapshot.avail_mem)),
        (f"{base}/isthrottled", "1" if snapshot.is_throttled else "0"),
    ]


class TelemetryPublisher:
    """Send telemetry to the broker topic by topic, stopping at the first failure.

    Cycles are expected to be serialized by the caller; the publish record is
    not locked.
    """

    def __init__(
        self,
        connection: Connection,
        config: MqttConfig,
        *,
        clock: Callable[[], datetime] = _utcnow,
        logger: logging.Logger | None = None,
    ) -> None:
        self._connection = connection
        self._config = config
        self._clock = clock
        self._log = logger or LOG
        self.record = PublishRecord()

    @property
    def ignore_inbound(self) -> bool:
        return self.record.ignore_inbound

    def publish(self, snapshot: TelemetrySnapshot) -> None:
        """Publish ``snapshot``; raises ConnectError or PublishError on failure."""
        if not self._config.enabled:
            return

        self._log.info("Publishing telemetry to MQTT for host name %s", snapshot.host_name)
        self.record.last_attempt = self._clock()

        self._connection.ensure_connected()

        self.record.ignore_inbound = True
        for topic, payload in build_messages(snapshot, self._clock()):
            self._log.info("Publishing %s = %s", topic, payload)
            try:
                self._connection.publish(topic, payload, retained=True)
            except PublishError:
                self._log.error("Error publishing %s to MQTT broker.", topic)
                raise

        self.record.last_success = self._clock()
        self.record.ignore_inbound = False


__all__ = [
    "PublishRecord",
    "TelemetryPublisher",
    "build_messages",
    "format_mem_used",
]
