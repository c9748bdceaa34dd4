"""One-shot publish command that reports the cycle outcome as an exit code."""

from __future__ import annotations

from argparse import Namespace

from host_telemetry import config as config_module
from host_telemetry.commands.run import load_app_config
from host_telemetry.errors import TelemetryError
from host_telemetry.uploader import Uploader


def run_publish(args: Namespace) -> int:
    """Sample the host once and publish it, returning non-zero on failure."""
    config_path = config_module.resolve_config_path(getattr(args, "config", None))
    app_config = load_app_config(config_path)
    if app_config is None:
        return 1

    with Uploader.from_config(app_config) as uploader:
        if not app_config.mqtt.enabled:
            print("MQTT publishing is disabled; nothing to publish")
            return 1
        try:
            snapshot = uploader.provider.snapshot()
            uploader.publisher.publish(snapshot)
        except TelemetryError as exc:
            print(f"Publish failed: {exc}")
            return 1

    print(f"Published telemetry for {snapshot.host_name}")
    return 0
