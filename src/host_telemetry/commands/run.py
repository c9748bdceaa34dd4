"""Runtime command: publish telemetry on a fixed schedule until interrupted."""

from __future__ import annotations

import logging
import signal
from argparse import Namespace
from pathlib import Path

from host_telemetry import config as config_module
from host_telemetry.config import AppConfig
from host_telemetry.scheduler import PeriodicRunner
from host_telemetry.uploader import Uploader

LOG = logging.getLogger(__name__)


def load_app_config(config_path: Path) -> AppConfig | None:
    """Load configuration for a runtime command, printing a hint on failure."""
    try:
        return config_module.load_config(config_path)
    except FileNotFoundError:
        print(f"Config not found at {config_path}; run `host-telemetry setup` first.")
    except ValueError as exc:
        print(f"Config invalid: {exc}")
    return None


def run_uploader(args: Namespace) -> int:
    """Run the upload loop."""
    config_path = config_module.resolve_config_path(getattr(args, "config", None))
    app_config = load_app_config(config_path)
    if app_config is None:
        return 1

    interval_s = getattr(args, "interval", None)
    if interval_s is None:
        interval_s = app_config.interval_s
    max_runs = 1 if getattr(args, "once", False) else None

    uploader = Uploader.from_config(app_config)
    runner = PeriodicRunner(uploader.run, interval_s, max_runs=max_runs)

    previous_sigterm = signal.getsignal(signal.SIGTERM)

    def _handle_sigterm(signum, frame):  # type: ignore[override]
        LOG.info("Received SIGTERM; stopping")
        runner.stop()

    signal.signal(signal.SIGTERM, _handle_sigterm)

    LOG.info("Publishing telemetry every %ss", interval_s)
    try:
        runner.run_forever()
    except KeyboardInterrupt:
        LOG.info("Telemetry uploader interrupted by user")
    finally:
        uploader.close()
        signal.signal(signal.SIGTERM, previous_sigterm)

    record = uploader.publisher.record
    LOG.info(
        "Cycles run: %d (last attempt %s, last success %s)",
        runner.runs,
        record.last_attempt,
        record.last_success,
    )
    return 0
