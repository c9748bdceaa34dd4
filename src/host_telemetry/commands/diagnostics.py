"""Diagnostics command implementation."""

from __future__ import annotations

import json
import logging
import sys
import time
from argparse import Namespace
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from importlib import metadata as importlib_metadata

from host_telemetry import __version__
from host_telemetry import config as config_module
from host_telemetry.config import AppConfig
from host_telemetry.diagnostics_helpers import probe_broker
from host_telemetry.errors import ConfigError, ProviderError
from host_telemetry.mqtt.connection import parse_broker_uri
from host_telemetry.telemetry.provider import HostTelemetryProvider

SectionStatus = str

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

_REQUIRED_PACKAGES = ("paho-mqtt", "psutil", "tomli-w")

_STATUS_LEVELS = {"ok": logging.INFO, "warning": logging.WARNING, "error": logging.ERROR}


@dataclass(slots=True)
class Section:
    """Represents the status of a diagnostic check."""

    name: str
    status: SectionStatus
    message: str
    details: dict[str, Any]

    def as_dict(self) -> dict[str, Any]:
        return {"status": self.status, "message": self.message, "details": self.details}


def run_diagnostics(args: Namespace) -> int:
    """Run host and broker checks and emit results in the requested format."""
    config_path = config_module.resolve_config_path(getattr(args, "config", None))

    config_section, app_config = _check_config(config_path)
    sections = [
        _check_environment(),
        config_section,
        _check_telemetry(app_config),
        _check_broker(app_config),
    ]
    summary = _tally(sections)
    verbose = getattr(args, "verbose", False)

    if getattr(args, "json", False):
        report: dict[str, Any] = {section.name.lower(): section.as_dict() for section in sections}
        report["meta"] = {
            "tool": "host-telemetry",
            "version": __version__,
            "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        }
        report["summary"] = summary
        print(json.dumps(report, indent=2 if verbose else None, default=str))
    else:
        _report_text(sections, summary, verbose=verbose)

    return 1 if summary["errors"] else 0


def _check_environment() -> Section:
    packages: dict[str, str | None] = {}
    missing: list[str] = []
    for package in _REQUIRED_PACKAGES:
        try:
            packages[package] = importlib_metadata.version(package)
        except importlib_metadata.PackageNotFoundError:
            packages[package] = None
            missing.append(package)

    if missing:
        status: SectionStatus = "error"
        message = f"Missing packages: {', '.join(missing)}"
    else:
        status = "ok"
        message = "Required packages present"

    details = {
        "python_version": sys.version.split()[0],
        "packages": packages,
    }
    return Section("Environment", status, message, details)


def _check_config(config_path: Path) -> tuple[Section, AppConfig | None]:
    if not config_path.exists():
        return (
            Section(
                "Config",
                "warning",
                f"No config file at {config_path}; run `host-telemetry setup`",
                {"path": str(config_path)},
            ),
            None,
        )
    try:
        app_config = config_module.load_config(config_path)
    except (OSError, ValueError) as exc:
        return (
            Section("Config", "error", f"Failed to load config: {exc}", {"path": str(config_path)}),
            None,
        )

    details = {
        "path": str(config_path),
        "mqtt_enabled": app_config.mqtt.enabled,
        "broker": app_config.mqtt.broker or None,
        "interval_s": app_config.interval_s,
    }
    if not app_config.mqtt.enabled:
        return Section("Config", "warning", "MQTT publishing disabled", details), app_config
    for field_name in ("broker", "username", "password"):
        if not getattr(app_config.mqtt, field_name):
            return (
                Section("Config", "error", f"MQTT {field_name} has not been configured", details),
                app_config,
            )
    return Section("Config", "ok", "Configuration loaded", details), app_config


def _check_telemetry(app_config: AppConfig | None) -> Section:
    disk_path = app_config.disk_path if app_config else "/"
    try:
        snapshot = HostTelemetryProvider(disk_path=disk_path).snapshot()
    except ProviderError as exc:
        return Section("Telemetry", "error", f"Unable to sample host: {exc}", {})
    return Section(
        "Telemetry",
        "ok",
        f"Sampled host {snapshot.host_name}",
        asdict(snapshot),
    )


def _check_broker(app_config: AppConfig | None) -> Section:
    if app_config is None or not app_config.mqtt.broker:
        return Section(
            "Broker",
            "warning",
            "Broker not configured; skipping connectivity check",
            {},
        )
    try:
        address = parse_broker_uri(app_config.mqtt.broker)
    except ConfigError as exc:
        return Section("Broker", "error", str(exc), {"broker": app_config.mqtt.broker})

    probe = probe_broker(address)
    endpoint = f"{probe.host}:{probe.port}"
    if probe.reachable:
        return Section(
            "Broker",
            "ok",
            f"Reachable MQTT broker {endpoint}" + (" (TLS verified)" if probe.tls_checked else ""),
            {"latency_ms": probe.latency_ms, "tls": probe.tls_checked},
        )
    # reaching the broker is not required to run; cycles retry on their own
    return Section(
        "Broker",
        "warning",
        f"Unable to reach MQTT broker {endpoint}",
        {"error": probe.error, "tls": probe.tls_checked},
    )


def _tally(sections: list[Section]) -> dict[str, Any]:
    names: dict[str, list[str]] = {status: [] for status in _STATUS_LEVELS}
    for section in sections:
        names[section.status].append(section.name)
    return {
        "errors": len(names["error"]),
        "warnings": len(names["warning"]),
        "failing": names["error"],
        "degraded": names["warning"],
    }


def _report_text(sections: list[Section], summary: dict[str, Any], *, verbose: bool) -> None:
    for section in sections:
        logger.log(_STATUS_LEVELS[section.status], "%-12s %s", f"{section.name}:", section.message)
        if verbose:
            for key, value in section.details.items():
                logger.info("    %s = %s", key, _render_detail(value))

    if summary["errors"]:
        level = logging.ERROR
    elif summary["warnings"]:
        level = logging.WARNING
    else:
        level = logging.INFO
    logger.log(
        level,
        "Diagnostics finished: %d error(s), %d warning(s)",
        summary["errors"],
        summary["warnings"],
    )


def _render_detail(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, dict):
        return ", ".join(
            f"{key} {'missing' if item is None else item}" for key, item in value.items()
        ) or "-"
    return str(value)
