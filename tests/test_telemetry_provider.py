"""Tests for the psutil-backed host telemetry provider."""

from __future__ import annotations

import subprocess
import types
from pathlib import Path

import pytest

from host_telemetry.errors import ProviderError
from host_telemetry.telemetry import provider as provider_module
from host_telemetry.telemetry.provider import HostTelemetryProvider, parse_throttled


def _patch_psutil(monkeypatch, temps=None) -> None:
    monkeypatch.setattr(
        provider_module.psutil,
        "virtual_memory",
        lambda: types.SimpleNamespace(total=1000, available=400),
    )
    monkeypatch.setattr(
        provider_module.psutil,
        "disk_usage",
        lambda _path: types.SimpleNamespace(percent=55.7),
    )
    monkeypatch.setattr(
        provider_module.psutil,
        "sensors_temperatures",
        lambda: temps or {},
        raising=False,
    )
    monkeypatch.setattr(provider_module.socket, "gethostname", lambda: "pi1")


def test_snapshot_reads_host_metrics(monkeypatch, tmp_path: Path) -> None:
    _patch_psutil(monkeypatch, {"cpu_thermal": [types.SimpleNamespace(current=42.3)]})
    monkeypatch.setattr(provider_module.shutil, "which", lambda _name: None)

    snapshot = HostTelemetryProvider(thermal_zone=tmp_path / "missing").snapshot()

    assert snapshot.host_name == "pi1"
    assert snapshot.cpu_temp == pytest.approx(42.3)
    assert snapshot.disk_used_percent == 55
    assert (snapshot.total_mem, snapshot.avail_mem) == (1000, 400)
    assert snapshot.is_throttled is False


def test_cpu_temp_falls_back_to_thermal_zone(monkeypatch, tmp_path: Path) -> None:
    _patch_psutil(monkeypatch)
    monkeypatch.setattr(provider_module.shutil, "which", lambda _name: None)
    zone = tmp_path / "temp"
    zone.write_text("48312\n", encoding="utf-8")

    snapshot = HostTelemetryProvider(thermal_zone=zone).snapshot()

    assert snapshot.cpu_temp == pytest.approx(48.312)


def test_cpu_temp_defaults_to_zero(monkeypatch, tmp_path: Path) -> None:
    _patch_psutil(monkeypatch)
    monkeypatch.setattr(provider_module.shutil, "which", lambda _name: None)

    snapshot = HostTelemetryProvider(thermal_zone=tmp_path / "missing").snapshot()

    assert snapshot.cpu_temp == 0.0


def test_throttled_reads_vcgencmd(monkeypatch, tmp_path: Path) -> None:
    _patch_psutil(monkeypatch)
    monkeypatch.setattr(provider_module.shutil, "which", lambda _name: "/usr/bin/vcgencmd")
    seen: list[list[str]] = []

    def fake_run(cmd, **_kwargs):
        seen.append(cmd)
        return types.SimpleNamespace(stdout="throttled=0x50005\n")

    monkeypatch.setattr(provider_module.subprocess, "run", fake_run)

    snapshot = HostTelemetryProvider(thermal_zone=tmp_path / "missing").snapshot()

    assert snapshot.is_throttled is True
    assert seen == [["/usr/bin/vcgencmd", "get_throttled"]]


def test_vcgencmd_failure_raises_provider_error(monkeypatch, tmp_path: Path) -> None:
    _patch_psutil(monkeypatch)
    monkeypatch.setattr(provider_module.shutil, "which", lambda _name: "/usr/bin/vcgencmd")

    def fake_run(cmd, **_kwargs):
        raise subprocess.CalledProcessError(1, cmd)

    monkeypatch.setattr(provider_module.subprocess, "run", fake_run)

    with pytest.raises(ProviderError):
        HostTelemetryProvider(thermal_zone=tmp_path / "missing").snapshot()


def test_psutil_failure_raises_provider_error(monkeypatch) -> None:
    _patch_psutil(monkeypatch)

    def broken_disk_usage(_path):
        raise FileNotFoundError("no such mount")

    monkeypatch.setattr(provider_module.psutil, "disk_usage", broken_disk_usage)

    with pytest.raises(ProviderError, match="no such mount"):
        HostTelemetryProvider(disk_path="/nope").snapshot()


@pytest.mark.parametrize(
    ("output", "expected"),
    [("throttled=0x0", False), ("throttled=0x50000\n", True), ("throttled=0x1", True)],
)
def test_parse_throttled(output, expected) -> None:
    assert parse_throttled(output) is expected


@pytest.mark.parametrize("output", ["", "garbage", "throttled=zz"])
def test_parse_throttled_rejects_garbage(output) -> None:
    with pytest.raises(ProviderError):
        parse_throttled(output)
