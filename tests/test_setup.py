"""Tests for the setup command."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path

from host_telemetry import config as config_module
from host_telemetry.commands import setup
from host_telemetry.commands.setup_io import PromptSession
from host_telemetry.config import AppConfig, MqttConfig, save_config


def _args(config_path: Path, **overrides) -> Namespace:
    values = {"config": str(config_path), "reset": False, "non_interactive": False, "dry_run": False}
    values.update(overrides)
    return Namespace(**values)


def _session(inputs, secrets=()):
    answers = iter(inputs)
    secret_answers = iter(secrets)
    return PromptSession(
        input_func=lambda _: next(answers),
        echo=lambda _: None,
        secret_func=lambda _: next(secret_answers),
    )


def _full_config() -> AppConfig:
    return AppConfig(
        mqtt=MqttConfig(enabled=True, broker="tcp://b", username="pi", password="pw"),
        interval_s=60,
    )


def test_non_interactive_missing_config(tmp_path: Path, capsys) -> None:
    exit_code = setup.run_setup(_args(tmp_path / "config.toml", non_interactive=True))

    assert exit_code == 1
    assert "Configuration not found" in capsys.readouterr().out


def test_non_interactive_valid_config(tmp_path: Path, capsys) -> None:
    path = tmp_path / "config.toml"
    save_config(_full_config(), path=path)

    exit_code = setup.run_setup(_args(path, non_interactive=True))

    assert exit_code == 0
    assert "Configuration OK" in capsys.readouterr().out


def test_non_interactive_missing_username(tmp_path: Path, capsys) -> None:
    path = tmp_path / "config.toml"
    cfg = _full_config()
    cfg.mqtt.username = ""
    save_config(cfg, path=path)

    exit_code = setup.run_setup(_args(path, non_interactive=True))

    assert exit_code == 1
    assert "username has not been configured" in capsys.readouterr().out


def test_non_interactive_bad_broker_uri(tmp_path: Path, capsys) -> None:
    path = tmp_path / "config.toml"
    cfg = _full_config()
    cfg.mqtt.broker = "gopher://b"
    save_config(cfg, path=path)

    assert setup.run_setup(_args(path, non_interactive=True)) == 1
    assert "Configuration invalid" in capsys.readouterr().out


def test_reset_removes_config_and_keyring_entry(tmp_path: Path, monkeypatch, capsys) -> None:
    path = tmp_path / "config.toml"
    monkeypatch.setattr(config_module, "_store_password_in_keyring", lambda *_a: None)
    monkeypatch.setattr(config_module, "_retrieve_password_from_keyring", lambda *_a: "pw")
    deleted: list[str] = []
    monkeypatch.setattr(config_module, "delete_password_from_keyring", deleted.append)
    cfg = _full_config()
    cfg.mqtt.password_in_keyring = True
    save_config(cfg, path=path)

    exit_code = setup.run_setup(_args(path, reset=True, non_interactive=True))

    assert exit_code == 1
    assert path.exists() is False
    assert deleted == ["pi"]
    assert "Removed existing configuration" in capsys.readouterr().out


def test_interactive_prompt_collects_settings(monkeypatch) -> None:
    monkeypatch.setattr(config_module, "keyring_supported", lambda: False)
    session = _session(["y", "nope://b", "tcp://broker.local", "pi", "45"], secrets=["pw", "pw"])

    cfg = setup._interactive_prompt(None, session)

    assert cfg.mqtt.enabled is True
    assert cfg.mqtt.broker == "tcp://broker.local"
    assert cfg.mqtt.username == "pi"
    assert cfg.mqtt.password == "pw"
    assert cfg.mqtt.password_in_keyring is False
    assert cfg.interval_s == 45


def test_interactive_prompt_keeps_existing_values(monkeypatch) -> None:
    monkeypatch.setattr(config_module, "keyring_supported", lambda: True)
    existing = _full_config()
    existing.disk_path = "/srv"
    session = _session(["", "", "", "y", ""], secrets=[""])

    cfg = setup._interactive_prompt(existing, session)

    assert cfg.mqtt.broker == "tcp://b"
    assert cfg.mqtt.password == "pw"
    assert cfg.mqtt.password_in_keyring is True
    assert cfg.interval_s == 60
    assert cfg.disk_path == "/srv"


def test_interactive_prompt_disable(monkeypatch) -> None:
    cfg = setup._interactive_prompt(_full_config(), _session(["n"]))

    assert cfg.mqtt.enabled is False
    assert cfg.mqtt.broker == ""
    assert cfg.interval_s == 60


def test_run_setup_dry_run_writes_nothing(tmp_path: Path, monkeypatch, capsys) -> None:
    path = tmp_path / "config.toml"
    monkeypatch.setattr(config_module, "keyring_supported", lambda: False)
    answers = iter(["y", "tcp://b", "pi", "30"])
    monkeypatch.setattr("builtins.input", lambda _prompt: next(answers))
    secrets = iter(["pw", "pw"])
    monkeypatch.setattr(setup, "getpass", lambda _prompt: next(secrets))

    exit_code = setup.run_setup(_args(path, dry_run=True))

    assert exit_code == 0
    assert path.exists() is False
    assert "Dry run" in capsys.readouterr().out


def test_run_setup_saves_config(tmp_path: Path, monkeypatch) -> None:
    path = tmp_path / "config.toml"
    monkeypatch.setattr(config_module, "keyring_supported", lambda: False)
    answers = iter(["y", "ssl://broker.example", "pi", ""])
    monkeypatch.setattr("builtins.input", lambda _prompt: next(answers))
    secrets = iter(["pw", "pw"])
    monkeypatch.setattr(setup, "getpass", lambda _prompt: next(secrets))

    assert setup.run_setup(_args(path)) == 0

    loaded = config_module.load_config(path)
    assert loaded.mqtt.broker == "ssl://broker.example"
    assert loaded.mqtt.password == "pw"
    assert loaded.interval_s == config_module.DEFAULT_INTERVAL_S
