"""Onboarding command implementation."""

from __future__ import annotations

from argparse import Namespace
from getpass import getpass
from pathlib import Path

from host_telemetry import config as config_module
from host_telemetry.commands.setup_io import PromptSession
from host_telemetry.config import AppConfig, MqttConfig
from host_telemetry.errors import ConfigError
from host_telemetry.mqtt.connection import parse_broker_uri

_MISSING_CONFIG_SENTINEL = "missing"


def run_setup(args: Namespace) -> int:
    """Run the onboarding workflow."""
    config_path = config_module.resolve_config_path(getattr(args, "config", None))

    if getattr(args, "reset", False):
        existing_config, _ = _load_existing(config_path)
        if existing_config and existing_config.mqtt.password_in_keyring:
            config_module.delete_password_from_keyring(existing_config.mqtt.username)
        removed = config_path.exists()
        config_path.unlink(missing_ok=True)
        if removed:
            print(f"Removed existing configuration at {config_path}")

    if getattr(args, "non_interactive", False):
        return _run_non_interactive(config_path)

    existing, load_error = _load_existing(config_path)
    if load_error is not None and load_error != _MISSING_CONFIG_SENTINEL:
        print(f"Warning: existing configuration invalid ({load_error}); starting fresh")

    try:
        new_config = _interactive_prompt(existing, PromptSession(secret_func=getpass))
    except KeyboardInterrupt:
        print("\nSetup cancelled by user")
        return 1

    if getattr(args, "dry_run", False):
        print("Dry run: configuration not written")
        print(config_module.config_summary(new_config))
        return 0

    saved_path = config_module.save_config(new_config, path=config_path)
    print(f"Configuration saved to {saved_path}")
    print(config_module.config_summary(new_config))
    return 0


def _run_non_interactive(config_path: Path) -> int:
    """Validate an existing config file without prompting the user."""

    config, load_error = _load_existing(config_path)
    if config is None:
        if load_error == _MISSING_CONFIG_SENTINEL:
            print(f"Configuration not found at {config_path}; run interactive setup first")
        else:
            print(f"Configuration invalid: {load_error}")
        return 1

    if config.mqtt.enabled:
        try:
            _validate_mqtt(config.mqtt)
        except ConfigError as exc:
            print(f"Configuration invalid: {exc}")
            return 1

    print("Configuration OK:")
    print(config_module.config_summary(config))
    return 0


def _load_existing(config_path: Path) -> tuple[AppConfig | None, str | None]:
    """Return a previously saved configuration and any load error string."""

    if not config_path.exists():
        return None, _MISSING_CONFIG_SENTINEL
    try:
        return config_module.load_config(config_path), None
    except ValueError as exc:
        return None, str(exc)


def _validate_mqtt(mqtt: MqttConfig) -> None:
    for field_name in ("broker", "username", "password"):
        if not getattr(mqtt, field_name):
            raise ConfigError(field_name)
    parse_broker_uri(mqtt.broker)


def _validate_broker(value: str) -> None:
    try:
        parse_broker_uri(value)
    except ConfigError as exc:
        raise ValueError(str(exc)) from exc


def _interactive_prompt(existing: AppConfig | None, session: PromptSession) -> AppConfig:
    """Collect broker details from stdin, seeding defaults from an existing config."""

    base = existing or AppConfig()
    prompt = session.prompt

    enabled = session.ask_yes_no("Publish telemetry to an MQTT broker?", default=True)
    if not enabled:
        return AppConfig(
            mqtt=MqttConfig(enabled=False),
            interval_s=base.interval_s,
            disk_path=base.disk_path,
        )

    broker = prompt.string(
        "Broker URI (e.g. tcp://broker.local:1883)",
        default=base.mqtt.broker,
        validator=_validate_broker,
    )
    username = prompt.string("MQTT username", default=base.mqtt.username)
    password = prompt.secret("MQTT password", default=base.mqtt.password or None)

    use_keyring = base.mqtt.password_in_keyring
    if config_module.keyring_supported():
        use_keyring = session.ask_yes_no(
            "Store MQTT password in system keyring?",
            default=use_keyring,
        )
        if not use_keyring and base.mqtt.password_in_keyring:
            config_module.delete_password_from_keyring(base.mqtt.username)
    else:
        use_keyring = False

    interval_s = prompt.integer(
        "Publish interval (seconds)",
        default=base.interval_s,
        minimum=config_module.MIN_INTERVAL_S,
    )

    return AppConfig(
        mqtt=MqttConfig(
            enabled=True,
            broker=broker,
            username=username,
            password=password,
            password_in_keyring=use_keyring,
            client_id=base.mqtt.client_id,
            connect_timeout_s=base.mqtt.connect_timeout_s,
        ),
        interval_s=interval_s,
        disk_path=base.disk_path,
    )
