"""Configuration loading and persistence helpers."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w  # type: ignore[import]

try:  # Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for <3.11
    import tomli as tomllib  # type: ignore[no-redef]

try:  # Optional dependency for secure credential storage
    import keyring as _keyring  # type: ignore[import]
    from keyring.errors import KeyringError  # type: ignore[import]
except ImportError:  # pragma: no cover - keyring not installed
    _keyring = None
    KeyringError = Exception

CONFIG_VERSION = 1
CONFIG_ENV_VAR = "HOST_TELEMETRY_CONFIG_PATH"
CONFIG_DIR_NAME = "host-telemetry"
CONFIG_FILENAME = "config.toml"
KEYRING_SERVICE = "host-telemetry"
KEYRING_SENTINEL = "__KEYRING__"

DEFAULT_INTERVAL_S = 300
MIN_INTERVAL_S = 10
DEFAULT_CONNECT_TIMEOUT_S = 10.0


def _xdg_path(env_var: str, default: Path) -> Path:
    value = os.environ.get(env_var)
    if value:
        return Path(value).expanduser()
    return default


def get_config_dir() -> Path:
    """Return the directory containing configuration files."""
    default = Path.home() / ".config"
    return _xdg_path("XDG_CONFIG_HOME", default) / CONFIG_DIR_NAME


def get_data_dir() -> Path:
    """Return the directory for runtime data/log files."""
    default = Path.home() / ".local" / "share"
    return _xdg_path("XDG_DATA_HOME", default) / CONFIG_DIR_NAME


def get_logs_dir() -> Path:
    return get_data_dir() / "logs"


def resolve_config_path(path: str | Path | None = None) -> Path:
    """Resolve the configuration file path, honouring overrides."""
    if path is not None:
        return Path(path).expanduser()
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir() / CONFIG_FILENAME


@dataclass(slots=True)
class MqttConfig:
    """Broker address and credentials.

    ``enabled`` is the only field mutated after load: the broker connection
    clears it when a required setting is missing so later cycles stay quiet.
    """

    enabled: bool = False
    broker: str = ""
    username: str = ""
    password: str = ""
    password_in_keyring: bool = False
    client_id: str | None = None
    connect_timeout_s: float = DEFAULT_CONNECT_TIMEOUT_S


@dataclass(slots=True)
class AppConfig:
    """Top-level settings for the uploader process."""

    mqtt: MqttConfig = field(default_factory=MqttConfig)
    interval_s: int = DEFAULT_INTERVAL_S
    disk_path: str = "/"

    def to_dict(self) -> dict[str, Any]:
        """Convert the configuration to a TOML-serialisable dictionary."""
        mqtt = self.mqtt
        return {
            "version": CONFIG_VERSION,
            "mqtt": _drop_none(
                {
                    "enabled": mqtt.enabled,
                    "broker": mqtt.broker,
                    "username": mqtt.username,
                    "password": KEYRING_SENTINEL
                    if mqtt.password_in_keyring
                    else mqtt.password,
                    "client_id": mqtt.client_id,
                    "connect_timeout_s": mqtt.connect_timeout_s,
                }
            ),
            "schedule": {"interval_s": self.interval_s},
            "telemetry": {"disk_path": self.disk_path},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AppConfig:
        """Construct from a dictionary (typically parsed from TOML)."""
        version = data.get("version", 1)
        if version != CONFIG_VERSION:
            raise ValueError(f"Unsupported config version: {version}")

        mqtt = data.get("mqtt", {})
        schedule = data.get("schedule", {})
        telemetry = data.get("telemetry", {})

        username = str(mqtt.get("username", "") or "")
        password = mqtt.get("password", "") or ""
        password_in_keyring = False
        if password == KEYRING_SENTINEL:
            if not username:
                raise ValueError("Keyring password requires mqtt.username")
            password = _retrieve_password_from_keyring(username)
            password_in_keyring = True

        interval_s = int(schedule.get("interval_s", DEFAULT_INTERVAL_S))
        if interval_s < MIN_INTERVAL_S:
            raise ValueError(
                f"schedule.interval_s must be at least {MIN_INTERVAL_S} seconds"
            )

        client_id = mqtt.get("client_id")
        return cls(
            mqtt=MqttConfig(
                enabled=bool(mqtt.get("enabled", False)),
                broker=str(mqtt.get("broker", "") or ""),
                username=username,
                password=str(password),
                password_in_keyring=password_in_keyring,
                client_id=str(client_id) if client_id else None,
                connect_timeout_s=float(
                    mqtt.get("connect_timeout_s", DEFAULT_CONNECT_TIMEOUT_S)
                ),
            ),
            interval_s=interval_s,
            disk_path=str(telemetry.get("disk_path", "/")),
        )


def _drop_none(mapping: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in mapping.items() if value is not None}


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load persisted configuration."""
    config_path = resolve_config_path(path)
    with config_path.open("rb") as handle:
        data = tomllib.load(handle)
    return AppConfig.from_dict(data)


def save_config(config: AppConfig, path: str | Path | None = None) -> Path:
    """Persist configuration to disk and return the file path."""
    if config.mqtt.password_in_keyring:
        _store_password_in_keyring(config.mqtt.username, config.mqtt.password)
    config_path = resolve_config_path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    toml_text = tomli_w.dumps(config.to_dict())
    config_path.write_text(toml_text, encoding="utf-8")
    try:
        os.chmod(config_path, stat.S_IRUSR | stat.S_IWUSR)
    except PermissionError:  # pragma: no cover - some FS disallow chmod
        pass
    return config_path


def config_summary(config: AppConfig) -> str:
    """Generate a human-readable summary of key settings."""
    mqtt = config.mqtt
    password = "keyring" if mqtt.password_in_keyring else ("set" if mqtt.password else "not set")
    return (
        f"  MQTT     : {'enabled' if mqtt.enabled else 'disabled'}\n"
        f"  Broker   : {mqtt.broker or 'not set'}\n"
        f"  Username : {mqtt.username or 'not set'}\n"
        f"  Password : {password}\n"
        f"  Interval : {config.interval_s}s\n"
        f"  Disk     : {config.disk_path}"
    )


def keyring_supported() -> bool:
    """Return True if a keyring backend is available."""
    return _keyring is not None


def store_password_in_keyring(username: str, password: str) -> None:
    """Persist the broker password in the system keyring."""
    _store_password_in_keyring(username, password)


def delete_password_from_keyring(username: str) -> None:
    """Remove the broker password from the system keyring if present."""
    if _keyring is None:
        return
    try:
        _keyring.delete_password(KEYRING_SERVICE, username)
    except KeyringError:  # pragma: no cover - backend quirks
        pass


def _store_password_in_keyring(username: str, password: str) -> None:
    if _keyring is None:
        raise ValueError("Keyring backend not available; install 'keyring' package")
    try:
        _keyring.set_password(KEYRING_SERVICE, username, password)
    except KeyringError as exc:  # pragma: no cover - backend dependent
        raise ValueError(f"Failed to store password in keyring: {exc}") from exc


def _retrieve_password_from_keyring(username: str) -> str:
    if _keyring is None:
        raise ValueError("Keyring backend not available for stored password")
    try:
        value = _keyring.get_password(KEYRING_SERVICE, username)
    except KeyringError as exc:  # pragma: no cover - backend dependent
        raise ValueError(f"Failed to read password from keyring: {exc}") from exc
    if not value:
        raise ValueError("No MQTT password stored in keyring; rerun setup")
    return value
