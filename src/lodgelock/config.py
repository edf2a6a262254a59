"""Configuration management for Lodgelock."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml


DEFAULT_RELAY_URL = "http://127.0.0.1:9000"


@dataclass
class RelayConfig:
    """Relay store (Firebase Realtime Database REST) configuration."""

    url: str = DEFAULT_RELAY_URL
    auth_token: str | None = None  # Passed as ?auth= on every request
    request_timeout: float = 10.0  # seconds


@dataclass
class PollingConfig:
    """Poll cadence and deadlines for initiator round trips."""

    interval_ms: int = 1000
    sign_timeout: float = 60.0  # seconds
    pairing_timeout: float = 300.0  # seconds


@dataclass
class RequestManagerConfig:
    """Responder-side request scanning configuration."""

    scan_interval: float = 5.0  # seconds, 0 disables periodic scans
    retry_failed_dispatch: bool = False


@dataclass
class Config:
    """Lodgelock configuration."""

    device_name: str = "External Integration"
    rooms_file: str = "~/.config/lodgelock/rooms.json"
    log_level: str = "INFO"
    log_file: str | None = None
    relay: RelayConfig = field(default_factory=RelayConfig)
    polling: PollingConfig = field(default_factory=PollingConfig)
    request_manager: RequestManagerConfig = field(default_factory=RequestManagerConfig)


def get_config_path(custom_path: Path | None = None) -> Path:
    """Get the configuration file path.

    Args:
        custom_path: Override path. If None, returns default.

    Returns:
        Path to config file.
    """
    if custom_path is not None:
        return custom_path
    return Path.home() / ".config" / "lodgelock" / "config.yaml"


def _default_file_reader(path: Path) -> dict[str, Any] | None:
    """Default file reader that loads YAML from disk."""
    if not path.exists():
        return None
    try:
        content = path.read_text()
        if not content.strip():
            return None
        return yaml.safe_load(content)
    except yaml.YAMLError:
        return None


def load_config(
    path: Path | None = None,
    file_reader: Callable[[Path], dict[str, Any] | None] | None = None,
) -> Config:
    """Load configuration from file.

    Args:
        path: Path to config file. If None, uses default path.
        file_reader: Injectable file reader for testing.

    Returns:
        Config object with values from file or defaults.
    """
    config_path = get_config_path(path)
    reader = file_reader or _default_file_reader

    data = reader(config_path)

    if not isinstance(data, dict):
        return Config()

    relay_data = data.get("relay") or {}
    relay_config = RelayConfig(
        url=relay_data.get("url", RelayConfig.url),
        auth_token=relay_data.get("auth_token", RelayConfig.auth_token),
        request_timeout=relay_data.get(
            "request_timeout", RelayConfig.request_timeout
        ),
    )

    polling_data = data.get("polling") or {}
    polling_config = PollingConfig(
        interval_ms=polling_data.get("interval_ms", PollingConfig.interval_ms),
        sign_timeout=polling_data.get("sign_timeout", PollingConfig.sign_timeout),
        pairing_timeout=polling_data.get(
            "pairing_timeout", PollingConfig.pairing_timeout
        ),
    )

    manager_data = data.get("request_manager") or {}
    manager_config = RequestManagerConfig(
        scan_interval=manager_data.get(
            "scan_interval", RequestManagerConfig.scan_interval
        ),
        retry_failed_dispatch=manager_data.get(
            "retry_failed_dispatch", RequestManagerConfig.retry_failed_dispatch
        ),
    )

    return Config(
        device_name=data.get("device_name", Config.device_name),
        rooms_file=data.get("rooms_file", Config.rooms_file),
        log_level=data.get("log_level", Config.log_level),
        log_file=data.get("log_file", Config.log_file),
        relay=relay_config,
        polling=polling_config,
        request_manager=manager_config,
    )
