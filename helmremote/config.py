"""Engine configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: HELM_<SECTION>_<KEY> (uppercase).
"""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass, field
from pathlib import Path

import yaml

# Two native longs (timeval) + u16 type + u16 code + s32 value.
NATIVE_RECORD_SIZE = struct.calcsize("l") * 2 + 8


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8100
    env: str = "dev"  # "dev" or "prod"


@dataclass
class DeviceConfig:
    path: str = ""  # empty = autodetect
    candidates_glob: str = "/dev/input/event*"
    record_size: int = NATIVE_RECORD_SIZE
    autodetect_seconds: float = 6.0
    min_key_presses: int = 1
    by_id_autodetect: bool = True
    by_id_dir: str = "/dev/input/by-id"
    by_id_pattern: str = r"qxs[-_\s]*001"
    publish_on: str = "down"  # "down", "up", "repeat" or "any"


@dataclass
class DisplayServiceConfig:
    base_url: str = "http://localhost:3000/plugins/kip"
    token: str = ""
    timeout_seconds: float = 5.0
    display_refresh_seconds: float = 2.0
    index_refresh_seconds: float = 1.0


@dataclass
class KeymapConfig:
    volume_up: str = "KEY_VOLUMEUP"
    volume_down: str = "KEY_VOLUMEDOWN"
    next: str = "KEY_NEXTSONG"
    prev: str = "KEY_PREVIOUSSONG"
    play: str = "KEY_PLAYPAUSE"

    def commands(self) -> dict[str, str]:
        """Key name -> logical command."""
        return {
            self.volume_up: "VOLUME_UP",
            self.volume_down: "VOLUME_DOWN",
            self.next: "NEXT",
            self.prev: "PREV",
            self.play: "PLAY",
        }


@dataclass
class ActionsConfig:
    local_base_url: str = "http://localhost:3000"
    timeout_seconds: float = 10.0


@dataclass
class BindingsConfig:
    file: str = "data/bindings.json"
    items: list[dict] = field(default_factory=list)


@dataclass
class QueueConfig:
    max_size: int = 1_000


@dataclass
class StateConfig:
    max_errors: int = 10


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"
    file: str = ""


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    device: DeviceConfig = field(default_factory=DeviceConfig)
    display_service: DisplayServiceConfig = field(default_factory=DisplayServiceConfig)
    keymap: KeymapConfig = field(default_factory=KeymapConfig)
    actions: ActionsConfig = field(default_factory=ActionsConfig)
    bindings: BindingsConfig = field(default_factory=BindingsConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    state: StateConfig = field(default_factory=StateConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables."""
    mapping = {
        "HELM_SERVER_HOST": lambda v: setattr(config.server, "host", v),
        "HELM_SERVER_PORT": lambda v: setattr(config.server, "port", int(v)),
        "HELM_SERVER_ENV": lambda v: setattr(config.server, "env", v),
        "HELM_DEVICE_PATH": lambda v: setattr(config.device, "path", v),
        "HELM_DEVICE_CANDIDATES_GLOB": lambda v: setattr(config.device, "candidates_glob", v),
        "HELM_DEVICE_RECORD_SIZE": lambda v: setattr(config.device, "record_size", int(v)),
        "HELM_DEVICE_AUTODETECT_SECONDS": lambda v: setattr(config.device, "autodetect_seconds", float(v)),
        "HELM_DEVICE_MIN_KEY_PRESSES": lambda v: setattr(config.device, "min_key_presses", int(v)),
        "HELM_DEVICE_BY_ID_AUTODETECT": lambda v: setattr(config.device, "by_id_autodetect", _parse_bool(v)),
        "HELM_DEVICE_PUBLISH_ON": lambda v: setattr(config.device, "publish_on", v),
        "HELM_DISPLAY_SERVICE_BASE_URL": lambda v: setattr(config.display_service, "base_url", v),
        "HELM_DISPLAY_SERVICE_TOKEN": lambda v: setattr(config.display_service, "token", v),
        "HELM_DISPLAY_SERVICE_TIMEOUT": lambda v: setattr(config.display_service, "timeout_seconds", float(v)),
        "HELM_ACTIONS_LOCAL_BASE_URL": lambda v: setattr(config.actions, "local_base_url", v),
        "HELM_BINDINGS_FILE": lambda v: setattr(config.bindings, "file", v),
        "HELM_LOG_LEVEL": lambda v: setattr(config.logging, "level", v),
        "HELM_LOG_FORMAT": lambda v: setattr(config.logging, "format", v),
        "HELM_LOG_FILE": lambda v: setattr(config.logging, "file", v),
    }
    for env_key, setter in mapping.items():
        val = os.environ.get(env_key)
        if val is not None:
            setter(val)


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    if config_path is None:
        config_path = Path(os.environ.get("HELM_CONFIG", "config.yaml"))
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section_name in (
            "server", "device", "display_service", "keymap", "actions",
            "bindings", "queue", "state", "logging",
        ):
            section = getattr(config, section_name)
            for k, v in (raw.get(section_name) or {}).items():
                if hasattr(section, k):
                    setattr(section, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
