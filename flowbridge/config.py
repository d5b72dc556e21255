from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict

import yaml

from flowbridge.constants import DEFAULT_FOOTER, DEFAULT_HEADER


class ConfigError(ValueError):
    pass


@dataclass(slots=True)
class BridgeConfig:
    """Static configuration for one serial -> TCP bridge."""

    serial_port: str = "/dev/ttyUSB0"
    baudrate: int = 115200
    host: str = "192.168.50.2"
    port: int = 1024
    retry_delay: float = 3.0
    header: str = DEFAULT_HEADER
    footer: str = DEFAULT_FOOTER
    connect_timeout: float = 5.0
    send_timeout: float = 5.0
    read_timeout: float = 0.1
    poll_interval: float = 0.05
    stats_interval: float = 60.0

    def validate(self) -> None:
        if not self.serial_port:
            raise ConfigError("serial port must not be empty")
        if self.baudrate <= 0:
            raise ConfigError(f"invalid baud rate: {self.baudrate}")
        if not self.host:
            raise ConfigError("server host must not be empty")
        if not 0 < self.port < 65536:
            raise ConfigError(f"invalid server port: {self.port}")
        for name in ("retry_delay", "connect_timeout", "send_timeout", "read_timeout", "poll_interval", "stats_interval"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive")
        for name in ("header", "footer"):
            value = getattr(self, name)
            try:
                value.encode("latin-1")
            except UnicodeEncodeError as e:
                raise ConfigError(f"{name} must be latin-1 text: {value!r}") from e
            if "\x02" in value or "\x03" in value:
                raise ConfigError(f"{name} must not contain STX/ETX")

    def merged(self, **overrides: Any) -> "BridgeConfig":
        """Copy with every non-None override applied (used for CLI options)."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return BridgeConfig(**values)


# section -> {file key: config field}
_SECTIONS: Dict[str, Dict[str, str]] = {
    "serial": {"port": "serial_port", "baudrate": "baudrate", "baud": "baudrate", "read_timeout": "read_timeout"},
    "server": {"host": "host", "port": "port", "connect_timeout": "connect_timeout", "send_timeout": "send_timeout"},
    "frame": {"header": "header", "footer": "footer"},
    "timing": {"retry_delay": "retry_delay", "poll_interval": "poll_interval", "stats_interval": "stats_interval"},
}

_CASTS = {f.name: f.type for f in fields(BridgeConfig)}


def _coerce(name: str, value: Any) -> Any:
    kind = _CASTS[name]
    try:
        if kind == "int":
            return int(value)
        if kind == "float":
            return float(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"invalid value for {name}: {value!r}") from e


def config_from_dict(raw: Dict[str, Any]) -> BridgeConfig:
    values: Dict[str, Any] = {}
    known = set(_CASTS)

    for key, value in raw.items():
        if key in _SECTIONS:
            if not isinstance(value, dict):
                raise ConfigError(f"section '{key}' must be an object")
            mapping = _SECTIONS[key]
            for sub_key, sub_value in value.items():
                if sub_key not in mapping:
                    raise ConfigError(f"unknown option '{key}.{sub_key}'")
                values[mapping[sub_key]] = _coerce(mapping[sub_key], sub_value)
        elif key in known:
            values[key] = _coerce(key, value)
        else:
            raise ConfigError(f"unknown option '{key}'")

    cfg = BridgeConfig(**values)
    cfg.validate()
    return cfg


def load_config(path: str | Path) -> BridgeConfig:
    """Parse a YAML/JSON config file into a validated BridgeConfig."""

    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(file_path)

    text = file_path.read_text(encoding="utf-8")
    try:
        if file_path.suffix.lower() in {".yaml", ".yml"}:
            raw = yaml.safe_load(text)
        else:
            raw = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"{file_path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("Configuration must be an object/dict")
    return config_from_dict(raw)
