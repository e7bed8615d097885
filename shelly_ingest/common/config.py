from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Mapping

from dotenv import load_dotenv

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "/usr/local/etc/shellyd.json"

_MISSING = object()


@dataclass(frozen=True)
class Settings:
    config_file: str
    log_level: str


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("SHELLYD_ENV_FILE", ".env")
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        config_file=os.getenv("SHELLYD_CONFIG", DEFAULT_CONFIG_FILE),
        log_level=os.getenv("SHELLYD_LOG_LEVEL", "INFO").upper(),
    )


@dataclass(frozen=True)
class Device:
    """One polled device and the station/sensor it reports for."""
    id: str
    station: str
    sensor: str


class Configuration:
    """Read-only view of the daemon's JSON configuration document.

    Values are addressed by dotted paths, e.g. ``cloud.url`` or
    ``database.port``. The document is not modified after loading.
    """

    def __init__(self, data: Mapping[str, Any]):
        if not isinstance(data, Mapping):
            raise ConfigurationError("<root>", "configuration must be a JSON object")
        self._data = data
        self._devices = self._parse_devices(data.get("devices", []))

    @classmethod
    def from_file(cls, filename: str) -> "Configuration":
        try:
            with open(filename, "r", encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise ConfigurationError(filename, f"cannot read configuration ({e.strerror})") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(filename, f"invalid JSON at line {e.lineno}") from e
        config = cls(data)
        logger.debug("[CONFIG] loaded %s with %d devices", filename, len(config._devices))
        return config

    @staticmethod
    def _parse_devices(entries: Any) -> List[Device]:
        if not isinstance(entries, list):
            raise ConfigurationError("devices", "devices must be a list")
        devices = []
        for i, entry in enumerate(entries):
            try:
                devices.append(
                    Device(
                        id=str(entry["id"]),
                        station=str(entry["station"]),
                        sensor=str(entry["sensor"]),
                    )
                )
            except (KeyError, TypeError) as e:
                raise ConfigurationError(f"devices[{i}]", "incomplete device entry") from e
        return devices

    def _lookup(self, path: str) -> Any:
        node: Any = self._data
        for part in path.split("."):
            if not isinstance(node, Mapping) or part not in node:
                raise ConfigurationError(path)
            node = node[part]
        return node

    def has(self, path: str) -> bool:
        try:
            self._lookup(path)
        except ConfigurationError:
            return False
        return True

    def string_value(self, path: str) -> str:
        value = self._lookup(path)
        if not isinstance(value, str):
            raise ConfigurationError(path, "expected a string")
        return value

    def int_value(self, path: str, default: Any = _MISSING) -> int:
        if default is not _MISSING and not self.has(path):
            return default
        value = self._lookup(path)
        # bool is an int subclass, reject it explicitly
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(path, "expected an integer")
        return value

    def float_value(self, path: str, default: Any = _MISSING) -> float:
        """Numeric value at ``path``; integers are accepted."""
        if default is not _MISSING and not self.has(path):
            return default
        value = self._lookup(path)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(path, "expected a number")
        return float(value)

    def get(self, path: str, default: Any = None) -> Any:
        """Value at ``path`` or ``default`` when absent."""
        try:
            return self._lookup(path)
        except ConfigurationError:
            return default

    def id_list(self) -> List[str]:
        return [d.id for d in self._devices]

    def devices(self) -> List[Device]:
        return list(self._devices)

    def device(self, device_id: str) -> Device:
        for d in self._devices:
            if d.id == device_id:
                return d
        raise ConfigurationError(f"devices[id={device_id}]", "device not found")

