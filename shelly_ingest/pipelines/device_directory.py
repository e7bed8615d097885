"""Mapping of cloud device ids to the station/sensor they report for."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from ..common.config import Configuration, Device


class DeviceDirectory:
    """Read-only device lookup built once from the configuration."""

    def __init__(self, devices: Iterable[Device]):
        self._devices: List[Device] = list(devices)
        self._by_id: Dict[str, Device] = {}
        for d in self._devices:
            # first entry wins for duplicated ids
            self._by_id.setdefault(d.id, d)

    @classmethod
    def from_config(cls, config: Configuration) -> "DeviceDirectory":
        return cls(config.devices())

    def id_list(self) -> List[str]:
        """Ids to poll, in configuration order."""
        return [d.id for d in self._devices]

    def lookup(self, device_id: str) -> Optional[Device]:
        return self._by_id.get(device_id)

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._by_id
