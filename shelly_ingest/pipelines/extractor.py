"""Extraction of per-device readings from a cloud status response.

The response is a JSON array with one object per device::

    [{"id": "...", "status": {"ts": 1700000000.1,
                              "temperature:0": {"tC": 21.5},
                              "humidity:0": {"rh": 40.0},
                              "devicepower:0": {"battery": {"V": 3.9, "percent": 80}}}}]

A malformed document fails the whole response with ParseError. A missing
or ill-typed value inside one device's status only fails that device.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Tuple, Union

from ..common.errors import FieldExtractionError, ParseError

logger = logging.getLogger(__name__)

# (field name on Reading, path inside status)
REQUIRED_FIELDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("temperature", ("temperature:0", "tC")),
    ("humidity", ("humidity:0", "rh")),
    ("battery_voltage", ("devicepower:0", "battery", "V")),
    ("battery_percent", ("devicepower:0", "battery", "percent")),
]


@dataclass(frozen=True)
class Reading:
    """Decoded status of one device from one response."""
    device_id: str
    timestamp: float
    temperature: float
    humidity: float
    battery_voltage: float
    battery_percent: float


@dataclass
class ExtractionResult:
    readings: List[Reading] = field(default_factory=list)
    failures: List[FieldExtractionError] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.readings) + len(self.failures)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def parse_payload(payload: Union[bytes, str]) -> List[Mapping[str, Any]]:
    """Decode the response and check its outer structure.

    Raises:
        ParseError: not JSON, not an array, or an item without a string
            ``id`` and an object ``status``.
    """
    try:
        document = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ParseError(f"response is not valid JSON: {e}") from e
    except RecursionError as e:
        raise ParseError("response is nested too deeply") from e

    if not isinstance(document, list):
        raise ParseError(f"expected a JSON array, got {type(document).__name__}")

    for index, item in enumerate(document):
        if not isinstance(item, dict):
            raise ParseError(f"item {index} is not an object")
        if not isinstance(item.get("id"), str):
            raise ParseError(f"item {index} has no string id")
        if not isinstance(item.get("status"), dict):
            raise ParseError(f"item {index} ({item['id']}) has no status object")
    return document


def extract_reading(item: Mapping[str, Any]) -> Reading:
    """Build the Reading for one response item.

    Raises:
        FieldExtractionError: a required value is missing or not a number.
    """
    device_id = item["id"]
    status = item["status"]

    timestamp = status.get("ts")
    if not _is_number(timestamp):
        logger.warning("[EXTRACT] no timestamp for id %s, using 0", device_id)
        timestamp = 0

    values = {}
    for name, path in REQUIRED_FIELDS:
        node: Any = status
        for key in path:
            if not isinstance(node, Mapping) or key not in node:
                raise FieldExtractionError(device_id, ".".join(path), "missing", status)
            node = node[key]
        if not _is_number(node):
            raise FieldExtractionError(device_id, ".".join(path), "non-numeric", status)
        values[name] = float(node)

    return Reading(device_id=device_id, timestamp=float(timestamp), **values)


class ReadingExtractor:
    """Turns a raw response into readings plus per-device failures."""

    def extract(self, payload: Union[bytes, str]) -> ExtractionResult:
        result = ExtractionResult()
        for item in parse_payload(payload):
            try:
                reading = extract_reading(item)
            except FieldExtractionError as e:
                logger.debug("[EXTRACT] %s", e)
                result.failures.append(e)
                continue
            logger.debug(
                "[EXTRACT] id=%s temperature=%.1f humidity=%.0f voltage=%.2f percent=%.0f ts=%.0f",
                reading.device_id,
                reading.temperature,
                reading.humidity,
                reading.battery_voltage,
                reading.battery_percent,
                reading.timestamp,
            )
            result.readings.append(reading)
        return result
