"""Resolution of station/sensor and field names to database ids.

Field ids are read once when the resolver is created; sensor ids are
cached on first use for the lifetime of the resolver (one engine).
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from ..common.errors import AmbiguousError, NotFoundError

logger = logging.getLogger(__name__)

FIELD_TEMPERATURE = "temperature"
FIELD_HUMIDITY = "humidity"
FIELD_CAPACITY = "capacity"
FIELD_BATTERY = "battery"

FIELD_NAMES = (FIELD_TEMPERATURE, FIELD_HUMIDITY, FIELD_CAPACITY, FIELD_BATTERY)

_SENSOR_QUERY = text(
    "SELECT b.id "
    "FROM station a "
    "JOIN sensor b ON a.id = b.stationid "
    "WHERE a.name = :station AND b.name = :sensor"
)

_FIELD_QUERY = text("SELECT a.id FROM mfield a WHERE a.name = :name")


def _single_id(rows, what: str, key: str) -> int:
    if not rows:
        raise NotFoundError(what, key)
    if len(rows) > 1:
        raise AmbiguousError(what, key, len(rows))
    return int(rows[0][0])


def lookup_sensor_id(conn: Connection, station: str, sensor: str) -> int:
    rows = conn.execute(_SENSOR_QUERY, {"station": station, "sensor": sensor}).fetchall()
    return _single_id(rows, "sensor", f"{station}/{sensor}")


def lookup_field_id(conn: Connection, name: str) -> int:
    rows = conn.execute(_FIELD_QUERY, {"name": name}).fetchall()
    return _single_id(rows, "field", name)


class IdentityResolver:
    """Caches sensor and field ids of one store.

    Raises NotFoundError / AmbiguousError when a name does not map to
    exactly one row. Creating the resolver fails unless all four field
    names resolve.
    """

    def __init__(self, engine: Engine):
        self._engine = engine
        self._sensor_cache: Dict[Tuple[str, str], int] = {}
        self._lock = threading.Lock()

        with engine.connect() as conn:
            field_ids = {name: lookup_field_id(conn, name) for name in FIELD_NAMES}
        # read-only from here on
        self._field_ids: Dict[str, int] = field_ids

        logger.debug(
            "[DB] field ids temperature=%d humidity=%d capacity=%d battery=%d",
            field_ids[FIELD_TEMPERATURE],
            field_ids[FIELD_HUMIDITY],
            field_ids[FIELD_CAPACITY],
            field_ids[FIELD_BATTERY],
        )

    def field_id(self, name: str) -> int:
        try:
            return self._field_ids[name]
        except KeyError:
            raise NotFoundError("field", name) from None

    def sensor_id(self, station: str, sensor: str, conn: Connection | None = None) -> int:
        """Id of ``station``/``sensor``, queried on ``conn`` when not cached."""
        key = (station, sensor)
        with self._lock:
            cached = self._sensor_cache.get(key)
        if cached is not None:
            return cached

        if conn is not None:
            sensor_id = lookup_sensor_id(conn, station, sensor)
        else:
            with self._engine.connect() as own:
                sensor_id = lookup_sensor_id(own, station, sensor)

        with self._lock:
            self._sensor_cache[key] = sensor_id
        logger.debug("[DB] sensor id %s/%s -> %d", station, sensor, sensor_id)
        return sensor_id

    def clear_cache(self) -> None:
        """Forget cached sensor ids (field ids stay)."""
        with self._lock:
            self._sensor_cache.clear()

    def get_cache_stats(self) -> dict:
        with self._lock:
            return {"sensors": len(self._sensor_cache), "fields": len(self._field_ids)}
