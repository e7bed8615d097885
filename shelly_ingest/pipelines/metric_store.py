"""Append-only storage of sensor readings in the ``sdata`` fact table."""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..common.errors import PersistenceError
from .sensor_resolver import (
    FIELD_BATTERY,
    FIELD_CAPACITY,
    FIELD_HUMIDITY,
    FIELD_TEMPERATURE,
    IdentityResolver,
)

logger = logging.getLogger(__name__)

_INSERT = text(
    "INSERT INTO sdata (timekey, sensorid, fieldid, value) "
    "VALUES (:timekey, :sensorid, :fieldid, :value)"
)


def time_bucket(epoch_seconds: float) -> int:
    """``epoch_seconds`` rounded down to the start of its minute."""
    return int(epoch_seconds // 60) * 60


class MetricStore:
    """Writes one reading as four rows, one per field, in one transaction.

    With ``dry_run`` the rows are resolved and logged but not inserted.
    """

    def __init__(self, engine: Engine, resolver: Optional[IdentityResolver] = None, dry_run: bool = False):
        self._engine = engine
        self._resolver = resolver or IdentityResolver(engine)
        self._dry_run = dry_run

    @property
    def resolver(self) -> IdentityResolver:
        return self._resolver

    def _rows(self, sensor_id: int, timekey: int, temperature: float, humidity: float,
              voltage: float, capacity: float) -> List[dict]:
        values = [
            (FIELD_TEMPERATURE, temperature),
            (FIELD_HUMIDITY, humidity),
            (FIELD_BATTERY, voltage),
            (FIELD_CAPACITY, capacity),
        ]
        return [
            {
                "timekey": timekey,
                "sensorid": sensor_id,
                "fieldid": self._resolver.field_id(name),
                "value": float(value),
            }
            for name, value in values
        ]

    def add_reading(
        self,
        station: str,
        sensor: str,
        timekey: int,
        temperature: float,
        humidity: float,
        voltage: float,
        capacity: float,
    ) -> int:
        """Insert the four field rows of one reading; returns the row count.

        Raises:
            NotFoundError, AmbiguousError: station/sensor does not resolve.
            PersistenceError: any insert failed; nothing is committed.
        """
        try:
            with self._engine.begin() as conn:
                sensor_id = self._resolver.sensor_id(station, sensor, conn=conn)
                rows = self._rows(sensor_id, timekey, temperature, humidity, voltage, capacity)
                if self._dry_run:
                    for row in rows:
                        logger.info("[STORE] dry run, not inserting %s", row)
                    return len(rows)
                for row in rows:
                    conn.execute(_INSERT, row)
        except SQLAlchemyError as e:
            raise PersistenceError(f"adding to {station}/{sensor} failed", e) from e

        logger.debug(
            "[STORE] %s/%s timekey=%d sensorid=%d: %d rows",
            station, sensor, timekey, sensor_id, len(rows),
        )
        return len(rows)
