"""Shared fixtures: configuration, in-memory SQLite store, cloud responses."""

import json
from typing import Any, Dict, List

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from shelly_ingest.common.config import Configuration


SCHEMA = [
    "CREATE TABLE station (id INTEGER PRIMARY KEY, name VARCHAR(64) NOT NULL)",
    "CREATE TABLE sensor (id INTEGER PRIMARY KEY, stationid INTEGER NOT NULL, name VARCHAR(64) NOT NULL)",
    "CREATE TABLE mfield (id INTEGER PRIMARY KEY, name VARCHAR(64) NOT NULL)",
    "CREATE TABLE sdata (timekey INTEGER NOT NULL, sensorid INTEGER NOT NULL, "
    "fieldid INTEGER NOT NULL, value FLOAT NOT NULL)",
]

SEED = [
    "INSERT INTO station (id, name) VALUES (1, 'S1'), (2, 'S2')",
    # S2/DUP is deliberately duplicated
    "INSERT INTO sensor (id, stationid, name) VALUES (10, 1, 'T1'), (11, 1, 'T2'), "
    "(20, 2, 'DUP'), (21, 2, 'DUP')",
    "INSERT INTO mfield (id, name) VALUES (1, 'temperature'), (2, 'humidity'), "
    "(3, 'capacity'), (4, 'battery')",
]


@pytest.fixture
def engine():
    """In-memory SQLite with the logical schema of the meteo store."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    with eng.begin() as conn:
        for stmt in SCHEMA + SEED:
            conn.execute(text(stmt))
    yield eng
    eng.dispose()


@pytest.fixture
def empty_engine():
    """Schema without any mfield rows."""
    eng = create_engine("sqlite://", poolclass=StaticPool, future=True)
    with eng.begin() as conn:
        for stmt in SCHEMA:
            conn.execute(text(stmt))
    yield eng
    eng.dispose()


def fetch_rows(engine) -> List[tuple]:
    with engine.connect() as conn:
        return conn.execute(
            text("SELECT timekey, sensorid, fieldid, value FROM sdata ORDER BY fieldid")
        ).fetchall()


@pytest.fixture
def config_data() -> Dict[str, Any]:
    return {
        "cloud": {
            "url": "https://shelly-77-eu.shelly.cloud",
            "endpoint": "/v2/devices/api/get",
            "key": "secret-key",
        },
        "database": {
            "hostname": "meteo.example.org",
            "username": "meteo",
            "password": "p@ss:word",
            "dbname": "meteo",
            "port": 3306,
        },
        "devices": [
            {"id": "A", "station": "S1", "sensor": "T1"},
            {"id": "B", "station": "S1", "sensor": "T2"},
        ],
    }


@pytest.fixture
def config(config_data) -> Configuration:
    return Configuration(config_data)


@pytest.fixture
def config_file(tmp_path, config_data) -> str:
    path = tmp_path / "shellyd.json"
    path.write_text(json.dumps(config_data), encoding="utf-8")
    return str(path)


def status_item(device_id: str, ts=1000, tC=21.5, rh=40.0, V=3.9, percent=80) -> Dict[str, Any]:
    """One cloud response item for an H&T device."""
    return {
        "id": device_id,
        "status": {
            "ts": ts,
            "temperature:0": {"id": 0, "tC": tC, "tF": tC * 9 / 5 + 32},
            "humidity:0": {"id": 0, "rh": rh},
            "devicepower:0": {"id": 0, "battery": {"V": V, "percent": percent}, "external": {"present": False}},
            "sys": {"uptime": 12},
        },
    }


def payload(*items) -> bytes:
    return json.dumps(list(items)).encode("utf-8")
