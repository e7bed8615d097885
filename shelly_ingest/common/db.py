from __future__ import annotations

import logging

from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Engine

from .config import Configuration


logger = logging.getLogger(__name__)

DEFAULT_DRIVER = "mysql+pymysql"


def build_sqlalchemy_url(config: Configuration) -> URL:
    # URL.create escapes passwords with special characters.
    return URL.create(
        config.string_value("database.driver") if config.has("database.driver") else DEFAULT_DRIVER,
        username=config.string_value("database.username"),
        password=config.string_value("database.password"),
        host=config.string_value("database.hostname"),
        port=config.int_value("database.port"),
        database=config.string_value("database.dbname"),
    )


def get_engine(config: Configuration) -> Engine:
    url = build_sqlalchemy_url(config)

    logger.info(
        "[DB] creating engine host=%s port=%s db=%s user=%s driver=%s",
        url.host,
        url.port,
        url.database,
        url.username,
        url.drivername,
    )

    engine = create_engine(url, pool_pre_ping=True, pool_recycle=3600, future=True)

    # Connection test: shows in the log whether the database is reachable at startup.
    # The poller re-attempts every cycle, so a failure here is not fatal.
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("[DB] connection test OK")
    except Exception:
        logger.exception("[DB] connection test FAILED")

    return engine
