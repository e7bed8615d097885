"""Shelly cloud ingestion daemon.

Polls the Shelly cloud for the status of configured H&T devices once per
minute and appends the readings to the meteo database.
"""

__version__ = "0.1.0"
