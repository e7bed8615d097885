"""Exceptions raised by the ingestion pipeline.

Cycle-level errors (TransportError, ParseError) skip the whole poll cycle.
Device-level errors skip a single device and the batch continues.
"""

from __future__ import annotations

from typing import Optional


class ShellyIngestError(Exception):
    """Base class of all package errors."""


class ConfigurationError(ShellyIngestError):
    """Missing or ill-typed configuration value."""

    def __init__(self, path: str, message: str = "missing configuration value"):
        super().__init__(f"{message}: {path}")
        self.path = path


# ---------------------------------------------------------------------------
# Cycle-level
# ---------------------------------------------------------------------------

class TransportError(ShellyIngestError):
    """Network or HTTP failure talking to the cloud API."""


class ParseError(ShellyIngestError):
    """The response as a whole is not the expected JSON document."""


# ---------------------------------------------------------------------------
# Device-level
# ---------------------------------------------------------------------------

class FieldExtractionError(ShellyIngestError):
    """A required status field of one device is missing or ill-typed."""

    def __init__(self, device_id: str, path: str, reason: str = "missing", status: Optional[dict] = None):
        super().__init__(f"device {device_id}: {reason} field {path}")
        self.device_id = device_id
        self.path = path
        self.reason = reason
        # the status object the value was looked up in
        self.status = status


class IdentityError(ShellyIngestError):
    """Lookup of a store-internal id did not yield exactly one row."""

    def __init__(self, what: str, key: str, rows: int):
        super().__init__(f"{what} {key}: {rows} matching rows")
        self.what = what
        self.key = key
        self.rows = rows


class NotFoundError(IdentityError):
    """No row matches the looked-up name."""

    def __init__(self, what: str, key: str):
        super().__init__(what, key, 0)


class AmbiguousError(IdentityError):
    """More than one row matches the looked-up name."""


class PersistenceError(ShellyIngestError):
    """Writing a reading to the store failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message if cause is None else f"{message}: {cause}")
        self.cause = cause
