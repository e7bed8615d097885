"""Statistics of one poll cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class CycleStats:
    """Counters of a single fetch -> extract -> persist cycle."""

    requested: int = 0
    received: int = 0
    stored: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: float = 0.0
    error: Optional[str] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return self.error is None

    def __str__(self) -> str:
        return (
            f"requested={self.requested} received={self.received} stored={self.stored} "
            f"failed={self.failed} skipped={self.skipped} ms={self.duration_ms:.1f}"
        )

    def to_dict(self) -> dict:
        return {
            "requested": self.requested,
            "received": self.received,
            "stored": self.stored,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
        }
