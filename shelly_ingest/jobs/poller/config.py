"""Poller configuration."""

from __future__ import annotations

from dataclasses import dataclass

from ...common.config import Configuration


@dataclass(frozen=True)
class RunnerConfig:
    """Runtime options of the poller."""
    once: bool = False
    dry_run: bool = False
    workers: int = 1

    @classmethod
    def from_config(cls, config: Configuration, *, once: bool = False, dry_run: bool = False) -> "RunnerConfig":
        return cls(
            once=once,
            dry_run=dry_run,
            workers=max(1, config.int_value("poller.workers", 1)),
        )
