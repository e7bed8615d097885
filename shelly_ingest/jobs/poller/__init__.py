"""Minute-aligned poller: cloud status -> readings -> meteo database.

Modules:
- config: RunnerConfig dataclass
- schedule: minute alignment of poll cycles
- stats: CycleStats per poll cycle
- runner: Poller (run_once / run)
- cli: CLI entry point (main)
"""

from .config import RunnerConfig
from .runner import Poller
from .cli import main

__all__ = ["RunnerConfig", "Poller", "main"]
