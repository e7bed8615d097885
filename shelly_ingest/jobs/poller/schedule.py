"""Minute alignment of poll cycles."""

from __future__ import annotations

TICK_SECONDS = 60


def current_tick(now: float) -> int:
    """Start of the minute containing ``now`` (epoch seconds)."""
    return int(now // TICK_SECONDS) * TICK_SECONDS


def next_tick(now: float) -> int:
    """Start of the minute following ``now``.

    Missed minutes are never caught up: a cycle that overran waits for the
    boundary after the current time.
    """
    return current_tick(now) + TICK_SECONDS


def seconds_until_next_tick(now: float) -> float:
    return max(0.0, next_tick(now) - now)
