"""
Bullet clock arithmetic.

Pure functions over a SessionState snapshot. Each returns a dict of field
updates meant for dataclasses.replace(); an empty dict means "no change".
The reducer owns when these are applied, the session owns how often.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

from evenchess.state.contracts import Color, SessionState
from evenchess.state.utils import now_ms


def tick(state: SessionState, now: float | None = None) -> dict[str, Any]:
    """
    Charge the side to move for the time since the last tick.

    A missing last_tick_time counts as zero elapsed, so the first tick after
    the clock starts never charges for setup time.
    """
    if not state.timer_active or state.timers is None:
        return {}

    now = now_ms() if now is None else now
    elapsed = 0.0 if state.last_tick_time is None else max(0.0, now - state.last_tick_time)
    timers = state.timers

    if state.turn == "w":
        timers = replace(timers, white_ms=max(0, int(timers.white_ms - elapsed)))
    else:
        timers = replace(timers, black_ms=max(0, int(timers.black_ms - elapsed)))

    return {"timers": timers, "last_tick_time": now}


def apply_increment(state: SessionState, color: Color) -> dict[str, Any]:
    if state.timers is None:
        return {}
    timers = state.timers
    if color == "w":
        timers = replace(timers, white_ms=timers.white_ms + timers.increment_ms)
    else:
        timers = replace(timers, black_ms=timers.black_ms + timers.increment_ms)
    return {"timers": timers}


def is_time_expired(state: SessionState, color: Color) -> bool:
    if state.timers is None:
        return False
    remaining = state.timers.white_ms if color == "w" else state.timers.black_ms
    return remaining <= 0


def format_time(ms: float) -> str:
    """61000 → "1:01". Floors to whole seconds; negative input shows 0:00."""
    total_seconds = max(0, int(ms // 1000))
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"
