"""Small helpers shared by the reducer, selectors and the gesture classifier."""

from __future__ import annotations

import time

from evenchess.state.contracts import Phase

_MENU_PHASES: frozenset[Phase] = frozenset(
    {
        "menu",
        "difficulty_select",
        "board_markers_select",
        "view_log",
        "reset_confirm",
        "exit_confirm",
        "mode_select",
        "bullet_setup",
        "academy_select",
    }
)
_CONFIRM_PHASES: frozenset[Phase] = frozenset({"reset_confirm", "exit_confirm"})


def now_ms() -> float:
    """Monotonic milliseconds; only differences between two readings are meaningful."""
    return time.monotonic() * 1000.0


def get_move_number(history_length: int) -> int:
    """Full-move number of the next ply, given how many plies have been played."""
    return history_length // 2 + 1


def is_menu_phase(phase: Phase) -> bool:
    return phase in _MENU_PHASES


def is_confirm_phase(phase: Phase) -> bool:
    return phase in _CONFIRM_PHASES


def wrap_index(index: int, delta: int, size: int) -> int:
    if size <= 0:
        return 0
    return (index + delta + size) % size


def clamp_index(index: int, size: int) -> int:
    if size <= 0:
        return 0
    return max(0, min(index, size - 1))
