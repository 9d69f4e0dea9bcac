"""
Coordinate drill helpers and the file/rank cursor shared by every drill.

Squares are algebraic strings ("e4"); files and ranks are 0-based indices
(a = 0, rank 1 = 0). Scrolling "up" moves right on files and toward rank 8
on ranks, wrapping at the edges.
"""

from __future__ import annotations

import random

from evenchess.state.contracts import NavAxis, ScrollDirection

FILES = "abcdefgh"
RANKS = "12345678"

DEFAULT_CURSOR = (4, 3)  # e4


def generate_random_square(rng: random.Random | None = None) -> str:
    rng = rng or random
    return rng.choice(FILES) + rng.choice(RANKS)


def check_coordinate_answer(target: str, answer: str) -> bool:
    return target.lower() == answer.lower()


def get_file_index(square: str) -> int:
    if not square:
        return -1
    return FILES.find(square[0].lower())


def get_rank_index(square: str) -> int:
    if len(square) < 2:
        return -1
    return RANKS.find(square[1])


def file_rank_to_square(file: int, rank: int) -> str:
    return get_file_letter(file) + get_rank_number(rank)


def get_file_letter(file: int) -> str:
    return FILES[file] if 0 <= file < 8 else "a"


def get_rank_number(rank: int) -> str:
    return RANKS[rank] if 0 <= rank < 8 else "1"


def move_file(file: int, direction: ScrollDirection) -> int:
    return (file + (1 if direction == "up" else -1)) % 8


def move_rank(rank: int, direction: ScrollDirection) -> int:
    return (rank + (1 if direction == "up" else -1)) % 8


def move_cursor_axis(
    file: int, rank: int, axis: NavAxis, direction: ScrollDirection
) -> tuple[int, int]:
    """Move the cursor along the active axis. Returns (file, rank)."""
    if axis == "file":
        return move_file(file, direction), rank
    return file, move_rank(rank, direction)
