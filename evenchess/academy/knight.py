"""Knight-path puzzles: reach a target square in the fewest knight hops."""

from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass

from evenchess.academy.drills import file_rank_to_square, generate_random_square

_KNIGHT_OFFSETS = (
    (1, 2), (2, 1), (2, -1), (1, -2),
    (-1, -2), (-2, -1), (-2, 1), (-1, 2),
)


@dataclass(frozen=True)
class KnightPuzzle:
    start: str
    target: str
    optimal_moves: int


def get_square_indices(square: str) -> tuple[int, int]:
    """Algebraic square to (file, rank) indices: "e4" → (4, 3)."""
    return ord(square[0].lower()) - ord("a"), int(square[1]) - 1


def get_knight_moves(square: str) -> list[str]:
    file, rank = get_square_indices(square)
    moves = []
    for df, dr in _KNIGHT_OFFSETS:
        f, r = file + df, rank + dr
        if 0 <= f < 8 and 0 <= r < 8:
            moves.append(file_rank_to_square(f, r))
    return moves


def find_knight_distance(start: str, target: str) -> int:
    """Minimum number of knight moves between two squares (BFS)."""
    if start == target:
        return 0
    seen = {start}
    queue: deque[tuple[str, int]] = deque([(start, 0)])
    while queue:
        square, dist = queue.popleft()
        for nxt in get_knight_moves(square):
            if nxt == target:
                return dist + 1
            if nxt not in seen:
                seen.add(nxt)
                queue.append((nxt, dist + 1))
    return -1  # unreachable on an 8x8 board


def is_valid_knight_move(origin: str, dest: str) -> bool:
    return dest in get_knight_moves(origin)


def generate_knight_puzzle(
    min_moves: int = 2,
    max_moves: int = 4,
    rng: random.Random | None = None,
) -> KnightPuzzle:
    rng = rng or random
    while True:
        start = generate_random_square(rng)
        target = generate_random_square(rng)
        if start == target:
            continue
        distance = find_knight_distance(start, target)
        if min_moves <= distance <= max_moves:
            return KnightPuzzle(start=start, target=target, optimal_moves=distance)
