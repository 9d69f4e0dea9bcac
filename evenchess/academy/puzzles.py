"""
Built-in puzzle sets for the tactics and checkmate drills.

Solutions are UCI strings; the first move is the one the player must find.
The drill accepts an answer when the guessed square is the destination of
that first move.
"""

from __future__ import annotations

from evenchess.state.contracts import TacticsPuzzle

MATE_PUZZLES: tuple[TacticsPuzzle, ...] = (
    TacticsPuzzle(
        fen="6k1/5ppp/8/8/8/8/8/R5K1 w - - 0 1",
        solution=("a1a8",),
        theme="back rank",
        description="Back-rank mate with the rook",
    ),
    TacticsPuzzle(
        fen="k7/8/1K6/8/8/8/7Q/8 w - - 0 1",
        solution=("h2h8",),
        theme="queen and king",
        description="Queen mates on the back rank with king support",
    ),
    TacticsPuzzle(
        fen="r1bqkb1r/pppp1ppp/2n2n2/4p2Q/2B1P3/8/PPPP1PPP/RNB1K1NR w KQkq - 4 4",
        solution=("h5f7",),
        theme="scholar's mate",
        description="Queen and bishop hit f7",
    ),
    TacticsPuzzle(
        fen="rnbqkbnr/pppp1ppp/8/4p3/6P1/5P2/PPPPP2P/RNBQKBNR b KQkq - 0 2",
        solution=("d8h4",),
        theme="fool's mate",
        description="Black exploits the weakened king diagonal",
    ),
)

TACTICS_PUZZLES: tuple[TacticsPuzzle, ...] = (
    TacticsPuzzle(
        fen="q3k3/8/8/1N6/8/8/8/4K3 w - - 0 1",
        solution=("b5c7", "e8d7", "c7a8"),
        theme="fork",
        description="Knight forks king and queen",
    ),
    TacticsPuzzle(
        fen="2B5/8/8/3k4/8/8/6q1/K7 w - - 0 1",
        solution=("c8b7", "d5e5", "b7g2"),
        theme="skewer",
        description="Bishop check wins the queen behind the king",
    ),
    TacticsPuzzle(
        fen="4k3/8/8/3q4/8/8/3R4/4K3 w - - 0 1",
        solution=("d2d5",),
        theme="hanging piece",
        description="Take the undefended queen",
    ),
)


def puzzles_for(drill_type: str) -> tuple[TacticsPuzzle, ...]:
    return MATE_PUZZLES if drill_type == "mate" else TACTICS_PUZZLES


def solution_target_square(puzzle: TacticsPuzzle, index: int = 0) -> str | None:
    """Destination square of the index-th solution move."""
    if index >= len(puzzle.solution):
        return None
    return puzzle.solution[index][2:4]


def side_to_move(puzzle: TacticsPuzzle) -> str:
    parts = puzzle.fen.split()
    return parts[1] if len(parts) > 1 else "w"
