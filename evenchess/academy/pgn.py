"""
Annotated-game study set.

Games are stored as PGN text and replayed once through python-chess so the
reducer can step through precomputed positions without touching a board.
"""

from __future__ import annotations

import functools
from dataclasses import replace
from io import StringIO

import chess
import chess.pgn

from evenchess.state.contracts import PgnStudyState

_GAMES_PGN = (
    """[Event "Paris"]
[White "Paul Morphy"]
[Black "Duke Karl / Count Isouard"]
[Result "1-0"]
[Name "Opera Game"]

1. e4 e5 2. Nf3 d6 3. d4 Bg4 4. dxe5 Bxf3 5. Qxf3 dxe5 6. Bc4 Nf6 7. Qb3 Qe7
8. Nc3 c6 9. Bg5 b5 10. Nxb5 cxb5 11. Bxb5+ Nbd7 12. O-O-O Rd8 13. Rxd7 Rxd7
14. Rd1 Qe6 15. Bxd7+ Nxd7 16. Qb8+ Nxb8 17. Rd8# 1-0
""",
    """[Event "Casual"]
[Result "1-0"]
[Name "Scholar's Mate"]

1. e4 e5 2. Bc4 Nc6 3. Qh5 Nf6 4. Qxf7# 1-0
""",
    """[Event "Casual"]
[Result "0-1"]
[Name "Fool's Mate"]

1. f3 e5 2. g4 Qh4# 0-1
""",
)


@functools.lru_cache(maxsize=None)
def _load(index: int) -> PgnStudyState:
    game = chess.pgn.read_game(StringIO(_GAMES_PGN[index]))
    if game is None:
        raise ValueError(f"Study game {index} has no moves")

    board = game.board()
    moves: list[str] = []
    positions = [board.fen()]
    for move in game.mainline_moves():
        moves.append(board.san(move))
        board.push(move)
        positions.append(board.fen())

    return PgnStudyState(
        game_index=index,
        game_name=game.headers.get("Name", f"Game {index + 1}"),
        moves=tuple(moves),
        positions=tuple(positions),
    )


def game_count() -> int:
    return len(_GAMES_PGN)


def load_study(index: int) -> PgnStudyState:
    """Study state for the index-th game (wrapping), positioned before move 1."""
    return _load(index % len(_GAMES_PGN))


def step(study: PgnStudyState, delta: int) -> PgnStudyState:
    """Move the study cursor by delta plies, clamped to the game."""
    index = max(0, min(study.current_move_index + delta, len(study.moves)))
    if index == study.current_move_index:
        return study
    return replace(study, current_move_index=index)
