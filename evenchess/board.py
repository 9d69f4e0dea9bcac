"""
Thin facade over python-chess for the session.

The reducer never sees a chess.Board; it only gets BoardSnapshot values
built from this class. Move legality, SAN and game-over detection all come
from python-chess.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import chess

from evenchess.state.contracts import CarouselMove, Color, PieceEntry

logger = logging.getLogger(__name__)

PIECE_LABELS: dict[int, str] = {
    chess.KING: "King",
    chess.QUEEN: "Queen",
    chess.ROOK: "Rook",
    chess.BISHOP: "Bishop",
    chess.KNIGHT: "Knight",
    chess.PAWN: "Pawn",
}

# Carousel order: most valuable pieces first. The king is last; it is rarely
# the piece the user is looking for.
_PIECE_ORDER: dict[int, int] = {
    chess.QUEEN: 0,
    chess.ROOK: 1,
    chess.BISHOP: 2,
    chess.KNIGHT: 3,
    chess.PAWN: 4,
    chess.KING: 5,
}


@dataclass(frozen=True)
class BoardSnapshot:
    fen: str
    turn: Color
    pieces: tuple[PieceEntry, ...]
    in_check: bool
    game_over: str | None = None


def piece_id(color: Color, piece_symbol: str, square: str) -> str:
    """"w-n-g1": stable while the piece stays on its square."""
    return f"{color}-{piece_symbol}-{square}"


class ChessService:
    """Facade over chess.Board."""

    def __init__(self, fen: str | None = None) -> None:
        self._board = chess.Board(fen) if fen else chess.Board()
        self._cached_fen: str | None = None
        self._cached_pieces: tuple[PieceEntry, ...] = ()

    # ------------------------------------------------------------------ #
    # State queries                                                        #
    # ------------------------------------------------------------------ #

    @property
    def fen(self) -> str:
        return self._board.fen()

    @property
    def turn(self) -> Color:
        return "w" if self._board.turn == chess.WHITE else "b"

    @property
    def is_check(self) -> bool:
        return self._board.is_check()

    @property
    def is_game_over(self) -> bool:
        return self._board.is_game_over(claim_draw=True)

    @property
    def board(self) -> chess.Board:
        """A copy; callers may push moves on it freely."""
        return self._board.copy()

    def history_san(self) -> list[str]:
        replay = chess.Board(self._board.root().fen())
        san_moves: list[str] = []
        for move in self._board.move_stack:
            san_moves.append(replay.san(move))
            replay.push(move)
        return san_moves

    def snapshot(self) -> BoardSnapshot:
        return BoardSnapshot(
            fen=self.fen,
            turn=self.turn,
            pieces=self.pieces_with_moves(),
            in_check=self.is_check,
            game_over=self.game_over_reason(),
        )

    def game_over_reason(self) -> str | None:
        """Human-readable result, or None while the game is running."""
        outcome = self._board.outcome(claim_draw=True)
        if outcome is None:
            return None
        match outcome.termination:
            case chess.Termination.CHECKMATE:
                winner = "White" if outcome.winner == chess.WHITE else "Black"
                return f"Checkmate! {winner} wins"
            case chess.Termination.STALEMATE:
                return "Stalemate - draw"
            case chess.Termination.THREEFOLD_REPETITION | chess.Termination.FIVEFOLD_REPETITION:
                return "Draw by repetition"
            case chess.Termination.INSUFFICIENT_MATERIAL:
                return "Draw by insufficient material"
            case chess.Termination.FIFTY_MOVES | chess.Termination.SEVENTYFIVE_MOVES:
                return "Draw by fifty-move rule"
            case _:
                return "Draw"

    def pieces_with_moves(self) -> tuple[PieceEntry, ...]:
        """Movable pieces of the side to move with their legal moves. Memoized per FEN."""
        fen = self._board.fen()
        if fen == self._cached_fen:
            return self._cached_pieces

        by_square: dict[chess.Square, list[chess.Move]] = {}
        for move in self._board.legal_moves:
            by_square.setdefault(move.from_square, []).append(move)

        color: Color = self.turn
        entries: list[PieceEntry] = []
        for square, moves in by_square.items():
            piece = self._board.piece_at(square)
            if piece is None:
                continue
            name = chess.square_name(square)
            entries.append(
                PieceEntry(
                    id=piece_id(color, piece.symbol().lower(), name),
                    label=f"{PIECE_LABELS[piece.piece_type]} {name.upper()}",
                    color=color,
                    type=piece.symbol().lower(),
                    square=name,
                    moves=self._carousel_moves(moves),
                )
            )

        entries.sort(
            key=lambda e: (
                _PIECE_ORDER[chess.PIECE_SYMBOLS.index(e.type)],
                e.square[1],
                e.square[0],
            )
        )
        self._cached_fen = fen
        self._cached_pieces = tuple(entries)
        return self._cached_pieces

    def _carousel_moves(self, moves: list[chess.Move]) -> tuple[CarouselMove, ...]:
        # Under-promotions are picked in promotion_select; the carousel shows
        # one queen promotion per destination square.
        moves = [m for m in moves if m.promotion in (None, chess.QUEEN)]
        forward = 1 if self._board.turn == chess.WHITE else -1

        def order(move: chess.Move) -> tuple[int, int, str]:
            capture = 0 if self._board.is_capture(move) else 1
            progress = (chess.square_rank(move.to_square) - chess.square_rank(move.from_square)) * forward
            return capture, -progress, chess.square_name(move.to_square)

        return tuple(
            CarouselMove(
                uci=move.uci(),
                san=self._board.san(move),
                from_square=chess.square_name(move.from_square),
                to_square=chess.square_name(move.to_square),
                promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
            )
            for move in sorted(moves, key=order)
        )

    # ------------------------------------------------------------------ #
    # Mutation                                                            #
    # ------------------------------------------------------------------ #

    def make_move_uci(self, uci: str) -> str | None:
        """Apply a UCI move. Returns its SAN, or None if it is malformed or illegal."""
        try:
            move = chess.Move.from_uci(uci)
        except (ValueError, chess.InvalidMoveError):
            logger.warning("Malformed UCI move %r", uci)
            return None
        if move not in self._board.legal_moves:
            logger.warning("Illegal move %s in %s", uci, self._board.fen())
            return None
        san = self._board.san(move)
        self._board.push(move)
        return san

    def reset(self) -> None:
        self._board.reset()

    def load_fen(self, fen: str) -> bool:
        try:
            board = chess.Board(fen)
        except ValueError:
            logger.error("Invalid FEN %r", fen)
            return False
        self._board = board
        return True

    def load_history(self, history: list[str], fen: str | None = None) -> bool:
        """
        Replay SAN moves from the starting position so the board keeps its
        move stack (repetition detection). Falls back to the bare FEN when
        the history does not replay cleanly, e.g. a truncated save.
        """
        board = chess.Board()
        try:
            for san in history:
                board.push_san(san)
        except ValueError:
            logger.info("Saved history does not replay; loading FEN only")
            return self.load_fen(fen) if fen else False
        if fen is not None and board.fen() != fen:
            return self.load_fen(fen)
        self._board = board
        return True
