"""
Session state and its sub-entities.

Everything here is a frozen dataclass: the reducer never mutates a state, it
builds the next one with dataclasses.replace(). Collections are tuples so
that two states with the same content compare equal, which is what the
reducer relies on to return the identical object for a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, get_args

from evenchess.state.constants import DEFAULT_TIME_CONTROL_INDEX, STARTING_FEN

Phase = Literal[
    "idle",
    "piece_select",
    "dest_select",
    "promotion_select",
    "menu",
    "difficulty_select",
    "board_markers_select",
    "view_log",
    "reset_confirm",
    "exit_confirm",
    "mode_select",
    "bullet_setup",
    "academy_select",
    "coordinate_drill",
    "knight_path_drill",
    "tactics_drill",
    "mate_drill",
    "pgn_study",
]
PHASES: tuple[Phase, ...] = get_args(Phase)

Color = Literal["w", "b"]
GameMode = Literal["play", "bullet", "academy"]
Difficulty = Literal["easy", "casual", "serious"]
MenuOption = Literal["mode", "board_markers", "view_log", "difficulty", "reset", "exit"]
DrillType = Literal["coordinate", "knight_path", "tactics", "mate", "pgn"]
NavAxis = Literal["file", "rank"]
Feedback = Literal["none", "correct", "incorrect"]
ScrollDirection = Literal["up", "down"]

# Phases in which the board is being played; the bullet clock only runs here.
PLAY_PHASES: frozenset[Phase] = frozenset(
    {"idle", "piece_select", "dest_select", "promotion_select"}
)
DRILL_PHASES: frozenset[Phase] = frozenset(
    {"coordinate_drill", "knight_path_drill", "tactics_drill", "mate_drill", "pgn_study"}
)


# ------------------------------------------------------------------ #
# Board-derived entities                                              #
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class CarouselMove:
    uci: str
    san: str
    from_square: str
    to_square: str
    promotion: str | None = None


@dataclass(frozen=True)
class PieceEntry:
    id: str       # "w-n-g1": color, piece type, origin square
    label: str    # "Knight G1"
    color: Color
    type: str     # python-chess piece symbol, lower case
    square: str
    moves: tuple[CarouselMove, ...] = ()


@dataclass(frozen=True)
class PendingMove:
    """A move committed by the player, waiting for the rules engine to apply it."""
    uci: str
    from_square: str
    to_square: str
    promotion: str | None = None


@dataclass(frozen=True)
class PromotionMove:
    from_square: str
    to_square: str


@dataclass(frozen=True)
class Timers:
    white_ms: int
    black_ms: int
    increment_ms: int


# ------------------------------------------------------------------ #
# Academy                                                             #
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class Score:
    correct: int = 0
    total: int = 0


@dataclass(frozen=True)
class KnightPathState:
    start_square: str
    target_square: str
    current_square: str
    optimal_moves: int
    moves_taken: int = 0
    path: tuple[str, ...] = ()


@dataclass(frozen=True)
class TacticsPuzzle:
    fen: str
    solution: tuple[str, ...]   # UCI moves, first one is the player's
    theme: str
    description: str


@dataclass(frozen=True)
class PgnStudyState:
    game_index: int
    game_name: str
    moves: tuple[str, ...]       # SAN
    positions: tuple[str, ...]   # FEN after 0..len(moves) moves
    current_move_index: int = 0

    @property
    def fen(self) -> str:
        return self.positions[self.current_move_index]


@dataclass(frozen=True)
class AcademyState:
    drill_type: DrillType
    score: Score = field(default_factory=Score)
    cursor_file: int = 4   # e
    cursor_rank: int = 3   # 4
    nav_axis: NavAxis = "file"
    feedback: Feedback = "none"
    target_square: str | None = None
    knight_path: KnightPathState | None = None
    tactics_puzzle: TacticsPuzzle | None = None
    puzzle_index: int = 0
    pgn_study: PgnStudyState | None = None


# ------------------------------------------------------------------ #
# Session                                                             #
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class SessionState:
    phase: Phase = "idle"
    fen: str = STARTING_FEN
    turn: Color = "w"
    pieces: tuple[PieceEntry, ...] = ()
    history: tuple[str, ...] = ()

    # Selection cursors
    selected_piece_id: str | None = None
    selected_move_index: int = 0
    pending_promotion_move: PromotionMove | None = None
    selected_promotion_index: int = 0
    menu_selected_index: int = 0
    selected_time_control_index: int = DEFAULT_TIME_CONTROL_INDEX
    log_scroll_offset: int = 0

    # Persisted settings
    mode: GameMode = "play"
    difficulty: Difficulty = "casual"
    show_board_markers: bool = True

    # Bullet clock
    timers: Timers | None = None
    timer_active: bool = False
    last_tick_time: float | None = None

    academy_state: AcademyState | None = None

    # Move bookkeeping
    pending_move: PendingMove | None = None
    last_move: str | None = None
    last_move_uci: str | None = None
    player_last_move_to_square: str | None = None
    engine_thinking: bool = False
    in_check: bool = False
    game_over: str | None = None

    has_unsaved_changes: bool = False
    previous_phase: Phase | None = None
    phase_entered_at: float = 0.0

    # Signals for the session orchestrator
    exit_requested: bool = False
    reset_requested: bool = False


def build_initial_state(
    *,
    fen: str = STARTING_FEN,
    turn: Color = "w",
    pieces: tuple[PieceEntry, ...] = (),
    in_check: bool = False,
    difficulty: Difficulty = "casual",
    show_board_markers: bool = True,
    now: float = 0.0,
) -> SessionState:
    return SessionState(
        fen=fen,
        turn=turn,
        pieces=pieces,
        in_check=in_check,
        difficulty=difficulty,
        show_board_markers=show_board_markers,
        phase_entered_at=now,
    )
