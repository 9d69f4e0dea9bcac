"""
Fixed vocabularies and limits shared by the reducer, selectors and session.

Option tuples are ordered as they appear on the display; cursor indices in
SessionState always index into one of these.
"""

from __future__ import annotations

from dataclasses import dataclass

STARTING_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

MAX_HISTORY_LENGTH = 200

# Rows of the move log that fit on the display at once.
LOG_VISIBLE_ROWS = 5

MENU_OPTIONS = ("mode", "board_markers", "view_log", "difficulty", "reset", "exit")
MENU_LABELS = {
    "mode": "Mode",
    "board_markers": "Board Markers",
    "view_log": "View Log",
    "difficulty": "Difficulty",
    "reset": "Reset",
    "exit": "Exit",
}

DIFFICULTY_OPTIONS = ("easy", "casual", "serious")
DIFFICULTY_LABELS = {"easy": "Easy", "casual": "Casual", "serious": "Serious"}

BOARD_MARKER_OPTIONS = (True, False)

MODE_OPTIONS = ("play", "bullet", "academy")
MODE_LABELS = {"play": "Play vs AI", "bullet": "Bullet Blitz", "academy": "Academy"}

ACADEMY_OPTIONS = ("coordinate", "tactics", "mate", "knight_path", "pgn")
ACADEMY_LABELS = {
    "coordinate": "Coordinates",
    "tactics": "Tactics",
    "mate": "Checkmate",
    "knight_path": "Knight Path",
    "pgn": "PGN Study",
}

# Promotion carousel order, as UCI suffixes.
PROMOTION_PIECES = ("q", "r", "b", "n")
PIECE_NAMES = {
    "p": "Pawn",
    "n": "Knight",
    "b": "Bishop",
    "r": "Rook",
    "q": "Queen",
    "k": "King",
}

RESET_CONFIRM_OPTIONS = ("Confirm Reset", "Cancel")
EXIT_CONFIRM_OPTIONS = ("Save & Exit", "Cancel")


@dataclass(frozen=True)
class TimeControl:
    label: str
    initial_ms: int
    increment_ms: int


TIME_CONTROLS = (
    TimeControl("1+0", 60_000, 0),
    TimeControl("2+1", 120_000, 1_000),
    TimeControl("3+0", 180_000, 0),
    TimeControl("3+5", 180_000, 5_000),
    TimeControl("5+0", 300_000, 0),
    TimeControl("5+5", 300_000, 5_000),
)
DEFAULT_TIME_CONTROL_INDEX = 2
