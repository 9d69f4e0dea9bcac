"""
Action vocabulary: the only input the session reducer understands.

The gesture classifier produces the first five; the session orchestrator,
the engine turn loop and the bullet clock produce the rest. Actions are
frozen dataclasses and carry no behaviour; consumers pattern-match on the
class (see state/reducer.py).
"""

from __future__ import annotations

from dataclasses import dataclass

from evenchess.state.contracts import (
    Color,
    Difficulty,
    DrillType,
    GameMode,
    MenuOption,
    PieceEntry,
    ScrollDirection,
)


# ------------------------------------------------------------------ #
# Gestures                                                            #
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class Scroll:
    direction: ScrollDirection


@dataclass(frozen=True)
class Tap:
    selected_index: int = 0
    selected_name: str = ""


@dataclass(frozen=True)
class DoubleTap:
    pass


@dataclass(frozen=True)
class ForegroundEnter:
    pass


@dataclass(frozen=True)
class ForegroundExit:
    pass


# ------------------------------------------------------------------ #
# Menu and settings                                                   #
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class OpenMenu:
    pass


@dataclass(frozen=True)
class CloseMenu:
    pass


@dataclass(frozen=True)
class MenuSelect:
    option: MenuOption


@dataclass(frozen=True)
class SetDifficulty:
    level: Difficulty


@dataclass(frozen=True)
class SetBoardMarkers:
    enabled: bool


@dataclass(frozen=True)
class SetMode:
    mode: GameMode


# ------------------------------------------------------------------ #
# Bullet clock                                                        #
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class StartBulletGame:
    time_control_index: int


@dataclass(frozen=True)
class TimerTick:
    now: float | None = None   # None = read the monotonic clock


@dataclass(frozen=True)
class ApplyIncrement:
    color: Color


# ------------------------------------------------------------------ #
# Academy                                                             #
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class StartDrill:
    drill_type: DrillType


@dataclass(frozen=True)
class DrillAnswer:
    correct: bool


# ------------------------------------------------------------------ #
# Rules engine, AI engine and persistence                             #
# ------------------------------------------------------------------ #

@dataclass(frozen=True)
class Refresh:
    fen: str
    turn: Color
    pieces: tuple[PieceEntry, ...]
    in_check: bool
    game_over: str | None = None


@dataclass(frozen=True)
class EngineThinking:
    pass


@dataclass(frozen=True)
class EngineMove:
    uci: str
    san: str
    fen: str | None = None
    turn: Color | None = None
    pieces: tuple[PieceEntry, ...] | None = None
    in_check: bool | None = None
    game_over: str | None = None


@dataclass(frozen=True)
class EngineError:
    message: str = ""


@dataclass(frozen=True)
class LoadGame:
    fen: str
    history: tuple[str, ...]
    turn: Color
    pieces: tuple[PieceEntry, ...] = ()
    in_check: bool = False


@dataclass(frozen=True)
class MarkSaved:
    pass


@dataclass(frozen=True)
class ConfirmExit:
    save: bool


@dataclass(frozen=True)
class NewGame:
    pass


Action = (
    Scroll
    | Tap
    | DoubleTap
    | ForegroundEnter
    | ForegroundExit
    | OpenMenu
    | CloseMenu
    | MenuSelect
    | SetDifficulty
    | SetBoardMarkers
    | SetMode
    | StartBulletGame
    | TimerTick
    | ApplyIncrement
    | StartDrill
    | DrillAnswer
    | Refresh
    | EngineThinking
    | EngineMove
    | EngineError
    | LoadGame
    | MarkSaved
    | ConfirmExit
    | NewGame
)

ACTION_TYPES: tuple[type, ...] = (
    Scroll, Tap, DoubleTap, ForegroundEnter, ForegroundExit, OpenMenu, CloseMenu,
    MenuSelect, SetDifficulty, SetBoardMarkers, SetMode, StartBulletGame, TimerTick,
    ApplyIncrement, StartDrill, DrillAnswer, Refresh, EngineThinking, EngineMove,
    EngineError, LoadGame, MarkSaved, ConfirmExit, NewGame,
)
