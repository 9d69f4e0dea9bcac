"""Local game and settings persistence.

Two small JSON files: the game in progress and the user's settings.
Nothing here raises; a failed write is logged and the session carries on,
and anything unreadable loads as "no save" / defaults.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from evenchess.state.constants import DIFFICULTY_OPTIONS

logger = logging.getLogger(__name__)

_SAVE_PATH = Path('.evenchess_save.json')
_SETTINGS_PATH = Path('.evenchess_settings.json')

DEFAULT_DIFFICULTY = 'casual'


@dataclass(frozen=True)
class SavedGame:
    fen: str
    history: tuple[str, ...]
    turn: str
    difficulty: str = DEFAULT_DIFFICULTY
    saved_at: float = 0.0


def set_storage_dir(directory: str | Path) -> None:
    """Point both files at directory (created on first write)."""
    global _SAVE_PATH, _SETTINGS_PATH
    base = Path(directory).expanduser()
    _SAVE_PATH = base / 'save.json'
    _SETTINGS_PATH = base / 'settings.json'


def _write_json(path: Path, data: dict[str, Any]) -> bool:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2), encoding='utf-8')
        return True
    except OSError as exc:
        logger.error("Could not write %s: %s", path, exc)
        return False


def _read_json(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable %s: %s", path, exc)
        return None
    return data if isinstance(data, dict) else None


# ------------------------------------------------------------------ #
# Game                                                                #
# ------------------------------------------------------------------ #

def save_game(fen: str, history: list[str] | tuple[str, ...], turn: str, difficulty: str = DEFAULT_DIFFICULTY) -> bool:
    return _write_json(
        _SAVE_PATH,
        {
            'fen': fen,
            'history': list(history),
            'turn': turn,
            'difficulty': difficulty,
            'savedAt': time.time(),
        },
    )


def load_game() -> SavedGame | None:
    data = _read_json(_SAVE_PATH)
    if data is None:
        return None
    fen = data.get('fen')
    history = data.get('history')
    turn = data.get('turn')
    if not isinstance(fen, str) or not isinstance(history, list) or turn not in ('w', 'b'):
        logger.warning("Ignoring save with invalid structure")
        return None
    difficulty = data.get('difficulty')
    if difficulty not in DIFFICULTY_OPTIONS:
        difficulty = DEFAULT_DIFFICULTY
    return SavedGame(
        fen=fen,
        history=tuple(str(san) for san in history),
        turn=turn,
        difficulty=difficulty,
        saved_at=float(data.get('savedAt') or 0.0),
    )


def clear_save() -> None:
    try:
        _SAVE_PATH.unlink(missing_ok=True)
    except OSError as exc:
        logger.error("Could not remove %s: %s", _SAVE_PATH, exc)


def has_saved_game() -> bool:
    return _SAVE_PATH.exists()


# ------------------------------------------------------------------ #
# Settings                                                            #
# ------------------------------------------------------------------ #

def _update_settings(**changes: Any) -> bool:
    settings = _read_json(_SETTINGS_PATH) or {}
    settings.update(changes)
    return _write_json(_SETTINGS_PATH, settings)


def save_difficulty(difficulty: str) -> bool:
    return _update_settings(difficulty=difficulty)


def load_difficulty() -> str:
    settings = _read_json(_SETTINGS_PATH) or {}
    difficulty = settings.get('difficulty')
    return difficulty if difficulty in DIFFICULTY_OPTIONS else DEFAULT_DIFFICULTY


def save_board_markers(enabled: bool) -> bool:
    return _update_settings(showBoardMarkers=bool(enabled))


def load_board_markers() -> bool:
    settings = _read_json(_SETTINGS_PATH) or {}
    value = settings.get('showBoardMarkers')
    return value if isinstance(value, bool) else True
