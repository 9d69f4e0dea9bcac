"""Engine strength presets, one per difficulty level."""

from __future__ import annotations

from dataclasses import dataclass

from evenchess.state.contracts import Difficulty


@dataclass(frozen=True)
class EngineProfile:
    name: str
    skill_level: int     # Stockfish "Skill Level", 0-20
    depth: int
    movetime: int        # milliseconds
    add_variety: bool = False


EASY = EngineProfile(name="Easy", skill_level=1, depth=4, movetime=500, add_variety=True)
CASUAL = EngineProfile(name="Casual", skill_level=5, depth=8, movetime=1000, add_variety=True)
SERIOUS = EngineProfile(name="Serious", skill_level=15, depth=15, movetime=3000)

PROFILES: dict[Difficulty, EngineProfile] = {
    "easy": EASY,
    "casual": CASUAL,
    "serious": SERIOUS,
}


def get_profile(difficulty: Difficulty) -> EngineProfile:
    return PROFILES.get(difficulty, CASUAL)
