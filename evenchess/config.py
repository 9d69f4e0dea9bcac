"""
Configuration loading from config.yaml.

Uses typed dataclasses throughout so the rest of the app gets IDE
completion and type-checker support without touching raw dicts. Every
section is optional; a missing key falls back to the dataclass default.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class InputConfig:
    scroll_debounce_ms: float = 15
    tap_cooldown_ms: float = 400
    scroll_suppress_after_tap_ms: float = 150
    gesture_window_ms: float = 200     # double-tap after piece-select entry opens the menu
    menu_tap_cooldown_ms: float = 800  # applied when a menu phase is entered
    dest_tap_cooldown_ms: float = 400  # applied when destination selection is entered


@dataclass
class DisplayConfig:
    flush_debounce_ms: float = 4
    image_size: int = 200


@dataclass
class EngineConfig:
    path: str = "stockfish"
    timeout_grace: float = 2.0   # seconds added to the profile movetime


@dataclass
class BulletConfig:
    tick_interval_ms: int = 100


@dataclass
class StorageConfig:
    dir: str = "~/.evenchess"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: str = "logs/evenchess.log"


@dataclass
class Config:
    input: InputConfig = field(default_factory=InputConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    bullet: BulletConfig = field(default_factory=BulletConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def storage_path(self) -> Path:
        return Path(self.storage.dir).expanduser()


def load_config(path: str | Path = "config.yaml") -> Config:
    """
    Load and validate config.yaml.

    Raises:
        FileNotFoundError: config.yaml is missing.
        ValueError: fields are present but invalid.
    """
    cfg_path = Path(path)
    if not cfg_path.exists():
        raise FileNotFoundError(
            f"Config file not found: {cfg_path.resolve()}\n"
            "Copy config.example.yaml to config.yaml to customise timings and paths."
        )

    with cfg_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    try:
        input_raw = raw.get("input") or {}
        display_raw = raw.get("display") or {}
        engine_raw = raw.get("engine") or {}
        bullet_raw = raw.get("bullet") or {}
        storage_raw = raw.get("storage") or {}
        logging_raw = raw.get("logging") or {}

        defaults = InputConfig()
        config = Config(
            input=InputConfig(
                scroll_debounce_ms=float(input_raw.get("scroll_debounce_ms", defaults.scroll_debounce_ms)),
                tap_cooldown_ms=float(input_raw.get("tap_cooldown_ms", defaults.tap_cooldown_ms)),
                scroll_suppress_after_tap_ms=float(
                    input_raw.get("scroll_suppress_after_tap_ms", defaults.scroll_suppress_after_tap_ms)
                ),
                gesture_window_ms=float(input_raw.get("gesture_window_ms", defaults.gesture_window_ms)),
                menu_tap_cooldown_ms=float(input_raw.get("menu_tap_cooldown_ms", defaults.menu_tap_cooldown_ms)),
                dest_tap_cooldown_ms=float(input_raw.get("dest_tap_cooldown_ms", defaults.dest_tap_cooldown_ms)),
            ),
            display=DisplayConfig(
                flush_debounce_ms=float(display_raw.get("flush_debounce_ms", 4)),
                image_size=int(display_raw.get("image_size", 200)),
            ),
            engine=EngineConfig(
                path=str(engine_raw.get("path", "stockfish")),
                timeout_grace=float(engine_raw.get("timeout_grace", 2.0)),
            ),
            bullet=BulletConfig(tick_interval_ms=int(bullet_raw.get("tick_interval_ms", 100))),
            storage=StorageConfig(dir=str(storage_raw.get("dir", "~/.evenchess"))),
            logging=LoggingConfig(
                level=str(logging_raw.get("level", "INFO")).upper(),
                file=str(logging_raw.get("file", "logs/evenchess.log")),
            ),
        )
        _validate(config)
        return config

    except (AttributeError, TypeError) as exc:
        raise ValueError(f"Invalid config.yaml structure: {exc}") from exc


def _validate(config: Config) -> None:
    inp = config.input
    for name in (
        "scroll_debounce_ms",
        "tap_cooldown_ms",
        "scroll_suppress_after_tap_ms",
        "gesture_window_ms",
        "menu_tap_cooldown_ms",
        "dest_tap_cooldown_ms",
    ):
        if getattr(inp, name) < 0:
            raise ValueError(f"input.{name} must be >= 0")
    if config.display.flush_debounce_ms < 0:
        raise ValueError("display.flush_debounce_ms must be >= 0")
    if config.display.image_size < 16:
        raise ValueError("display.image_size must be >= 16")
    if config.engine.timeout_grace < 0:
        raise ValueError("engine.timeout_grace must be >= 0")
    if config.bullet.tick_interval_ms < 10:
        raise ValueError("bullet.tick_interval_ms must be >= 10")
    if config.logging.level not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {_LOG_LEVELS}, got '{config.logging.level}'")
