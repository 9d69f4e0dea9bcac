"""
GameSession: wires the pure core to the outside world.

    hub event -> GestureClassifier -> Store.dispatch -> reducer
                                          |
                                          +-> DisplaySynchronizer -> bridge
                                          +-> EngineTurnLoop -> rules / AI engine
                                          +-> _on_state(): persistence, cooldowns,
                                              bullet ticks, reset and exit

The reducer only signals intent (pending_move, reset_requested,
exit_requested, ...). Everything with a side effect happens in this module
or in the collaborators it owns. Follow-up actions are dispatched with
loop.call_soon, never from inside a store listener.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Callable

from evenchess import storage
from evenchess.actions import Action, DoubleTap, ForegroundEnter, ForegroundExit, LoadGame, MarkSaved, NewGame, TimerTick
from evenchess.board import ChessService
from evenchess.config import Config
from evenchess.display.sync import DisplaySynchronizer
from evenchess.engine.bridge import MoveEngine, StockfishBridge
from evenchess.engine.turnloop import EngineTurnLoop, refresh_action
from evenchess.events import parse_hub_event
from evenchess.hub.bridge import EvenHubBridge
from evenchess.hub.transport import HubTransport, default_layout
from evenchess.input.gestures import GestureClassifier, GestureTiming
from evenchess.renderer import BoardRenderer
from evenchess.state.contracts import SessionState, build_initial_state
from evenchess.state.reducer import reduce
from evenchess.state.store import Store
from evenchess.state.utils import is_menu_phase, now_ms

logger = logging.getLogger(__name__)


class GameSession:
    def __init__(
        self,
        config: Config,
        transport: HubTransport,
        *,
        engine: MoveEngine | None = None,
        chess: ChessService | None = None,
        clock: Callable[[], float] = now_ms,
        rng: random.Random | None = None,
    ) -> None:
        self.config = config
        self._clock = clock
        self._rng = rng

        self.chess = chess or ChessService()
        self.engine = engine or StockfishBridge(config.engine.path, config.engine.timeout_grace)
        self.classifier = GestureClassifier(
            GestureTiming(
                scroll_debounce_ms=config.input.scroll_debounce_ms,
                tap_cooldown_ms=config.input.tap_cooldown_ms,
                scroll_suppress_after_tap_ms=config.input.scroll_suppress_after_tap_ms,
            ),
            clock=clock,
        )
        storage.set_storage_dir(config.storage_path)
        initial = build_initial_state(
            difficulty=storage.load_difficulty(),  # type: ignore[arg-type]
            show_board_markers=storage.load_board_markers(),
            now=clock(),
        )
        self.store = Store(initial, reducer=self._reduce)
        self.renderer = BoardRenderer(config.display.image_size)
        self.bridge = EvenHubBridge(transport)
        self.display = DisplaySynchronizer(
            self.store, self.bridge, self.renderer, debounce_ms=config.display.flush_debounce_ms
        )
        self.turns = EngineTurnLoop(self.store, self.chess, self.engine)

        self.closed = asyncio.Event()
        self._unsubscribe: Callable[[], None] | None = None
        self._tick_task: asyncio.Task | None = None
        self._stopping = False

    def _reduce(self, state: SessionState, action: Action) -> SessionState:
        return reduce(
            state,
            action,
            now=self._clock(),
            gesture_window_ms=self.config.input.gesture_window_ms,
            rng=self._rng,
        )

    # ------------------------------------------------------------------ #
    # Lifecycle                                                           #
    # ------------------------------------------------------------------ #

    async def start(self) -> None:
        self._restore_game()

        await self.bridge.init()
        await self.bridge.setup_page(default_layout(self.config.display.image_size))
        self.bridge.subscribe_events(self.handle_raw_event)

        self._unsubscribe = self.store.subscribe(self._on_state)
        self.display.start()
        self.display.request_full_refresh()

        await self.engine.init()
        logger.info("Session started (%s)", self.store.get_state().phase)

    async def stop(self) -> None:
        if self._stopping:
            return
        self._stopping = True
        self._stop_ticking()
        self.turns.reset()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self.display.stop()
        await self.display.drain()
        await self.bridge.shutdown()
        await self.engine.close()
        self.closed.set()
        logger.info("Session stopped")

    def _restore_game(self) -> None:
        saved = storage.load_game()
        if saved is not None and self.chess.load_history(list(saved.history), saved.fen):
            logger.info("Restoring saved game (%d plies)", len(saved.history))
            snap = self.chess.snapshot()
            self.store.dispatch(
                LoadGame(
                    fen=snap.fen,
                    history=saved.history,
                    turn=snap.turn,
                    pieces=snap.pieces,
                    in_check=snap.in_check,
                )
            )
            if snap.game_over:
                self.store.dispatch(refresh_action(self.chess))
        else:
            self.store.dispatch(refresh_action(self.chess))

    # ------------------------------------------------------------------ #
    # Input                                                               #
    # ------------------------------------------------------------------ #

    def handle_raw_event(self, raw: Any) -> None:
        """Entry point for hub events (raw dicts as the hub sends them)."""
        action = self.classifier.classify(parse_hub_event(raw))
        if action is None:
            logger.debug("Ignored hub event %r", raw)
            return
        self.handle_action(action)

    def handle_action(self, action: Action) -> None:
        state = self.store.get_state()
        match action:
            case DoubleTap() if state.game_over is not None:
                self.dispatch(NewGame())
            case ForegroundEnter():
                self.display.request_full_refresh()
            case ForegroundExit():
                self._save_if_unsaved()
            case _:
                self.dispatch(action)

    def dispatch(self, action: Action) -> None:
        self.store.dispatch(action)

    def _dispatch_soon(self, action: Action) -> None:
        asyncio.get_running_loop().call_soon(self.dispatch, action)

    # ------------------------------------------------------------------ #
    # Side effects                                                        #
    # ------------------------------------------------------------------ #

    def _on_state(self, state: SessionState, prev: SessionState) -> None:
        self.turns.on_state(state, prev)

        if state.has_unsaved_changes and state.history and state.fen != prev.fen and not state.exit_requested:
            if storage.save_game(state.fen, state.history, state.turn, state.difficulty):
                self._dispatch_soon(MarkSaved())

        if state.difficulty != prev.difficulty:
            storage.save_difficulty(state.difficulty)
        if state.show_board_markers != prev.show_board_markers:
            storage.save_board_markers(state.show_board_markers)

        if state.phase != prev.phase:
            if is_menu_phase(state.phase) and not is_menu_phase(prev.phase):
                self.classifier.extend_tap_cooldown(self.config.input.menu_tap_cooldown_ms)
            elif state.phase == "dest_select":
                self.classifier.extend_tap_cooldown(self.config.input.dest_tap_cooldown_ms)

        if state.reset_requested and not prev.reset_requested:
            self._reset_board()

        if state.exit_requested and not prev.exit_requested:
            if prev.has_unsaved_changes and not state.has_unsaved_changes:
                storage.save_game(state.fen, state.history, state.turn, state.difficulty)
                logger.info("Game saved before exit")
            asyncio.get_running_loop().create_task(self.stop())

        if state.mode == "bullet" and state.timer_active:
            self._start_ticking()
        else:
            self._stop_ticking()

    def _reset_board(self) -> None:
        self.turns.reset()
        self.chess.reset()
        storage.clear_save()
        self._dispatch_soon(refresh_action(self.chess))

    def _save_if_unsaved(self) -> None:
        state = self.store.get_state()
        if state.has_unsaved_changes and state.history:
            if storage.save_game(state.fen, state.history, state.turn, state.difficulty):
                self.dispatch(MarkSaved())

    # ------------------------------------------------------------------ #
    # Bullet clock                                                        #
    # ------------------------------------------------------------------ #

    def _start_ticking(self) -> None:
        if self._tick_task is not None and not self._tick_task.done():
            return
        self._tick_task = asyncio.get_running_loop().create_task(self._tick_loop())

    def _stop_ticking(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

    async def _tick_loop(self) -> None:
        interval = self.config.bullet.tick_interval_ms / 1000
        while True:
            await asyncio.sleep(interval)
            self.dispatch(TimerTick())
