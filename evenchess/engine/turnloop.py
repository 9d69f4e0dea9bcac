"""
Player move → engine reply.

The reducer records a committed move as state.pending_move. This loop
applies it to the rules engine, refreshes the session from the resulting
position, asks the AI engine for a reply and applies that too. Only one
turn runs at a time; reset() cancels a turn in progress so a reply for
the old game never lands on the new one.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from evenchess.actions import ApplyIncrement, EngineError, EngineMove, EngineThinking, Refresh
from evenchess.board import ChessService
from evenchess.engine.bridge import MoveEngine
from evenchess.engine.profiles import get_profile
from evenchess.state.contracts import PendingMove, SessionState
from evenchess.state.store import Store

logger = logging.getLogger(__name__)


def refresh_action(chess: ChessService) -> Refresh:
    snap = chess.snapshot()
    return Refresh(
        fen=snap.fen,
        turn=snap.turn,
        pieces=snap.pieces,
        in_check=snap.in_check,
        game_over=snap.game_over,
    )


class EngineTurnLoop:
    def __init__(
        self,
        store: Store,
        chess: ChessService,
        engine: MoveEngine,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> None:
        self._store = store
        self._chess = chess
        self._engine = engine
        self._on_error = on_error
        self._task: asyncio.Task | None = None

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def on_state(self, state: SessionState, prev: SessionState) -> None:
        """Store listener: start a turn when a new pending move appears."""
        pending = state.pending_move
        if pending is None or pending is prev.pending_move or self.busy:
            return
        self._task = asyncio.get_running_loop().create_task(self.run_turn(pending))
        self._task.add_done_callback(self._task_done)

    def reset(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def wait(self) -> None:
        """Wait for the current turn, if any. Used by tests and shutdown."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)

    async def run_turn(self, pending: PendingMove) -> None:
        state = self._store.get_state()
        player_color = state.turn
        mode = state.mode

        san = self._chess.make_move_uci(pending.uci)
        if san is None:
            logger.error("Committed move %s rejected by the rules engine", pending.uci)
            self._store.dispatch(refresh_action(self._chess))
            return

        if mode == "bullet":
            self._store.dispatch(ApplyIncrement(player_color))
        self._store.dispatch(refresh_action(self._chess))
        if self._chess.is_game_over or self._store.get_state().game_over:
            return

        self._store.dispatch(EngineThinking())
        profile = get_profile(self._store.get_state().difficulty)
        uci = await self._engine.get_best_move(self._chess.fen, profile)

        if self._store.get_state().game_over:
            # Flag fell while the engine was thinking.
            return
        if uci is None:
            logger.warning("Engine returned no move for %s", self._chess.fen)
            self._store.dispatch(EngineError("no move"))
            return

        reply_san = self._chess.make_move_uci(uci)
        if reply_san is None:
            self._store.dispatch(EngineError(f"illegal engine move {uci}"))
            return

        snap = self._chess.snapshot()
        self._store.dispatch(
            EngineMove(
                uci=uci,
                san=reply_san,
                fen=snap.fen,
                turn=snap.turn,
                pieces=snap.pieces,
                in_check=snap.in_check,
                game_over=snap.game_over,
            )
        )
        if mode == "bullet":
            self._store.dispatch(ApplyIncrement("b" if player_color == "w" else "w"))
        logger.debug("Engine replied %s (%s)", reply_san, uci)

    def _task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        logger.error("Engine turn failed", exc_info=exc)
        self._store.dispatch(EngineError(str(exc)))
        if self._on_error is not None:
            self._on_error(exc)
