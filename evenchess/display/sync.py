"""
DisplaySynchronizer: keeps the glasses in step with the session state.

    store.dispatch(...)  ->  _on_state()  ->  debounce  ->  flush  ->  bridge

Dispatch is synchronous and cheap; talking to the hub is neither. The
synchronizer sits in between:

  * Only display-relevant changes schedule a flush (display_changed()).
  * Bursts are collapsed by a short debounce on loop.call_later; a change
    that arrives while a flush is already scheduled rides along with it.
  * At most one flush is in flight. Changes that arrive meanwhile park the
    latest state in a single pending slot; when the flush completes, one
    trailing flush runs for it if it still differs from what was sent.
  * Text goes out only when it differs from the last text sent; the board
    image only when board_may_have_changed(). Text and image are sent
    concurrently.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Any, Awaitable

from evenchess.academy.drills import file_rank_to_square
from evenchess.hub.bridge import EvenHubBridge
from evenchess.hub.transport import TEXT_CONTAINER_ID, TEXT_CONTAINER_NAME
from evenchess.renderer import BoardRenderer, ImageUpdate
from evenchess.state.contracts import DRILL_PHASES, SessionState
from evenchess.state.selectors import get_combined_display_text
from evenchess.state.store import Store

logger = logging.getLogger(__name__)


class FlushState(enum.Enum):
    IDLE = "idle"
    IN_FLIGHT = "in_flight"


# ------------------------------------------------------------------ #
# Change detection                                                    #
# ------------------------------------------------------------------ #

def _display_key(state: SessionState) -> tuple[Any, ...]:
    academy = state.academy_state
    timers = state.timers
    knight = academy.knight_path if academy else None
    puzzle = academy.tactics_puzzle if academy else None
    study = academy.pgn_study if academy else None
    return (
        state.phase,
        state.fen,
        state.engine_thinking,
        state.game_over,
        state.selected_piece_id,
        state.selected_move_index,
        state.selected_promotion_index,
        state.menu_selected_index,
        state.selected_time_control_index,
        state.log_scroll_offset,
        timers.white_ms if timers else None,
        timers.black_ms if timers else None,
        academy.target_square if academy else None,
        academy.score.total if academy else None,
        academy.cursor_file if academy else None,
        academy.cursor_rank if academy else None,
        academy.nav_axis if academy else None,
        academy.feedback if academy else None,
        knight.current_square if knight else None,
        puzzle.fen if puzzle else None,
        study.current_move_index if study else None,
        study.game_name if study else None,
    )


def display_changed(state: SessionState, prev: SessionState | None) -> bool:
    """True if anything the glasses show may differ between prev and state."""
    if prev is None:
        return True
    return _display_key(state) != _display_key(prev)


def _drill_cursor_changed(state: SessionState, prev: SessionState) -> bool:
    a, b = state.academy_state, prev.academy_state
    if a is None or b is None:
        return a is not b
    return (
        a.cursor_file != b.cursor_file
        or a.cursor_rank != b.cursor_rank
        or a.nav_axis != b.nav_axis
        or (a.knight_path.current_square if a.knight_path else None)
        != (b.knight_path.current_square if b.knight_path else None)
        or (a.tactics_puzzle.fen if a.tactics_puzzle else None)
        != (b.tactics_puzzle.fen if b.tactics_puzzle else None)
        or (a.pgn_study.fen if a.pgn_study else None) != (b.pgn_study.fen if b.pgn_study else None)
    )


def board_may_have_changed(state: SessionState, prev: SessionState | None) -> bool:
    if prev is None:
        return True
    return (
        state.fen != prev.fen
        or state.selected_piece_id != prev.selected_piece_id
        or state.selected_move_index != prev.selected_move_index
        or state.phase != prev.phase
        or state.show_board_markers != prev.show_board_markers
        or _drill_cursor_changed(state, prev)
    )


# ------------------------------------------------------------------ #
# Synchronizer                                                        #
# ------------------------------------------------------------------ #

class DisplaySynchronizer:
    """
    Args:
        store: Session store to follow.
        bridge: Hub bridge (update_text / update_board_image).
        renderer: Board image renderer.
        debounce_ms: Delay between the first change and the flush it schedules.
    """

    def __init__(
        self,
        store: Store,
        bridge: EvenHubBridge,
        renderer: BoardRenderer,
        *,
        debounce_ms: float = 4,
    ) -> None:
        self._store = store
        self._bridge = bridge
        self._renderer = renderer
        self._debounce_s = debounce_ms / 1000

        self.flush_state = FlushState.IDLE
        self.flush_count = 0
        self.last_sent_state: SessionState | None = None
        self.last_sent_text: str | None = None
        self._last_check: bool | None = None

        self._pending: SessionState | None = None
        self._force_full = False
        self._timer: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe = None
        self._stopped = False

    # ------------------------------------------------------------------ #
    # Lifecycle                                                           #
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        self._stopped = False
        self._unsubscribe = self._store.subscribe(self._on_state)

    def stop(self) -> None:
        """Cancel the debounce timer and unsubscribe. A flush in flight still completes."""
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def drain(self) -> None:
        """Wait until no flush is scheduled or running."""
        while self._tasks or self._timer is not None:
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)
            else:
                await asyncio.sleep(self._debounce_s or 0)

    def request_full_refresh(self) -> None:
        """Resend the text and a complete board on the next flush."""
        self._force_full = True
        self._renderer.invalidate()
        self._schedule()

    # ------------------------------------------------------------------ #
    # Scheduling                                                          #
    # ------------------------------------------------------------------ #

    def _on_state(self, state: SessionState, prev: SessionState) -> None:
        if display_changed(state, prev):
            self._schedule()

    def _schedule(self) -> None:
        if self._stopped:
            return
        if self._timer is not None:
            # Already scheduled; _fire reads the newest state from the store.
            return
        self._timer = asyncio.get_running_loop().call_later(self._debounce_s, self._fire)

    def _fire(self) -> None:
        self._timer = None
        state = self._store.get_state()
        if self.flush_state is FlushState.IN_FLIGHT:
            # Depth-1 slot: only the newest state matters.
            self._pending = state
            return
        self._start_flush(state)

    def _start_flush(self, state: SessionState) -> None:
        self.flush_state = FlushState.IN_FLIGHT
        task = asyncio.get_running_loop().create_task(self._flush(state))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _flush(self, state: SessionState) -> None:
        try:
            await self._send(state)
        except Exception:
            logger.exception("Display flush failed")
        finally:
            self.flush_count += 1
            self.flush_state = FlushState.IDLE
            pending, self._pending = self._pending, None
            if (
                pending is not None
                and not self._stopped
                and (self._force_full or display_changed(pending, self.last_sent_state))
            ):
                self._start_flush(pending)

    # ------------------------------------------------------------------ #
    # Sending                                                             #
    # ------------------------------------------------------------------ #

    async def _send(self, state: SessionState) -> None:
        prev = self.last_sent_state
        force = self._force_full
        self._force_full = False

        jobs: list[Awaitable[Any]] = []

        text = get_combined_display_text(state)
        if force or text != self.last_sent_text:
            jobs.append(self._bridge.update_text(TEXT_CONTAINER_ID, TEXT_CONTAINER_NAME, text))

        image = self._board_image(state, prev, force)
        if image is not None:
            jobs.append(self._bridge.update_board_image(image))

        branding = self._branding_image(state, prev, force)
        if branding is not None:
            jobs.append(self._bridge.update_board_image(branding))

        if jobs:
            await asyncio.gather(*jobs)
        self.last_sent_state = state
        self.last_sent_text = text

    def _branding_image(self, state: SessionState, prev: SessionState | None, force: bool) -> ImageUpdate | None:
        """The strip is blanked while the move log is open and restored when it closes."""
        was_log = prev is not None and prev.phase == "view_log"
        if state.phase == "view_log":
            return self._renderer.render_blank_branding() if force or not was_log else None
        if force or was_log or self._last_check is None or state.in_check != self._last_check:
            self._last_check = state.in_check
            return self._renderer.render_branding(check=state.in_check)
        return None

    def _board_image(self, state: SessionState, prev: SessionState | None, force: bool) -> ImageUpdate | None:
        in_drill = state.phase in DRILL_PHASES
        if not force and not board_may_have_changed(state, prev):
            return None
        if in_drill:
            return self._drill_image(state)
        if force or (prev is not None and prev.phase in DRILL_PHASES):
            return self._renderer.render_full(state)
        return self._renderer.render(state)

    def _drill_image(self, state: SessionState) -> ImageUpdate | None:
        academy = state.academy_state
        if academy is None:
            return None
        if academy.pgn_study is not None:
            return self._renderer.render_from_fen(academy.pgn_study.fen)
        if academy.knight_path is not None:
            return self._renderer.render_knight_path_board(
                academy.knight_path, academy.cursor_file, academy.cursor_rank
            )
        if academy.tactics_puzzle is not None:
            square = file_rank_to_square(academy.cursor_file, academy.cursor_rank)
            return self._renderer.render_from_fen(academy.tactics_puzzle.fen, highlight=square)
        return self._renderer.render_drill_board(academy.cursor_file, academy.cursor_rank, academy.nav_axis)
