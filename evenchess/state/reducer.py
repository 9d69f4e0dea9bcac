"""
Session reducer: every UI and game-session transition lives here.

    reduce(state, action) -> state

Pure and total: every action is accepted in every phase, and an action that
does not apply returns the *same* state object so the store can skip
notifying subscribers. Nothing in here raises; a dropped gesture is
recoverable by repeating it, an exception is not.

Dispatch is a two-level table:

    _PHASE_HANDLERS[phase][type(action)]  gestures, which mean something
                                          different in every phase
    _GLOBAL_HANDLERS[type(action)]        everything else

missing_transitions() reports any (phase, action) pair neither table
covers; the test suite asserts it is empty.

After a handler runs, _normalize() enforces the cross-cutting invariants
(bullet clock only runs in play phases, academy state only exists inside a
drill, selection cursors are dropped when their phase is left) so the
individual handlers do not have to.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from typing import Any, Callable

from evenchess.academy import drills, knight, pgn, puzzles
from evenchess.actions import (
    ACTION_TYPES,
    Action,
    ApplyIncrement,
    CloseMenu,
    ConfirmExit,
    DoubleTap,
    DrillAnswer,
    EngineError,
    EngineMove,
    EngineThinking,
    ForegroundEnter,
    ForegroundExit,
    LoadGame,
    MarkSaved,
    MenuSelect,
    NewGame,
    OpenMenu,
    Refresh,
    Scroll,
    SetBoardMarkers,
    SetDifficulty,
    SetMode,
    StartBulletGame,
    StartDrill,
    Tap,
    TimerTick,
)
from evenchess.bullet import clock
from evenchess.state.constants import (
    ACADEMY_OPTIONS,
    BOARD_MARKER_OPTIONS,
    DIFFICULTY_OPTIONS,
    LOG_VISIBLE_ROWS,
    MAX_HISTORY_LENGTH,
    MENU_OPTIONS,
    MODE_OPTIONS,
    PROMOTION_PIECES,
    TIME_CONTROLS,
)
from evenchess.state.contracts import (
    DRILL_PHASES,
    PHASES,
    PLAY_PHASES,
    AcademyState,
    DrillType,
    KnightPathState,
    PendingMove,
    Phase,
    PieceEntry,
    PromotionMove,
    Score,
    SessionState,
    Timers,
)
from evenchess.state.utils import clamp_index, is_menu_phase, now_ms, wrap_index

DEFAULT_GESTURE_WINDOW_MS = 200.0

_SELECTION_PHASES: frozenset[Phase] = frozenset({"piece_select", "dest_select", "promotion_select"})

_DRILL_PHASE_FOR: dict[DrillType, Phase] = {
    "coordinate": "coordinate_drill",
    "knight_path": "knight_path_drill",
    "tactics": "tactics_drill",
    "mate": "mate_drill",
    "pgn": "pgn_study",
}


@dataclass(frozen=True)
class _Context:
    now: float
    gesture_window_ms: float
    rng: random.Random | None


Handler = Callable[[SessionState, Any, _Context], SessionState]


def reduce(
    state: SessionState,
    action: Action,
    *,
    now: float | None = None,
    gesture_window_ms: float = DEFAULT_GESTURE_WINDOW_MS,
    rng: random.Random | None = None,
) -> SessionState:
    """Apply one action. Returns `state` itself when nothing changes."""
    # Hard gate: a finished game only listens for a new one.
    if state.game_over is not None and not isinstance(action, NewGame):
        return state

    ctx = _Context(
        now=now_ms() if now is None else now,
        gesture_window_ms=gesture_window_ms,
        rng=rng,
    )
    handler = _PHASE_HANDLERS[state.phase].get(type(action)) or _GLOBAL_HANDLERS.get(type(action))
    if handler is None:
        return state

    new_state = handler(state, action, ctx)
    if new_state is state:
        return state
    new_state = _normalize(state, new_state, ctx)
    return state if new_state == state else new_state


def missing_transitions() -> list[tuple[Phase, type]]:
    """(phase, action type) pairs with no handler. Empty when the table is complete."""
    return [
        (phase, action_type)
        for phase in PHASES
        for action_type in ACTION_TYPES
        if action_type not in _PHASE_HANDLERS[phase] and action_type not in _GLOBAL_HANDLERS
    ]


# ------------------------------------------------------------------ #
# Invariants                                                          #
# ------------------------------------------------------------------ #

def _normalize(prev: SessionState, state: SessionState, ctx: _Context) -> SessionState:
    updates: dict[str, Any] = {}

    if state.phase != prev.phase:
        updates["phase_entered_at"] = ctx.now

    if state.phase not in DRILL_PHASES and state.academy_state is not None:
        updates["academy_state"] = None

    if state.phase not in _SELECTION_PHASES and not is_menu_phase(state.phase):
        updates.update(
            selected_piece_id=None,
            selected_move_index=0,
            pending_promotion_move=None,
            selected_promotion_index=0,
        )

    if state.mode != "bullet":
        updates.update(timers=None, timer_active=False, last_tick_time=None)
    elif state.timer_active and (state.phase not in PLAY_PHASES or state.game_over):
        # Leaving the board (menu, settings) pauses the clock.
        updates.update(timer_active=False, last_tick_time=None)
    elif (
        not state.timer_active
        and state.timers is not None
        and state.phase in PLAY_PHASES
        and prev.phase not in PLAY_PHASES
        and state.history
        and state.game_over is None
    ):
        # Back on the board mid-game: resume.
        updates.update(timer_active=True, last_tick_time=None)

    return replace(state, **updates) if updates else state


# ------------------------------------------------------------------ #
# Shared helpers                                                      #
# ------------------------------------------------------------------ #

def _scroll_delta(action: Scroll) -> int:
    return 1 if action.direction == "down" else -1


def _append_history(history: tuple[str, ...], san: str) -> tuple[str, ...]:
    return (history + (san,))[-MAX_HISTORY_LENGTH:]


def _selected_piece(state: SessionState) -> PieceEntry | None:
    for piece in state.pieces:
        if piece.id == state.selected_piece_id:
            return piece
    return None


def _piece_index(state: SessionState) -> int:
    for i, piece in enumerate(state.pieces):
        if piece.id == state.selected_piece_id:
            return i
    return -1


def _log_rows(state: SessionState) -> int:
    return (len(state.history) + 1) // 2


def _ignore(state: SessionState, action: Any, ctx: _Context) -> SessionState:
    return state


def _to_menu(state: SessionState, option: str) -> SessionState:
    """Back to the main menu with the cursor on the option the user came from."""
    return replace(state, phase="menu", menu_selected_index=MENU_OPTIONS.index(option))


def _fresh_game(state: SessionState) -> SessionState:
    """Clear the board-side session, keeping settings. The session re-reads the board."""
    timers = None
    if state.mode == "bullet":
        tc = TIME_CONTROLS[clamp_index(state.selected_time_control_index, len(TIME_CONTROLS))]
        timers = Timers(white_ms=tc.initial_ms, black_ms=tc.initial_ms, increment_ms=tc.increment_ms)
    return replace(
        state,
        phase="idle",
        history=(),
        timers=timers,
        timer_active=False,
        last_tick_time=None,
        pending_move=None,
        last_move=None,
        last_move_uci=None,
        player_last_move_to_square=None,
        engine_thinking=False,
        in_check=False,
        game_over=None,
        has_unsaved_changes=False,
        previous_phase=None,
        log_scroll_offset=0,
        reset_requested=True,
    )


# ------------------------------------------------------------------ #
# Board play: idle / piece / destination / promotion                  #
# ------------------------------------------------------------------ #

def _enter_piece_select(state: SessionState, action: Any, ctx: _Context) -> SessionState:
    if state.engine_thinking or not state.pieces:
        return state
    piece = state.pieces[0]
    if state.player_last_move_to_square is not None:
        for candidate in state.pieces:
            if candidate.square == state.player_last_move_to_square:
                piece = candidate
                break
    return replace(state, phase="piece_select", selected_piece_id=piece.id, selected_move_index=0)


def _idle_double_tap(state: SessionState, action: Any, ctx: _Context) -> SessionState:
    return _open_menu(state, OpenMenu(), ctx)


def _piece_scroll(state: SessionState, action: Scroll, ctx: _Context) -> SessionState:
    if state.engine_thinking or not state.pieces:
        return state
    index = wrap_index(max(_piece_index(state), 0), _scroll_delta(action), len(state.pieces))
    return replace(state, selected_piece_id=state.pieces[index].id, selected_move_index=0)


def _piece_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    piece = _selected_piece(state)
    if state.engine_thinking or piece is None or not piece.moves:
        return state
    return replace(state, phase="dest_select", selected_move_index=0)


def _piece_double_tap(state: SessionState, action: DoubleTap, ctx: _Context) -> SessionState:
    # The ring splits a double-tap into tap + double-tap; one that lands right
    # after the first tap opened piece selection was really meant for the menu.
    if ctx.now - state.phase_entered_at < ctx.gesture_window_ms and not state.engine_thinking:
        return replace(
            state, phase="menu", previous_phase="idle", menu_selected_index=0, selected_piece_id=None
        )
    return replace(state, phase="idle")


def _dest_scroll(state: SessionState, action: Scroll, ctx: _Context) -> SessionState:
    piece = _selected_piece(state)
    if state.engine_thinking or piece is None or not piece.moves:
        return state
    index = wrap_index(state.selected_move_index, _scroll_delta(action), len(piece.moves))
    return replace(state, selected_move_index=index)


def _dest_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    piece = _selected_piece(state)
    if state.engine_thinking or piece is None or not piece.moves:
        return state
    move = piece.moves[clamp_index(state.selected_move_index, len(piece.moves))]
    if move.promotion:
        return replace(
            state,
            phase="promotion_select",
            pending_promotion_move=PromotionMove(move.from_square, move.to_square),
            selected_promotion_index=0,
        )
    return _commit_move(state, move.uci, move.san, move.from_square, move.to_square, None)


def _dest_double_tap(state: SessionState, action: DoubleTap, ctx: _Context) -> SessionState:
    return replace(state, phase="piece_select", selected_move_index=0)


def _promotion_scroll(state: SessionState, action: Scroll, ctx: _Context) -> SessionState:
    index = wrap_index(state.selected_promotion_index, _scroll_delta(action), len(PROMOTION_PIECES))
    return replace(state, selected_promotion_index=index)


def _promotion_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    pending = state.pending_promotion_move
    if pending is None or state.engine_thinking:
        return state
    promotion = PROMOTION_PIECES[clamp_index(state.selected_promotion_index, len(PROMOTION_PIECES))]
    uci = f"{pending.from_square}{pending.to_square}{promotion}"
    return _commit_move(
        state, uci, _promotion_san(state, uci, promotion), pending.from_square, pending.to_square, promotion
    )


def _promotion_san(state: SessionState, uci: str, promotion: str) -> str:
    queen_san = None
    for piece in state.pieces:
        for move in piece.moves:
            if move.uci == uci:
                return move.san
            if move.uci == uci[:4] + "q":
                queen_san = move.san
    if queen_san is not None:
        return queen_san.replace("=Q", f"={promotion.upper()}")
    return f"{uci[2:4]}={promotion.upper()}"


def _promotion_double_tap(state: SessionState, action: DoubleTap, ctx: _Context) -> SessionState:
    return replace(state, phase="dest_select", pending_promotion_move=None, selected_promotion_index=0)


def _commit_move(
    state: SessionState,
    uci: str,
    san: str,
    from_square: str,
    to_square: str,
    promotion: str | None,
) -> SessionState:
    updates: dict[str, Any] = {}
    if state.mode == "bullet" and state.timers is not None and not state.timer_active:
        # The clock starts with the first committed move.
        updates.update(timer_active=True, last_tick_time=None)
    return replace(
        state,
        phase="idle",
        history=_append_history(state.history, san),
        last_move=san,
        last_move_uci=uci,
        pending_move=PendingMove(uci, from_square, to_square, promotion),
        player_last_move_to_square=to_square,
        selected_piece_id=None,
        selected_move_index=0,
        pending_promotion_move=None,
        selected_promotion_index=0,
        has_unsaved_changes=True,
        **updates,
    )


# ------------------------------------------------------------------ #
# Menu and settings screens                                           #
# ------------------------------------------------------------------ #

def _cycle_menu_index(size: int) -> Handler:
    def handler(state: SessionState, action: Scroll, ctx: _Context) -> SessionState:
        index = wrap_index(state.menu_selected_index, _scroll_delta(action), size)
        return replace(state, menu_selected_index=index)
    return handler


def _back_to_menu(option: str) -> Handler:
    def handler(state: SessionState, action: Any, ctx: _Context) -> SessionState:
        return _to_menu(state, option)
    return handler


def _menu_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    option = MENU_OPTIONS[clamp_index(state.menu_selected_index, len(MENU_OPTIONS))]
    return _menu_select(state, MenuSelect(option), ctx)


def _menu_double_tap(state: SessionState, action: DoubleTap, ctx: _Context) -> SessionState:
    return _close_menu(state, CloseMenu(), ctx)


def _difficulty_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    level = DIFFICULTY_OPTIONS[clamp_index(state.menu_selected_index, len(DIFFICULTY_OPTIONS))]
    return _set_difficulty(state, SetDifficulty(level), ctx)


def _board_markers_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    enabled = BOARD_MARKER_OPTIONS[clamp_index(state.menu_selected_index, len(BOARD_MARKER_OPTIONS))]
    return _set_board_markers(state, SetBoardMarkers(enabled), ctx)


def _log_scroll(state: SessionState, action: Scroll, ctx: _Context) -> SessionState:
    max_offset = max(0, _log_rows(state) - LOG_VISIBLE_ROWS)
    offset = max(0, min(state.log_scroll_offset + _scroll_delta(action), max_offset))
    return replace(state, log_scroll_offset=offset)


def _reset_confirm_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    if state.menu_selected_index == 0:
        return _fresh_game(state)
    return _to_menu(state, "reset")


def _exit_confirm_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    if state.menu_selected_index == 0:
        return _confirm_exit(state, ConfirmExit(save=True), ctx)
    return _to_menu(state, "exit")


def _mode_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    mode = MODE_OPTIONS[clamp_index(state.menu_selected_index, len(MODE_OPTIONS))]
    return _set_mode(state, SetMode(mode), ctx)


def _back_to_mode_select(state: SessionState, action: Any, ctx: _Context) -> SessionState:
    return replace(state, phase="mode_select", menu_selected_index=MODE_OPTIONS.index(state.mode))


def _time_control_scroll(state: SessionState, action: Scroll, ctx: _Context) -> SessionState:
    index = wrap_index(state.selected_time_control_index, _scroll_delta(action), len(TIME_CONTROLS))
    return replace(state, selected_time_control_index=index)


def _bullet_setup_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    return _start_bullet_game(state, StartBulletGame(state.selected_time_control_index), ctx)


def _academy_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    drill = ACADEMY_OPTIONS[clamp_index(state.menu_selected_index, len(ACADEMY_OPTIONS))]
    return _start_drill(state, StartDrill(drill), ctx)


# ------------------------------------------------------------------ #
# Academy drills                                                      #
# ------------------------------------------------------------------ #

def _new_knight_path(ctx: _Context) -> KnightPathState:
    puzzle = knight.generate_knight_puzzle(rng=ctx.rng)
    return KnightPathState(
        start_square=puzzle.start,
        target_square=puzzle.target,
        current_square=puzzle.start,
        optimal_moves=puzzle.optimal_moves,
        path=(puzzle.start,),
    )


def _cursor_on(square: str) -> dict[str, int]:
    return {"cursor_file": drills.get_file_index(square), "cursor_rank": drills.get_rank_index(square)}


def _drill_scroll(state: SessionState, action: Scroll, ctx: _Context) -> SessionState:
    academy = state.academy_state
    if academy is None:
        return state
    if academy.pgn_study is not None:
        study = pgn.step(academy.pgn_study, _scroll_delta(action))
        if study is academy.pgn_study:
            return state
        return replace(state, academy_state=replace(academy, pgn_study=study))
    file, rank = drills.move_cursor_axis(
        academy.cursor_file, academy.cursor_rank, academy.nav_axis, action.direction
    )
    return replace(state, academy_state=replace(academy, cursor_file=file, cursor_rank=rank))


def _drill_tap(state: SessionState, action: Tap, ctx: _Context) -> SessionState:
    academy = state.academy_state
    if academy is None:
        return state
    if academy.pgn_study is not None:
        study = pgn.load_study(academy.pgn_study.game_index + 1)
        return replace(state, academy_state=replace(academy, pgn_study=study))
    if academy.nav_axis == "file":
        return replace(state, academy_state=replace(academy, nav_axis="rank", feedback="none"))

    guess = drills.file_rank_to_square(academy.cursor_file, academy.cursor_rank)
    match academy.drill_type:
        case "coordinate":
            academy = _submit_coordinate(academy, guess, ctx)
        case "knight_path":
            academy = _submit_knight_hop(academy, guess, ctx)
        case "tactics" | "mate":
            academy = _submit_puzzle_answer(academy, guess)
        case _:
            return state
    return replace(state, academy_state=academy)


def _score(academy: AcademyState, correct: bool) -> Score:
    return Score(
        correct=academy.score.correct + (1 if correct else 0),
        total=academy.score.total + 1,
    )


def _submit_coordinate(academy: AcademyState, guess: str, ctx: _Context) -> AcademyState:
    correct = drills.check_coordinate_answer(academy.target_square or "", guess)
    return replace(
        academy,
        score=_score(academy, correct),
        feedback="correct" if correct else "incorrect",
        target_square=drills.generate_random_square(ctx.rng),
        nav_axis="file",
    )


def _submit_knight_hop(academy: AcademyState, guess: str, ctx: _Context) -> AcademyState:
    path = academy.knight_path
    if path is None:
        return academy
    if not knight.is_valid_knight_move(path.current_square, guess):
        return replace(academy, feedback="incorrect", nav_axis="file")

    path = replace(
        path,
        current_square=guess,
        moves_taken=path.moves_taken + 1,
        path=path.path + (guess,),
    )
    if guess != path.target_square:
        return replace(academy, knight_path=path, feedback="none", nav_axis="file")

    # Target reached: full marks only for an optimal route.
    correct = path.moves_taken == path.optimal_moves
    next_path = _new_knight_path(ctx)
    return replace(
        academy,
        score=_score(academy, correct),
        feedback="correct" if correct else "incorrect",
        knight_path=next_path,
        nav_axis="file",
        **_cursor_on(next_path.start_square),
    )


def _submit_puzzle_answer(academy: AcademyState, guess: str) -> AcademyState:
    puzzle = academy.tactics_puzzle
    if puzzle is None:
        return academy
    correct = guess == puzzles.solution_target_square(puzzle)
    if not correct:
        return replace(academy, score=_score(academy, False), feedback="incorrect", nav_axis="file")

    collection = puzzles.puzzles_for(academy.drill_type)
    index = (academy.puzzle_index + 1) % len(collection)
    file, rank = drills.DEFAULT_CURSOR
    return replace(
        academy,
        score=_score(academy, True),
        feedback="correct",
        tactics_puzzle=collection[index],
        puzzle_index=index,
        nav_axis="file",
        cursor_file=file,
        cursor_rank=rank,
    )


def _drill_double_tap(state: SessionState, action: DoubleTap, ctx: _Context) -> SessionState:
    academy = state.academy_state
    if academy is not None and academy.pgn_study is None and academy.nav_axis == "rank":
        return replace(state, academy_state=replace(academy, nav_axis="file"))
    drill = academy.drill_type if academy is not None else ACADEMY_OPTIONS[0]
    return replace(state, phase="academy_select", menu_selected_index=ACADEMY_OPTIONS.index(drill))


# ------------------------------------------------------------------ #
# Phase-independent actions                                           #
# ------------------------------------------------------------------ #

def _open_menu(state: SessionState, action: OpenMenu, ctx: _Context) -> SessionState:
    if state.engine_thinking or state.phase in DRILL_PHASES:
        return state
    if state.phase == "menu":
        return replace(state, menu_selected_index=0)
    previous = state.previous_phase if is_menu_phase(state.phase) else state.phase
    return replace(state, phase="menu", previous_phase=previous, menu_selected_index=0)


def _close_menu(state: SessionState, action: CloseMenu, ctx: _Context) -> SessionState:
    if not is_menu_phase(state.phase):
        return state
    target: Phase = state.previous_phase or "idle"
    if target in _SELECTION_PHASES and _selected_piece(state) is None:
        target = "idle"
    return replace(state, phase=target, previous_phase=None, menu_selected_index=0)


def _menu_select(state: SessionState, action: MenuSelect, ctx: _Context) -> SessionState:
    match action.option:
        case "mode":
            return replace(state, phase="mode_select", menu_selected_index=MODE_OPTIONS.index(state.mode))
        case "board_markers":
            return replace(
                state,
                phase="board_markers_select",
                menu_selected_index=BOARD_MARKER_OPTIONS.index(state.show_board_markers),
            )
        case "view_log":
            return replace(state, phase="view_log", log_scroll_offset=0)
        case "difficulty":
            return replace(
                state,
                phase="difficulty_select",
                menu_selected_index=DIFFICULTY_OPTIONS.index(state.difficulty),
            )
        case "reset":
            return replace(state, phase="reset_confirm", menu_selected_index=1)
        case "exit":
            if state.has_unsaved_changes:
                return replace(state, phase="exit_confirm", menu_selected_index=0)
            return replace(state, phase="idle", previous_phase=None, exit_requested=True)
    return state


def _set_difficulty(state: SessionState, action: SetDifficulty, ctx: _Context) -> SessionState:
    if action.level not in DIFFICULTY_OPTIONS:
        return state
    return replace(_to_menu(state, "difficulty"), difficulty=action.level)


def _set_board_markers(state: SessionState, action: SetBoardMarkers, ctx: _Context) -> SessionState:
    return replace(_to_menu(state, "board_markers"), show_board_markers=bool(action.enabled))


def _set_mode(state: SessionState, action: SetMode, ctx: _Context) -> SessionState:
    match action.mode:
        case "play":
            return replace(state, phase="idle", mode="play", previous_phase=None)
        case "bullet":
            # Mode switches only once a time control is picked.
            return replace(state, phase="bullet_setup")
        case "academy":
            return replace(state, phase="academy_select", mode="academy", menu_selected_index=0)
    return state


def _start_bullet_game(state: SessionState, action: StartBulletGame, ctx: _Context) -> SessionState:
    index = clamp_index(action.time_control_index, len(TIME_CONTROLS))
    return _fresh_game(replace(state, mode="bullet", selected_time_control_index=index))


def _timer_tick(state: SessionState, action: TimerTick, ctx: _Context) -> SessionState:
    updates = clock.tick(state, ctx.now if action.now is None else action.now)
    if not updates:
        return state
    state = replace(state, **updates)
    if clock.is_time_expired(state, state.turn):
        winner = "Black" if state.turn == "w" else "White"
        state = replace(state, game_over=f"{winner} wins on time!", timer_active=False)
    return state


def _apply_increment(state: SessionState, action: ApplyIncrement, ctx: _Context) -> SessionState:
    updates = clock.apply_increment(state, action.color)
    return replace(state, **updates) if updates else state


def _start_drill(state: SessionState, action: StartDrill, ctx: _Context) -> SessionState:
    phase = _DRILL_PHASE_FOR.get(action.drill_type)
    if phase is None:
        return state
    academy = AcademyState(drill_type=action.drill_type)
    match action.drill_type:
        case "coordinate":
            academy = replace(academy, target_square=drills.generate_random_square(ctx.rng))
        case "knight_path":
            path = _new_knight_path(ctx)
            academy = replace(academy, knight_path=path, **_cursor_on(path.start_square))
        case "tactics" | "mate":
            academy = replace(academy, tactics_puzzle=puzzles.puzzles_for(action.drill_type)[0])
        case "pgn":
            academy = replace(academy, pgn_study=pgn.load_study(0))
    return replace(state, phase=phase, mode="academy", academy_state=academy)


def _drill_answer(state: SessionState, action: DrillAnswer, ctx: _Context) -> SessionState:
    academy = state.academy_state
    if academy is None:
        return state
    return replace(
        state,
        academy_state=replace(
            academy,
            score=_score(academy, action.correct),
            feedback="correct" if action.correct else "incorrect",
        ),
    )


def _refresh(state: SessionState, action: Refresh, ctx: _Context) -> SessionState:
    updates: dict[str, Any] = {}
    ids = {piece.id for piece in action.pieces}
    if state.selected_piece_id is not None and state.selected_piece_id not in ids:
        updates.update(selected_piece_id=None, selected_move_index=0)
        if state.phase in _SELECTION_PHASES:
            updates["phase"] = "idle"
    elif state.selected_piece_id is not None:
        piece = next(p for p in action.pieces if p.id == state.selected_piece_id)
        updates["selected_move_index"] = clamp_index(state.selected_move_index, len(piece.moves))
    return replace(
        state,
        fen=action.fen,
        turn=action.turn,
        pieces=tuple(action.pieces),
        in_check=action.in_check,
        game_over=action.game_over,
        pending_move=None,
        has_unsaved_changes=len(state.history) > 0,
        reset_requested=False,
        **updates,
    )


def _engine_thinking(state: SessionState, action: EngineThinking, ctx: _Context) -> SessionState:
    return replace(state, engine_thinking=True)


def _engine_move(state: SessionState, action: EngineMove, ctx: _Context) -> SessionState:
    updates: dict[str, Any] = {}
    if action.fen is not None:
        updates["fen"] = action.fen
    if action.turn is not None:
        updates["turn"] = action.turn
    if action.pieces is not None:
        updates["pieces"] = tuple(action.pieces)
    if action.in_check is not None:
        updates["in_check"] = action.in_check
    if state.phase in PLAY_PHASES:
        updates["phase"] = "idle"
    return replace(
        state,
        history=_append_history(state.history, action.san),
        last_move=action.san,
        last_move_uci=action.uci,
        engine_thinking=False,
        pending_move=None,
        game_over=action.game_over,
        has_unsaved_changes=True,
        **updates,
    )


def _engine_error(state: SessionState, action: EngineError, ctx: _Context) -> SessionState:
    return replace(state, engine_thinking=False)


def _load_game(state: SessionState, action: LoadGame, ctx: _Context) -> SessionState:
    return replace(
        state,
        phase="idle",
        fen=action.fen,
        turn=action.turn,
        history=tuple(action.history)[-MAX_HISTORY_LENGTH:],
        pieces=tuple(action.pieces),
        in_check=action.in_check,
        pending_move=None,
        engine_thinking=False,
        has_unsaved_changes=False,
        previous_phase=None,
    )


def _mark_saved(state: SessionState, action: MarkSaved, ctx: _Context) -> SessionState:
    return replace(state, has_unsaved_changes=False)


def _confirm_exit(state: SessionState, action: ConfirmExit, ctx: _Context) -> SessionState:
    return replace(
        state,
        phase="idle",
        previous_phase=None,
        exit_requested=True,
        has_unsaved_changes=state.has_unsaved_changes and not action.save,
    )


def _new_game(state: SessionState, action: NewGame, ctx: _Context) -> SessionState:
    return _fresh_game(state)


# ------------------------------------------------------------------ #
# Dispatch tables                                                     #
# ------------------------------------------------------------------ #

_DRILL_GESTURES: dict[type, Handler] = {
    Scroll: _drill_scroll,
    Tap: _drill_tap,
    DoubleTap: _drill_double_tap,
}

_PHASE_HANDLERS: dict[Phase, dict[type, Handler]] = {
    "idle": {
        Scroll: _enter_piece_select,
        Tap: _enter_piece_select,
        DoubleTap: _idle_double_tap,
    },
    "piece_select": {
        Scroll: _piece_scroll,
        Tap: _piece_tap,
        DoubleTap: _piece_double_tap,
    },
    "dest_select": {
        Scroll: _dest_scroll,
        Tap: _dest_tap,
        DoubleTap: _dest_double_tap,
    },
    "promotion_select": {
        Scroll: _promotion_scroll,
        Tap: _promotion_tap,
        DoubleTap: _promotion_double_tap,
    },
    "menu": {
        Scroll: _cycle_menu_index(len(MENU_OPTIONS)),
        Tap: _menu_tap,
        DoubleTap: _menu_double_tap,
    },
    "difficulty_select": {
        Scroll: _cycle_menu_index(len(DIFFICULTY_OPTIONS)),
        Tap: _difficulty_tap,
        DoubleTap: _back_to_menu("difficulty"),
    },
    "board_markers_select": {
        Scroll: _cycle_menu_index(len(BOARD_MARKER_OPTIONS)),
        Tap: _board_markers_tap,
        DoubleTap: _back_to_menu("board_markers"),
    },
    "view_log": {
        Scroll: _log_scroll,
        Tap: _back_to_menu("view_log"),
        DoubleTap: _back_to_menu("view_log"),
    },
    "reset_confirm": {
        Scroll: _cycle_menu_index(2),
        Tap: _reset_confirm_tap,
        DoubleTap: _back_to_menu("reset"),
    },
    "exit_confirm": {
        Scroll: _cycle_menu_index(2),
        Tap: _exit_confirm_tap,
        DoubleTap: _back_to_menu("exit"),
    },
    "mode_select": {
        Scroll: _cycle_menu_index(len(MODE_OPTIONS)),
        Tap: _mode_tap,
        DoubleTap: _back_to_menu("mode"),
    },
    "bullet_setup": {
        Scroll: _time_control_scroll,
        Tap: _bullet_setup_tap,
        DoubleTap: _back_to_mode_select,
    },
    "academy_select": {
        Scroll: _cycle_menu_index(len(ACADEMY_OPTIONS)),
        Tap: _academy_tap,
        DoubleTap: _back_to_mode_select,
    },
    "coordinate_drill": _DRILL_GESTURES,
    "knight_path_drill": _DRILL_GESTURES,
    "tactics_drill": _DRILL_GESTURES,
    "mate_drill": _DRILL_GESTURES,
    "pgn_study": _DRILL_GESTURES,
}

_GLOBAL_HANDLERS: dict[type, Handler] = {
    ForegroundEnter: _ignore,   # display side effects only, see session.py
    ForegroundExit: _ignore,
    OpenMenu: _open_menu,
    CloseMenu: _close_menu,
    MenuSelect: _menu_select,
    SetDifficulty: _set_difficulty,
    SetBoardMarkers: _set_board_markers,
    SetMode: _set_mode,
    StartBulletGame: _start_bullet_game,
    TimerTick: _timer_tick,
    ApplyIncrement: _apply_increment,
    StartDrill: _start_drill,
    DrillAnswer: _drill_answer,
    Refresh: _refresh,
    EngineThinking: _engine_thinking,
    EngineMove: _engine_move,
    EngineError: _engine_error,
    LoadGame: _load_game,
    MarkSaved: _mark_saved,
    ConfirmExit: _confirm_exit,
    NewGame: _new_game,
}
