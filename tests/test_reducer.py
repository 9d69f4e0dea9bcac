"""
Reducer tests: identity no-ops, the transition table, invariants and the
board-play, menu, bullet and academy flows.
"""

import random
import unittest
from dataclasses import replace

from evenchess.actions import (
    ACTION_TYPES,
    ApplyIncrement,
    CloseMenu,
    ConfirmExit,
    DoubleTap,
    DrillAnswer,
    EngineError,
    EngineMove,
    EngineThinking,
    ForegroundEnter,
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
from evenchess.academy import drills, puzzles
from evenchess.board import ChessService
from evenchess.state.constants import MAX_HISTORY_LENGTH, MENU_OPTIONS, TIME_CONTROLS
from evenchess.state.contracts import (
    PHASES,
    CarouselMove,
    PieceEntry,
    PromotionMove,
    SessionState,
    Timers,
    build_initial_state,
)
from evenchess.state.reducer import missing_transitions, reduce

PROMOTION_FEN = "8/P6k/8/8/8/8/8/K7 w - - 0 1"


def _play_state(fen: str | None = None, **overrides) -> SessionState:
    snap = ChessService(fen).snapshot()
    state = build_initial_state(fen=snap.fen, turn=snap.turn, pieces=snap.pieces, in_check=snap.in_check)
    return replace(state, **overrides)


def _sample_action(action_type):
    samples = {
        Scroll: Scroll("down"),
        MenuSelect: MenuSelect("view_log"),
        SetDifficulty: SetDifficulty("serious"),
        SetBoardMarkers: SetBoardMarkers(False),
        SetMode: SetMode("play"),
        StartBulletGame: StartBulletGame(0),
        ApplyIncrement: ApplyIncrement("w"),
        StartDrill: StartDrill("coordinate"),
        DrillAnswer: DrillAnswer(True),
        Refresh: Refresh(fen="8/8/8/8/8/8/8/8 w - - 0 1", turn="w", pieces=(), in_check=False),
        EngineMove: EngineMove(uci="e7e5", san="e5"),
        LoadGame: LoadGame(fen="8/8/8/8/8/8/8/8 w - - 0 1", history=("e4",), turn="b"),
        ConfirmExit: ConfirmExit(save=True),
    }
    return samples.get(action_type) or action_type()


class TransitionTableTests(unittest.TestCase):
    def test_every_phase_handles_every_action(self) -> None:
        self.assertEqual(missing_transitions(), [])

    def test_reducer_never_raises_and_keeps_invariants(self) -> None:
        base = _play_state()
        for phase in PHASES:
            for action_type in ACTION_TYPES:
                with self.subTest(phase=phase, action=action_type.__name__):
                    state = replace(base, phase=phase)
                    result = reduce(state, _sample_action(action_type), now=1_000.0, rng=random.Random(1))
                    self.assertIsInstance(result, SessionState)
                    self.assertLessEqual(len(result.history), MAX_HISTORY_LENGTH)
                    if result.mode != "bullet":
                        self.assertIsNone(result.timers)
                    if result.academy_state is not None:
                        self.assertTrue(result.phase.endswith("_drill") or result.phase == "pgn_study")

    def test_game_over_gate_returns_same_object(self) -> None:
        state = _play_state(game_over="Checkmate! Black wins")
        for action_type in ACTION_TYPES:
            if action_type is NewGame:
                continue
            with self.subTest(action=action_type.__name__):
                self.assertIs(reduce(state, _sample_action(action_type)), state)

    def test_new_game_passes_the_gate(self) -> None:
        state = _play_state(game_over="Checkmate! Black wins", history=("f3", "e5"))
        result = reduce(state, NewGame())
        self.assertIsNone(result.game_over)
        self.assertEqual(result.history, ())
        self.assertTrue(result.reset_requested)

    def test_inapplicable_action_returns_same_object(self) -> None:
        state = _play_state()
        self.assertIs(reduce(state, CloseMenu()), state)
        self.assertIs(reduce(state, ForegroundEnter()), state)
        self.assertIs(reduce(state, EngineError()), state)


class BoardPlayTests(unittest.TestCase):
    def test_scroll_from_idle_selects_first_piece(self) -> None:
        state = _play_state()
        result = reduce(state, Scroll("down"), now=500.0)
        self.assertEqual(result.phase, "piece_select")
        self.assertEqual(result.selected_piece_id, state.pieces[0].id)
        self.assertEqual(result.phase_entered_at, 500.0)

    def test_idle_prefers_the_piece_that_moved_last(self) -> None:
        state = _play_state("rnbqkb1r/pppppppp/5n2/8/8/5N2/PPPPPPPP/RNBQKB1R w KQkq - 2 2",
                            player_last_move_to_square="f3")
        result = reduce(state, Tap())
        self.assertEqual(result.selected_piece_id, "w-n-f3")

    def test_idle_ignores_input_while_engine_thinks(self) -> None:
        state = _play_state(engine_thinking=True)
        self.assertIs(reduce(state, Scroll("down")), state)

    def test_n_scrolls_return_to_start(self) -> None:
        state = reduce(_play_state(), Scroll("down"), now=0.0)
        start = state.selected_piece_id
        for _ in range(len(state.pieces)):
            state = reduce(state, Scroll("down"), now=1.0)
        self.assertEqual(state.selected_piece_id, start)
        for _ in range(len(state.pieces)):
            state = reduce(state, Scroll("up"), now=2.0)
        self.assertEqual(state.selected_piece_id, start)

    def test_tap_on_piece_enters_destination_select(self) -> None:
        state = reduce(_play_state(), Scroll("down"), now=0.0)
        state = replace(state, selected_move_index=3)
        result = reduce(state, Tap(), now=1_000.0)
        self.assertEqual(result.phase, "dest_select")
        self.assertEqual(result.selected_move_index, 0)

    def test_destination_tap_commits_move(self) -> None:
        state = _play_state()
        knight = next(p for p in state.pieces if p.id == "w-n-g1")
        state = replace(state, phase="dest_select", selected_piece_id=knight.id, selected_move_index=0)
        move = knight.moves[0]

        result = reduce(state, Tap())

        self.assertEqual(result.phase, "idle")
        self.assertEqual(result.history, (move.san,))
        self.assertEqual(result.pending_move.uci, move.uci)
        self.assertEqual(result.player_last_move_to_square, move.to_square)
        self.assertIsNone(result.selected_piece_id)
        self.assertTrue(result.has_unsaved_changes)

    def test_double_tap_soon_after_piece_select_opens_menu(self) -> None:
        state = reduce(_play_state(), Scroll("down"), now=1_000.0)
        result = reduce(state, DoubleTap(), now=1_150.0, gesture_window_ms=200)
        self.assertEqual(result.phase, "menu")
        self.assertEqual(result.previous_phase, "idle")
        self.assertIsNone(result.selected_piece_id)

    def test_late_double_tap_in_piece_select_goes_back_to_idle(self) -> None:
        state = reduce(_play_state(), Scroll("down"), now=1_000.0)
        result = reduce(state, DoubleTap(), now=1_500.0, gesture_window_ms=200)
        self.assertEqual(result.phase, "idle")
        self.assertIsNone(result.selected_piece_id)

    def test_destination_double_tap_returns_to_piece_select(self) -> None:
        state = _play_state()
        state = replace(state, phase="dest_select", selected_piece_id=state.pieces[0].id, selected_move_index=1)
        result = reduce(state, DoubleTap())
        self.assertEqual(result.phase, "piece_select")
        self.assertEqual(result.selected_move_index, 0)

    def test_promotion_move_enters_promotion_select(self) -> None:
        state = _play_state(PROMOTION_FEN)
        pawn = next(p for p in state.pieces if p.type == "p")
        index = next(i for i, m in enumerate(pawn.moves) if m.promotion)
        state = replace(state, phase="dest_select", selected_piece_id=pawn.id, selected_move_index=index)

        result = reduce(state, Tap())

        self.assertEqual(result.phase, "promotion_select")
        self.assertEqual(result.pending_promotion_move, PromotionMove("a7", "a8"))
        self.assertEqual(result.selected_promotion_index, 0)

    def test_promotion_tap_commits_chosen_piece(self) -> None:
        state = _play_state(PROMOTION_FEN)
        pawn = next(p for p in state.pieces if p.type == "p")
        state = replace(
            state,
            phase="promotion_select",
            selected_piece_id=pawn.id,
            pending_promotion_move=PromotionMove("a7", "a8"),
        )
        state = reduce(state, Scroll("down"))   # rook
        state = reduce(state, Scroll("down"))   # bishop
        state = reduce(state, Scroll("down"))   # knight
        result = reduce(state, Tap())

        self.assertEqual(result.phase, "idle")
        self.assertEqual(result.pending_move.uci, "a7a8n")
        self.assertEqual(result.history[-1], "a8=N")
        self.assertIsNone(result.pending_promotion_move)

    def test_history_is_capped_dropping_oldest(self) -> None:
        history = tuple(f"m{i}" for i in range(MAX_HISTORY_LENGTH))
        state = _play_state(history=history)
        result = reduce(state, EngineMove(uci="e2e4", san="newest"))
        self.assertEqual(len(result.history), MAX_HISTORY_LENGTH)
        self.assertEqual(result.history[-1], "newest")
        self.assertEqual(result.history[0], "m1")

    def test_refresh_revalidates_selection(self) -> None:
        state = _play_state()
        state = replace(state, phase="dest_select", selected_piece_id="w-n-g1", selected_move_index=1)
        snap = ChessService("rnbqkbnr/pppppppp/8/8/8/5N2/PPPPPPPP/RNBQKB1R b KQkq - 1 1").snapshot()
        result = reduce(state, Refresh(snap.fen, snap.turn, snap.pieces, snap.in_check))
        self.assertEqual(result.phase, "idle")
        self.assertIsNone(result.selected_piece_id)
        self.assertEqual(result.turn, "b")

    def test_refresh_clamps_move_index(self) -> None:
        moves = (CarouselMove("a2a3", "a3", "a2", "a3"),)
        piece = PieceEntry("w-p-a2", "Pawn A2", "w", "p", "a2", moves)
        state = _play_state()
        state = replace(state, phase="dest_select", selected_piece_id="w-p-a2", selected_move_index=1)
        result = reduce(state, Refresh(state.fen, "w", (piece,), False))
        self.assertEqual(result.selected_move_index, 0)

    def test_refresh_infers_unsaved_changes_from_history(self) -> None:
        state = _play_state(history=("e4",))
        result = reduce(state, Refresh(state.fen, "w", state.pieces, False))
        self.assertTrue(result.has_unsaved_changes)

    def test_engine_cycle(self) -> None:
        state = reduce(_play_state(), EngineThinking())
        self.assertTrue(state.engine_thinking)
        self.assertIs(reduce(state, OpenMenu()), state)
        result = reduce(state, EngineMove(uci="e7e5", san="e5", turn="w"))
        self.assertFalse(result.engine_thinking)
        self.assertEqual(result.last_move, "e5")
        self.assertEqual(result.last_move_uci, "e7e5")
        self.assertEqual(reduce(state, EngineError("boom")).engine_thinking, False)

    def test_load_game_replaces_position(self) -> None:
        result = reduce(_play_state(phase="menu"), LoadGame(fen="f", history=("e4", "e5"), turn="w"))
        self.assertEqual(result.phase, "idle")
        self.assertEqual(result.history, ("e4", "e5"))
        self.assertFalse(result.has_unsaved_changes)


class MenuTests(unittest.TestCase):
    def test_open_and_close_menu_restores_previous_phase(self) -> None:
        state = _play_state()
        menu = reduce(state, OpenMenu())
        self.assertEqual(menu.phase, "menu")
        self.assertEqual(menu.previous_phase, "idle")
        closed = reduce(menu, CloseMenu())
        self.assertEqual(closed.phase, "idle")
        self.assertIsNone(closed.previous_phase)

    def test_nested_menu_keeps_original_previous_phase(self) -> None:
        menu = reduce(_play_state(), OpenMenu())
        log = reduce(menu, MenuSelect("view_log"))
        again = reduce(log, OpenMenu())
        self.assertEqual(again.phase, "menu")
        self.assertEqual(again.previous_phase, "idle")

    def test_menu_scroll_wraps(self) -> None:
        menu = reduce(_play_state(), OpenMenu())
        up = reduce(menu, Scroll("up"))
        self.assertEqual(up.menu_selected_index, len(MENU_OPTIONS) - 1)

    def test_difficulty_flow(self) -> None:
        menu = reduce(_play_state(), OpenMenu())
        picker = reduce(menu, MenuSelect("difficulty"))
        self.assertEqual(picker.phase, "difficulty_select")
        self.assertEqual(picker.menu_selected_index, 1)   # casual
        chosen = reduce(reduce(picker, Scroll("down")), Tap())
        self.assertEqual(chosen.difficulty, "serious")
        self.assertEqual(chosen.phase, "menu")
        self.assertEqual(MENU_OPTIONS[chosen.menu_selected_index], "difficulty")

    def test_board_markers_flow(self) -> None:
        picker = reduce(reduce(_play_state(), OpenMenu()), MenuSelect("board_markers"))
        chosen = reduce(reduce(picker, Scroll("down")), Tap())
        self.assertFalse(chosen.show_board_markers)

    def test_view_log_scroll_is_clamped(self) -> None:
        history = tuple(["e4", "e5"] * 8)   # 8 rows
        state = reduce(reduce(_play_state(history=history), OpenMenu()), MenuSelect("view_log"))
        for _ in range(10):
            state = reduce(state, Scroll("down"))
        self.assertEqual(state.log_scroll_offset, 3)
        self.assertEqual(reduce(replace(state, log_scroll_offset=0), Scroll("up")).log_scroll_offset, 0)

    def test_reset_confirm_defaults_to_cancel(self) -> None:
        state = reduce(reduce(_play_state(history=("e4",)), OpenMenu()), MenuSelect("reset"))
        self.assertEqual(state.phase, "reset_confirm")
        cancelled = reduce(state, Tap())
        self.assertEqual(cancelled.phase, "menu")
        self.assertEqual(cancelled.history, ("e4",))

        confirmed = reduce(reduce(state, Scroll("down")), Tap())
        self.assertEqual(confirmed.phase, "idle")
        self.assertEqual(confirmed.history, ())
        self.assertTrue(confirmed.reset_requested)

    def test_exit_without_unsaved_changes_exits_directly(self) -> None:
        state = reduce(reduce(_play_state(), OpenMenu()), MenuSelect("exit"))
        self.assertTrue(state.exit_requested)

    def test_exit_with_unsaved_changes_asks_first(self) -> None:
        state = reduce(_play_state(history=("e4",), has_unsaved_changes=True), OpenMenu())
        confirm = reduce(state, MenuSelect("exit"))
        self.assertEqual(confirm.phase, "exit_confirm")
        saved = reduce(confirm, Tap())
        self.assertTrue(saved.exit_requested)
        self.assertFalse(saved.has_unsaved_changes)

        discard = reduce(confirm, ConfirmExit(save=False))
        self.assertTrue(discard.exit_requested)
        self.assertTrue(discard.has_unsaved_changes)

    def test_mark_saved(self) -> None:
        state = _play_state(has_unsaved_changes=True)
        self.assertFalse(reduce(state, MarkSaved()).has_unsaved_changes)


class BulletTests(unittest.TestCase):
    def _bullet(self, **overrides) -> SessionState:
        state = reduce(_play_state(), StartBulletGame(0))
        snap = ChessService().snapshot()
        state = reduce(state, Refresh(snap.fen, snap.turn, snap.pieces, snap.in_check))
        return replace(state, **overrides)

    def test_mode_select_to_bullet_setup(self) -> None:
        menu = reduce(_play_state(), OpenMenu())
        modes = reduce(menu, MenuSelect("mode"))
        setup = reduce(reduce(modes, Scroll("down")), Tap())
        self.assertEqual(setup.phase, "bullet_setup")
        self.assertEqual(setup.mode, "play")
        self.assertIsNone(setup.timers)

    def test_start_bullet_game_seeds_timers_paused(self) -> None:
        state = reduce(_play_state(), StartBulletGame(3))
        tc = TIME_CONTROLS[3]
        self.assertEqual(state.mode, "bullet")
        self.assertEqual(state.timers, Timers(tc.initial_ms, tc.initial_ms, tc.increment_ms))
        self.assertFalse(state.timer_active)

    def test_first_committed_move_starts_the_clock(self) -> None:
        state = self._bullet()
        knight = next(p for p in state.pieces if p.id == "w-n-g1")
        state = replace(state, phase="dest_select", selected_piece_id=knight.id)
        result = reduce(state, Tap())
        self.assertTrue(result.timer_active)

    def test_timeout_ends_game(self) -> None:
        state = self._bullet(
            timers=Timers(white_ms=1000, black_ms=60000, increment_ms=0),
            timer_active=True,
            last_tick_time=0.0,
            history=("e4", "e5"),
        )
        result = reduce(state, TimerTick(now=100_000.0))
        self.assertEqual(result.timers.white_ms, 0)
        self.assertFalse(result.timer_active)
        self.assertEqual(result.game_over, "Black wins on time!")

    def test_menu_pauses_and_board_resumes_clock(self) -> None:
        state = self._bullet(timer_active=True, last_tick_time=10.0, history=("e4",))
        paused = reduce(state, OpenMenu())
        self.assertFalse(paused.timer_active)
        self.assertIsNone(paused.last_tick_time)
        resumed = reduce(paused, CloseMenu())
        self.assertTrue(resumed.timer_active)

    def test_leaving_bullet_drops_timers(self) -> None:
        state = self._bullet(timer_active=True)
        result = reduce(state, SetMode("play"))
        self.assertIsNone(result.timers)
        self.assertFalse(result.timer_active)

    def test_increment(self) -> None:
        state = reduce(_play_state(), StartBulletGame(3))
        result = reduce(state, ApplyIncrement("b"))
        self.assertEqual(result.timers.black_ms, 185_000)


class AcademyTests(unittest.TestCase):
    def _drill(self, drill_type, **overrides) -> SessionState:
        state = reduce(_play_state(), StartDrill(drill_type), rng=random.Random(7))
        return replace(state, academy_state=replace(state.academy_state, **overrides)) if overrides else state

    def test_start_drill_enters_phase_with_payload(self) -> None:
        state = self._drill("coordinate")
        self.assertEqual(state.phase, "coordinate_drill")
        self.assertEqual(state.mode, "academy")
        self.assertIsNotNone(state.academy_state.target_square)

    def test_scroll_moves_cursor_on_active_axis(self) -> None:
        state = self._drill("coordinate")
        state = reduce(state, Scroll("up"))
        self.assertEqual((state.academy_state.cursor_file, state.academy_state.cursor_rank), (5, 3))
        state = reduce(state, Tap())
        self.assertEqual(state.academy_state.nav_axis, "rank")
        state = reduce(state, Scroll("down"))
        self.assertEqual((state.academy_state.cursor_file, state.academy_state.cursor_rank), (5, 2))

    def test_correct_coordinate_answer_scores(self) -> None:
        state = self._drill("coordinate", target_square="f3", cursor_file=5, cursor_rank=2, nav_axis="rank")
        result = reduce(state, Tap(), rng=random.Random(3))
        academy = result.academy_state
        self.assertEqual((academy.score.correct, academy.score.total), (1, 1))
        self.assertEqual(academy.feedback, "correct")
        self.assertEqual(academy.nav_axis, "file")

    def test_wrong_coordinate_answer(self) -> None:
        state = self._drill("coordinate", target_square="a1", cursor_file=5, cursor_rank=2, nav_axis="rank")
        academy = reduce(state, Tap()).academy_state
        self.assertEqual((academy.score.correct, academy.score.total), (0, 1))
        self.assertEqual(academy.feedback, "incorrect")

    def test_double_tap_steps_back_then_exits(self) -> None:
        state = self._drill("coordinate", nav_axis="rank")
        state = reduce(state, DoubleTap())
        self.assertEqual(state.academy_state.nav_axis, "file")
        state = reduce(state, DoubleTap())
        self.assertEqual(state.phase, "academy_select")
        self.assertIsNone(state.academy_state)

    def test_open_menu_refused_in_drill(self) -> None:
        state = self._drill("coordinate")
        self.assertIs(reduce(state, OpenMenu()), state)

    def test_mate_puzzle_solution(self) -> None:
        state = self._drill("mate")
        puzzle = state.academy_state.tactics_puzzle
        target = puzzles.solution_target_square(puzzle)
        state = replace(
            state,
            academy_state=replace(
                state.academy_state,
                cursor_file=drills.get_file_index(target),
                cursor_rank=drills.get_rank_index(target),
                nav_axis="rank",
            ),
        )
        academy = reduce(state, Tap()).academy_state
        self.assertEqual(academy.feedback, "correct")
        self.assertEqual(academy.puzzle_index, 1)
        self.assertEqual(academy.tactics_puzzle, puzzles.MATE_PUZZLES[1])

    def test_knight_hop_must_be_legal(self) -> None:
        state = self._drill("knight_path")
        path = state.academy_state.knight_path
        self.assertEqual(path.current_square, path.start_square)
        # The cursor starts on the knight; submitting its own square is not a knight move.
        academy = reduce(replace(state, academy_state=replace(state.academy_state, nav_axis="rank")), Tap()).academy_state
        self.assertEqual(academy.feedback, "incorrect")
        self.assertEqual(academy.knight_path.moves_taken, 0)

    def test_pgn_study_steps_and_switches_games(self) -> None:
        state = self._drill("pgn")
        study = state.academy_state.pgn_study
        self.assertEqual(study.current_move_index, 0)
        self.assertIs(reduce(state, Scroll("up")), state)
        stepped = reduce(state, Scroll("down"))
        self.assertEqual(stepped.academy_state.pgn_study.current_move_index, 1)
        nxt = reduce(stepped, Tap())
        self.assertEqual(nxt.academy_state.pgn_study.game_index, 1)

    def test_drill_answer_action(self) -> None:
        state = self._drill("coordinate")
        academy = reduce(state, DrillAnswer(correct=False)).academy_state
        self.assertEqual(academy.score.total, 1)

    def test_academy_select_from_mode_menu(self) -> None:
        modes = reduce(reduce(_play_state(), OpenMenu()), MenuSelect("mode"))
        academy = reduce(modes, SetMode("academy"))
        self.assertEqual(academy.phase, "academy_select")
        drill = reduce(academy, Tap(), rng=random.Random(2))
        self.assertEqual(drill.phase, "coordinate_drill")


if __name__ == "__main__":
    unittest.main()
