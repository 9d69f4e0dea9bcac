import asyncio
import random
import unittest
from dataclasses import replace

import chess
import chess.engine

from evenchess.actions import StartBulletGame, Tap
from evenchess.board import ChessService
from evenchess.engine.bridge import MoveEngine, RandomMover, StockfishBridge
from evenchess.engine.profiles import CASUAL, EASY, SERIOUS, EngineProfile, get_profile
from evenchess.engine.turnloop import EngineTurnLoop, refresh_action
from evenchess.state.contracts import SessionState
from evenchess.state.store import Store

FAST = EngineProfile(name="fast", skill_level=1, depth=1, movetime=10)


class ScriptedEngine(MoveEngine):
    def __init__(self, *moves: str | None) -> None:
        self.moves = list(moves)
        self.calls: list[str] = []

    async def get_best_move(self, fen: str, profile: EngineProfile) -> str | None:
        self.calls.append(fen)
        await asyncio.sleep(0)
        return self.moves.pop(0) if self.moves else None


class HangingUci:
    options: dict = {}

    async def configure(self, options) -> None:
        pass

    async def play(self, board, limit):
        await asyncio.sleep(10)

    async def quit(self) -> None:
        pass


class DeadUci(HangingUci):
    async def play(self, board, limit):
        raise chess.engine.EngineTerminatedError("engine died")


class ProfileTests(unittest.TestCase):
    def test_known_profiles(self) -> None:
        self.assertIs(get_profile("easy"), EASY)
        self.assertIs(get_profile("serious"), SERIOUS)
        self.assertTrue(EASY.add_variety)
        self.assertFalse(SERIOUS.add_variety)

    def test_unknown_difficulty_is_casual(self) -> None:
        self.assertIs(get_profile("grandmaster"), CASUAL)


class RandomMoverTests(unittest.IsolatedAsyncioTestCase):
    async def test_returns_a_legal_move(self) -> None:
        mover = RandomMover(random.Random(3))
        uci = await mover.get_best_move(chess.STARTING_FEN, FAST)
        self.assertIn(chess.Move.from_uci(uci), chess.Board().legal_moves)

    async def test_no_moves_or_bad_fen(self) -> None:
        mover = RandomMover()
        self.assertIsNone(await mover.get_best_move("7k/5Q2/6K1/8/8/8/8/8 b - - 0 1", FAST))
        with self.assertLogs("evenchess.engine.bridge", level="ERROR"):
            self.assertIsNone(await mover.get_best_move("nonsense", FAST))


class StockfishBridgeTests(unittest.IsolatedAsyncioTestCase):
    async def test_missing_binary_falls_back_to_random(self) -> None:
        bridge = StockfishBridge("/nonexistent/engine-binary")
        with self.assertLogs("evenchess.engine.bridge", level="WARNING"):
            await bridge.init()
        self.assertTrue(bridge.using_fallback)
        uci = await bridge.get_best_move(chess.STARTING_FEN, FAST)
        self.assertIn(chess.Move.from_uci(uci), chess.Board().legal_moves)
        await bridge.close()

    async def test_timeout_switches_to_random_for_good(self) -> None:
        bridge = StockfishBridge(timeout_grace=0.01, rng=random.Random(1))
        bridge._engine = HangingUci()
        self.assertFalse(bridge.using_fallback)

        with self.assertLogs("evenchess.engine.bridge", level="WARNING"):
            uci = await bridge.get_best_move(chess.STARTING_FEN, FAST)

        self.assertIsNotNone(uci)
        self.assertTrue(bridge.using_fallback)

    async def test_terminated_engine_switches_to_random(self) -> None:
        bridge = StockfishBridge(rng=random.Random(1))
        bridge._engine = DeadUci()
        with self.assertLogs("evenchess.engine.bridge", level="WARNING"):
            uci = await bridge.get_best_move(chess.STARTING_FEN, FAST)
        self.assertIsNotNone(uci)
        self.assertTrue(bridge.using_fallback)

    def test_variety_picks_among_close_lines(self) -> None:
        bridge = StockfishBridge(rng=random.Random(5))
        infos = [
            {"pv": [chess.Move.from_uci("e2e4")], "score": chess.engine.PovScore(chess.engine.Cp(40), chess.WHITE)},
            {"pv": [chess.Move.from_uci("d2d4")], "score": chess.engine.PovScore(chess.engine.Cp(10), chess.WHITE)},
            {"pv": [chess.Move.from_uci("a2a3")], "score": chess.engine.PovScore(chess.engine.Cp(-90), chess.WHITE)},
        ]
        picks = {bridge._pick_varied(infos, chess.WHITE) for _ in range(30)}
        self.assertLessEqual(picks, {"e2e4", "d2d4"})
        self.assertIsNone(bridge._pick_varied([{}], chess.WHITE))


class EngineTurnLoopTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.chess = ChessService()
        self.store = Store(SessionState())
        self.store.dispatch(refresh_action(self.chess))

    def _loop(self, engine: MoveEngine) -> EngineTurnLoop:
        turns = EngineTurnLoop(self.store, self.chess, engine)
        self.store.subscribe(turns.on_state)
        return turns

    def _play_knight_to_f3(self) -> None:
        state = self.store.get_state()
        self.store._state = replace(state, phase="dest_select", selected_piece_id="w-n-g1", selected_move_index=0)
        self.store.dispatch(Tap())

    async def test_player_move_then_engine_reply(self) -> None:
        engine = ScriptedEngine("e7e5")
        turns = self._loop(engine)

        self._play_knight_to_f3()
        await turns.wait()

        state = self.store.get_state()
        self.assertEqual(state.history, ("Nf3", "e5"))
        self.assertEqual(state.turn, "w")
        self.assertFalse(state.engine_thinking)
        self.assertIsNone(state.pending_move)
        self.assertEqual(state.last_move_uci, "e7e5")
        self.assertEqual(self.chess.history_san(), ["Nf3", "e5"])
        self.assertEqual(len(engine.calls), 1)

    async def test_engine_without_move_clears_thinking(self) -> None:
        turns = self._loop(ScriptedEngine(None))
        with self.assertLogs("evenchess.engine.turnloop", level="WARNING"):
            self._play_knight_to_f3()
            await turns.wait()
        state = self.store.get_state()
        self.assertFalse(state.engine_thinking)
        self.assertEqual(state.turn, "b")

    async def test_illegal_engine_move_is_rejected(self) -> None:
        turns = self._loop(ScriptedEngine("e2e4"))
        with self.assertLogs("evenchess.board", level="WARNING"):
            self._play_knight_to_f3()
            await turns.wait()
        self.assertFalse(self.store.get_state().engine_thinking)
        self.assertEqual(self.chess.history_san(), ["Nf3"])

    async def test_reset_cancels_turn(self) -> None:
        class SlowEngine(MoveEngine):
            async def get_best_move(self, fen, profile):
                await asyncio.sleep(10)
                return "e7e5"

        turns = self._loop(SlowEngine())
        self._play_knight_to_f3()
        await asyncio.sleep(0.01)
        self.assertTrue(turns.busy)
        task = turns._task
        turns.reset()
        await asyncio.sleep(0)
        self.assertTrue(task.cancelled())
        self.assertIsNone(turns._task)
        self.assertFalse(turns.busy)
        self.assertEqual(self.chess.history_san(), ["Nf3"])

    async def test_reset_after_finished_turn_forgets_it(self) -> None:
        turns = self._loop(ScriptedEngine("e7e5"))
        turns.reset()   # nothing running yet

        self._play_knight_to_f3()
        await turns.wait()
        task = turns._task
        turns.reset()

        self.assertTrue(task.done())
        self.assertFalse(task.cancelled())
        self.assertIsNone(turns._task)
        self.assertEqual(self.chess.history_san(), ["Nf3", "e5"])

    async def test_bullet_increments_both_sides(self) -> None:
        self.store.dispatch(StartBulletGame(3))   # 3+5
        self.store.dispatch(refresh_action(self.chess))
        turns = self._loop(ScriptedEngine("e7e5"))

        self._play_knight_to_f3()
        await turns.wait()

        timers = self.store.get_state().timers
        self.assertGreaterEqual(timers.white_ms, 180_000)
        self.assertGreaterEqual(timers.black_ms, 180_000)
        self.assertEqual(self.store.get_state().history, ("Nf3", "e5"))


if __name__ == "__main__":
    unittest.main()
