"""
AI move collaborators.

    bridge = StockfishBridge("stockfish")
    await bridge.init()
    uci = await bridge.get_best_move(fen, profile)   # "e2e4" or None

StockfishBridge drives a UCI engine through python-chess. The engine
process is started once and reused across moves. If it cannot be started,
or a search fails or times out, the bridge switches permanently to
RandomMover so a game can always continue.
"""

from __future__ import annotations

import asyncio
import logging
import random
from abc import ABC, abstractmethod

import chess
import chess.engine

from evenchess.engine.profiles import EngineProfile

logger = logging.getLogger(__name__)

_VARIETY_LINES = 3
_VARIETY_MARGIN_CP = 50   # alternatives this close to the best line are fair picks


class MoveEngine(ABC):
    """Anything that can answer "what should the side to move play here?"."""

    async def init(self) -> None:
        pass

    @abstractmethod
    async def get_best_move(self, fen: str, profile: EngineProfile) -> str | None:
        """UCI string of the chosen move, or None when there is none."""
        ...

    async def close(self) -> None:
        pass


class RandomMover(MoveEngine):
    """Uniformly random legal move after a short pause so the player's move renders first."""

    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    async def get_best_move(self, fen: str, profile: EngineProfile) -> str | None:
        await asyncio.sleep(min(profile.movetime, 300) / 1000)
        try:
            board = chess.Board(fen)
        except ValueError:
            logger.error("RandomMover got an invalid FEN %r", fen)
            return None
        moves = list(board.legal_moves)
        if not moves:
            return None
        return self._rng.choice(moves).uci()


class StockfishBridge(MoveEngine):
    """
    UCI engine wrapper.

    Args:
        engine_path: Engine binary (default: "stockfish" on PATH).
        timeout_grace: Seconds allowed on top of the profile movetime before
                       the search is abandoned.
    """

    def __init__(
        self,
        engine_path: str = "stockfish",
        timeout_grace: float = 2.0,
        rng: random.Random | None = None,
    ) -> None:
        self._engine_path = engine_path
        self._timeout_grace = timeout_grace
        self._rng = rng or random.Random()
        self._engine: chess.engine.UciProtocol | None = None
        self._failed = False
        self._fallback = RandomMover(self._rng)

    @property
    def using_fallback(self) -> bool:
        return self._engine is None or self._failed

    async def init(self) -> None:
        try:
            _, self._engine = await chess.engine.popen_uci(self._engine_path)
            logger.info("Engine ready: %s", self._engine.id.get("name", self._engine_path))
        except (OSError, chess.engine.EngineError) as exc:
            logger.warning("Engine %r unavailable, using random moves: %s", self._engine_path, exc)
            self._engine = None

    async def get_best_move(self, fen: str, profile: EngineProfile) -> str | None:
        engine = self._engine
        if engine is None or self._failed:
            return await self._fallback.get_best_move(fen, profile)

        try:
            move = await asyncio.wait_for(
                self._search(engine, chess.Board(fen), profile),
                timeout=profile.movetime / 1000 + self._timeout_grace,
            )
        except (asyncio.TimeoutError, chess.engine.EngineError, chess.engine.EngineTerminatedError) as exc:
            logger.warning("Engine search failed (%s); switching to random moves for good", exc)
            move = None
        except ValueError:
            logger.error("Engine asked to search an invalid FEN %r", fen)
            return None

        if move is not None:
            return move
        self._failed = True
        return await self._fallback.get_best_move(fen, profile)

    async def _search(
        self, engine: chess.engine.UciProtocol, board: chess.Board, profile: EngineProfile
    ) -> str | None:
        if "Skill Level" in engine.options:
            await engine.configure({"Skill Level": profile.skill_level})
        limit = chess.engine.Limit(depth=profile.depth, time=profile.movetime / 1000)

        if profile.add_variety:
            infos = await engine.analyse(board, limit, multipv=_VARIETY_LINES)
            return self._pick_varied(infos, board.turn)

        result = await engine.play(board, limit)
        return result.move.uci() if result.move is not None else None

    def _pick_varied(self, infos: list[chess.engine.InfoDict], turn: chess.Color) -> str | None:
        scored: list[tuple[int, chess.Move]] = []
        for info in infos:
            pv = info.get("pv")
            score = info.get("score")
            if not pv or score is None:
                continue
            scored.append((score.pov(turn).score(mate_score=100_000), pv[0]))
        if not scored:
            return None
        best = max(cp for cp, _ in scored)
        candidates = [move for cp, move in scored if best - cp <= _VARIETY_MARGIN_CP]
        return self._rng.choice(candidates).uci()

    async def close(self) -> None:
        """Shut down the engine process cleanly."""
        if self._engine is None:
            return
        try:
            await self._engine.quit()
        except chess.engine.EngineTerminatedError:
            pass
        self._engine = None
