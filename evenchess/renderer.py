"""
Board images for the glasses.

Every image is an SVG document produced by python-chess; converting it to
the display's bitmap format is the transport's business. The renderer
keeps the last SVG it produced per container so render() can report
"nothing changed" and the synchronizer can skip the upload.

Render paths:
  render_full()                board play, always returns an image
  render()                     board play, None when the image is unchanged
  render_from_fen()            tactics, mate and PGN study positions
  render_drill_board()         empty board with the coordinate cursor
  render_knight_path_board()   lone knight, target and path so far
  render_branding()            header strip; turns red while in check
"""

from __future__ import annotations

from dataclasses import dataclass
from html import escape

import chess
import chess.svg

from evenchess.hub.transport import (
    BOARD_CONTAINER_ID,
    BOARD_CONTAINER_NAME,
    BRANDING_CONTAINER_ID,
    BRANDING_CONTAINER_NAME,
)
from evenchess.state.contracts import KnightPathState, SessionState
from evenchess.state.selectors import get_board_preview_data

_ORIGIN_FILL = "#ffffff66"
_DEST_FILL = "#ffffffaa"
_CURSOR_FILL = "#ffffffcc"
_AXIS_FILL = "#ffffff33"
_TARGET_FILL = "#ffffffaa"
_ARROW_COLOR = "#ffffffcc"
_LAST_MOVE_COLOR = "#888888aa"

# Monochrome green display: plain light/dark squares read best.
_COLORS = {
    "square light": "#b0b0b0",
    "square dark": "#404040",
    "square light lastmove": "#d0d0d0",
    "square dark lastmove": "#606060",
}


@dataclass(frozen=True)
class ImageUpdate:
    container_id: int
    container_name: str
    svg: str
    ascii: str = ""   # text fallback for consoles


class BoardRenderer:
    def __init__(self, size: int = 200) -> None:
        self.size = size
        self._last_svg: dict[int, str] = {}

    def invalidate(self) -> None:
        """Forget what was last rendered so the next render() returns an image."""
        self._last_svg.clear()

    # ------------------------------------------------------------------ #
    # Board play                                                           #
    # ------------------------------------------------------------------ #

    def render_full(self, state: SessionState) -> ImageUpdate:
        return self._remember(self._play_image(state))

    def render(self, state: SessionState) -> ImageUpdate | None:
        image = self._play_image(state)
        if self._last_svg.get(image.container_id) == image.svg:
            return None
        return self._remember(image)

    def _play_image(self, state: SessionState) -> ImageUpdate:
        board = _board(state.fen)
        fill: dict[chess.Square, str] = {}
        arrows: list[chess.svg.Arrow] = []

        lastmove = None
        if state.last_move_uci:
            try:
                lastmove = chess.Move.from_uci(state.last_move_uci)
            except (ValueError, chess.InvalidMoveError):
                lastmove = None

        origin, dest = get_board_preview_data(state)
        if state.show_board_markers and origin is not None:
            fill[chess.parse_square(origin)] = _ORIGIN_FILL
            if dest is not None:
                fill[chess.parse_square(dest)] = _DEST_FILL
                arrows.append(
                    chess.svg.Arrow(chess.parse_square(origin), chess.parse_square(dest), color=_ARROW_COLOR)
                )

        check = board.king(board.turn) if state.in_check else None
        return self._image(
            BOARD_CONTAINER_ID,
            BOARD_CONTAINER_NAME,
            board,
            lastmove=lastmove if state.show_board_markers else None,
            fill=fill,
            arrows=arrows,
            check=check,
        )

    def render_from_fen(self, fen: str, *, highlight: str | None = None) -> ImageUpdate:
        board = _board(fen)
        fill = {chess.parse_square(highlight): _CURSOR_FILL} if highlight else {}
        return self._remember(
            self._image(BOARD_CONTAINER_ID, BOARD_CONTAINER_NAME, board, fill=fill)
        )

    # ------------------------------------------------------------------ #
    # Academy                                                              #
    # ------------------------------------------------------------------ #

    def render_drill_board(self, cursor_file: int, cursor_rank: int, axis: str = "file") -> ImageUpdate:
        """Empty board; the active file or rank is shaded and the cursor square lit."""
        fill: dict[chess.Square, str] = {}
        for i in range(8):
            square = chess.square(cursor_file, i) if axis == "file" else chess.square(i, cursor_rank)
            fill[square] = _AXIS_FILL
        fill[chess.square(cursor_file, cursor_rank)] = _CURSOR_FILL
        return self._remember(
            self._image(BOARD_CONTAINER_ID, BOARD_CONTAINER_NAME, chess.Board(None), fill=fill, coordinates=True)
        )

    def render_knight_path_board(
        self,
        path: KnightPathState,
        cursor_file: int | None = None,
        cursor_rank: int | None = None,
    ) -> ImageUpdate:
        board = chess.Board(None)
        board.set_piece_at(chess.parse_square(path.current_square), chess.Piece(chess.KNIGHT, chess.WHITE))

        fill = {chess.parse_square(path.target_square): _TARGET_FILL}
        if cursor_file is not None and cursor_rank is not None:
            fill[chess.square(cursor_file, cursor_rank)] = _CURSOR_FILL
        arrows = [
            chess.svg.Arrow(chess.parse_square(a), chess.parse_square(b), color=_LAST_MOVE_COLOR)
            for a, b in zip(path.path, path.path[1:])
        ]
        return self._remember(
            self._image(BOARD_CONTAINER_ID, BOARD_CONTAINER_NAME, board, fill=fill, arrows=arrows, coordinates=True)
        )

    # ------------------------------------------------------------------ #
    # Branding                                                             #
    # ------------------------------------------------------------------ #

    def render_branding(self, *, check: bool = False) -> ImageUpdate:
        label = "CHECK" if check else "EvenChess"
        fill = "#ffffff" if check else "#a0a0a0"
        svg = (
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{self.size}" height="24" '
            f'viewBox="0 0 {self.size} 24">'
            f'<rect width="100%" height="100%" fill="#000000"/>'
            f'<text x="50%" y="17" fill="{fill}" font-family="monospace" font-size="16" '
            f'text-anchor="middle">{escape(label)}</text></svg>'
        )
        return self._remember(ImageUpdate(BRANDING_CONTAINER_ID, BRANDING_CONTAINER_NAME, svg, label))

    def render_blank_branding(self) -> ImageUpdate:
        svg = (
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{self.size}" height="24" '
            f'viewBox="0 0 {self.size} 24">'
            f'<rect width="100%" height="100%" fill="#000000"/></svg>'
        )
        return self._remember(ImageUpdate(BRANDING_CONTAINER_ID, BRANDING_CONTAINER_NAME, svg, ""))

    # ------------------------------------------------------------------ #
    # Internals                                                            #
    # ------------------------------------------------------------------ #

    def _image(
        self,
        container_id: int,
        container_name: str,
        board: chess.Board,
        *,
        lastmove: chess.Move | None = None,
        fill: dict[chess.Square, str] | None = None,
        arrows: list[chess.svg.Arrow] | None = None,
        check: chess.Square | None = None,
        coordinates: bool = False,
    ) -> ImageUpdate:
        svg = chess.svg.board(
            board=board,
            size=self.size,
            lastmove=lastmove,
            check=check,
            fill=fill or {},
            arrows=arrows or [],
            coordinates=coordinates,
            colors=_COLORS,
        )
        return ImageUpdate(container_id, container_name, svg, str(board))

    def _remember(self, image: ImageUpdate) -> ImageUpdate:
        self._last_svg[image.container_id] = image.svg
        return image


def _board(fen: str) -> chess.Board:
    try:
        return chess.Board(fen)
    except ValueError:
        return chess.Board()
