"""
Read-only projections of SessionState into display text.

The glasses show one text container next to the board image; everything
the user reads comes from get_combined_display_text(). The remaining
helpers are exposed for the renderer and for tests.
"""

from __future__ import annotations

from evenchess.academy.drills import file_rank_to_square
from evenchess.bullet.clock import format_time
from evenchess.state.constants import (
    ACADEMY_LABELS,
    ACADEMY_OPTIONS,
    DIFFICULTY_LABELS,
    DIFFICULTY_OPTIONS,
    EXIT_CONFIRM_OPTIONS,
    LOG_VISIBLE_ROWS,
    MENU_LABELS,
    MENU_OPTIONS,
    MODE_LABELS,
    MODE_OPTIONS,
    PIECE_NAMES,
    PROMOTION_PIECES,
    RESET_CONFIRM_OPTIONS,
    TIME_CONTROLS,
)
from evenchess.state.contracts import CarouselMove, PieceEntry, SessionState
from evenchess.state.utils import get_move_number

_PIECE_LETTERS = "KQRBN"


# ------------------------------------------------------------------ #
# Selection                                                           #
# ------------------------------------------------------------------ #

def get_selected_piece(state: SessionState) -> PieceEntry | None:
    if state.selected_piece_id is None:
        return None
    for piece in state.pieces:
        if piece.id == state.selected_piece_id:
            return piece
    return None


def get_selected_move(state: SessionState) -> CarouselMove | None:
    piece = get_selected_piece(state)
    if piece is None or not 0 <= state.selected_move_index < len(piece.moves):
        return None
    return piece.moves[state.selected_move_index]


def get_board_preview_data(state: SessionState) -> tuple[str | None, str | None]:
    """(origin, destination) squares to highlight on the board, if any."""
    piece = get_selected_piece(state)
    if piece is None:
        return None, None
    move = get_selected_move(state)
    return piece.square, move.to_square if move is not None else None


def expand_move_name(san: str, *, for_log: bool = False) -> str:
    """
    Spell out a SAN move for a display that cannot fit symbols well.

        Nf3 → "Knight F3"      exd5 → "takes D5" ("Pawn takes D5" in the log)
        O-O → "Castle Short"   exd8=N+ → "takes D8=Knight"
    """
    san = san.rstrip("+#")
    if san == "O-O":
        return "Castle Short"
    if san == "O-O-O":
        return "Castle Long"
    if not san:
        return ""

    if san[0] in _PIECE_LETTERS:
        piece, body = PIECE_NAMES[san[0].lower()], san[1:]
    else:
        piece, body = PIECE_NAMES["p"], san

    promotion = ""
    if "=" in body:
        body, letter = body.split("=", 1)
        promotion = "=" + PIECE_NAMES.get(letter[:1].lower(), letter)

    parts = []
    if piece != PIECE_NAMES["p"] or for_log:
        parts.append(piece)
    if "x" in body:
        parts.append("takes")
    parts.append(body[-2:].upper() + promotion)
    return " ".join(parts)


def get_carousel_items(state: SessionState) -> list[str]:
    match state.phase:
        case "piece_select":
            return [piece.label for piece in state.pieces]
        case "dest_select":
            piece = get_selected_piece(state)
            return [expand_move_name(m.san) for m in piece.moves] if piece else []
        case "promotion_select":
            return [PIECE_NAMES[p] for p in PROMOTION_PIECES]
        case _:
            return []


def get_carousel_selected_index(state: SessionState) -> int:
    match state.phase:
        case "piece_select":
            for i, piece in enumerate(state.pieces):
                if piece.id == state.selected_piece_id:
                    return i
            return 0
        case "dest_select":
            return state.selected_move_index
        case "promotion_select":
            return state.selected_promotion_index
        case _:
            return 0


# ------------------------------------------------------------------ #
# Board play                                                          #
# ------------------------------------------------------------------ #

def _side_name(color: str) -> str:
    return "White" if color == "w" else "Black"


def get_status_text(state: SessionState) -> str:
    if state.game_over:
        return state.game_over[0].upper() + state.game_over[1:]
    if state.engine_thinking:
        return "Engine is thinking..."

    status = f"{_side_name(state.turn)} to move"
    if state.in_check:
        status += " (check)"
    hint = {
        "idle": "Scroll to pick a piece",
        "piece_select": "Scroll pieces, tap to choose",
        "dest_select": "Scroll moves, tap to play",
        "promotion_select": "Scroll pieces, tap to promote",
    }.get(state.phase)
    return f"{status}\n{hint}" if hint else status


def get_timer_text(state: SessionState) -> str:
    if state.timers is None:
        return ""
    white = format_time(state.timers.white_ms)
    black = format_time(state.timers.black_ms)
    return f"W {white}  |  B {black}"


def get_carousel_display_text(state: SessionState) -> str:
    if state.game_over:
        return "Double-tap for a new game"
    if state.engine_thinking:
        return ""

    items = get_carousel_items(state)
    index = get_carousel_selected_index(state)
    counter = f"{index + 1}/{len(items)}"
    match state.phase:
        case "idle":
            return "Scroll to begin"
        case "piece_select" if items:
            return f"{items[index]}  {counter}"
        case "dest_select" if items:
            piece = get_selected_piece(state)
            label = piece.label if piece else ""
            return f"{label}: {items[index]}  {counter}"
        case "promotion_select":
            return f"Promote to {items[index]}  {counter}"
        case _:
            return ""


# ------------------------------------------------------------------ #
# Menus                                                               #
# ------------------------------------------------------------------ #

def _option_list(header: str, labels: list[str], selected: int, current: int | None = None) -> str:
    lines = [header]
    for i, label in enumerate(labels):
        marker = "> " if i == selected else "  "
        suffix = " *" if i == current else ""
        lines.append(f"{marker}{label}{suffix}")
    return "\n".join(lines)


def get_menu_display_text(state: SessionState) -> str:
    return _option_list("MENU", [MENU_LABELS[o] for o in MENU_OPTIONS], state.menu_selected_index)


def get_difficulty_display_text(state: SessionState) -> str:
    return _option_list(
        "DIFFICULTY",
        [DIFFICULTY_LABELS[d] for d in DIFFICULTY_OPTIONS],
        state.menu_selected_index,
        DIFFICULTY_OPTIONS.index(state.difficulty),
    )


def get_board_markers_display_text(state: SessionState) -> str:
    return _option_list(
        "BOARD MARKERS",
        ["On", "Off"],
        state.menu_selected_index,
        0 if state.show_board_markers else 1,
    )


def get_log_display_text(state: SessionState) -> str:
    if not state.history:
        return "MOVE LOG\nNo moves yet"

    rows = []
    for i in range(0, len(state.history), 2):
        white = expand_move_name(state.history[i], for_log=True)
        black = expand_move_name(state.history[i + 1], for_log=True) if i + 1 < len(state.history) else ""
        rows.append(f"{get_move_number(i)}. {white} | {black}".rstrip(" |"))

    visible = rows[state.log_scroll_offset:state.log_scroll_offset + LOG_VISIBLE_ROWS]
    return "\n".join(["MOVE LOG", "White | Black", *visible])


def get_reset_confirm_display_text(state: SessionState) -> str:
    return _option_list("RESET GAME", list(RESET_CONFIRM_OPTIONS), state.menu_selected_index)


def get_exit_confirm_display_text(state: SessionState) -> str:
    return _option_list("UNSAVED CHANGES", list(EXIT_CONFIRM_OPTIONS), state.menu_selected_index)


def get_mode_select_display_text(state: SessionState) -> str:
    return _option_list(
        "MODE",
        [MODE_LABELS[m] for m in MODE_OPTIONS],
        state.menu_selected_index,
        MODE_OPTIONS.index(state.mode),
    )


def get_bullet_setup_display_text(state: SessionState) -> str:
    return _option_list(
        "BULLET BLITZ",
        [tc.label for tc in TIME_CONTROLS],
        state.selected_time_control_index,
    )


def get_academy_select_display_text(state: SessionState) -> str:
    return _option_list(
        "ACADEMY",
        [ACADEMY_LABELS[d] for d in ACADEMY_OPTIONS],
        state.menu_selected_index,
    )


# ------------------------------------------------------------------ #
# Drills                                                              #
# ------------------------------------------------------------------ #

_FEEDBACK_TEXT = {"none": "", "correct": "Correct!", "incorrect": "Try again"}


def _drill_footer(state: SessionState) -> list[str]:
    academy = state.academy_state
    if academy is None:
        return []
    cursor = file_rank_to_square(academy.cursor_file, academy.cursor_rank).upper()
    lines = [
        f"Cursor: {cursor} ({academy.nav_axis})",
        f"Score: {academy.score.correct}/{academy.score.total}",
    ]
    feedback = _FEEDBACK_TEXT[academy.feedback]
    if feedback:
        lines.append(feedback)
    return lines


def get_coordinate_drill_display_text(state: SessionState) -> str:
    academy = state.academy_state
    target = (academy.target_square or "").upper() if academy else ""
    return "\n".join(["COORDINATES", f"Find: {target}", *_drill_footer(state)])


def get_knight_path_display_text(state: SessionState) -> str:
    academy = state.academy_state
    path = academy.knight_path if academy else None
    if path is None:
        return "KNIGHT PATH"
    return "\n".join(
        [
            "KNIGHT PATH",
            f"{path.start_square.upper()} to {path.target_square.upper()}",
            f"Knight: {path.current_square.upper()}  Moves: {path.moves_taken} (best {path.optimal_moves})",
            *_drill_footer(state),
        ]
    )


def get_tactics_display_text(state: SessionState) -> str:
    academy = state.academy_state
    puzzle = academy.tactics_puzzle if academy else None
    header = "CHECKMATE" if academy and academy.drill_type == "mate" else "TACTICS"
    if puzzle is None:
        return header
    side = _side_name(puzzle.fen.split()[1] if len(puzzle.fen.split()) > 1 else "w")
    return "\n".join(
        [f"{header}: {puzzle.theme}", puzzle.description, f"{side} to move", *_drill_footer(state)]
    )


def get_pgn_study_display_text(state: SessionState) -> str:
    academy = state.academy_state
    study = academy.pgn_study if academy else None
    if study is None:
        return "PGN STUDY"
    index = study.current_move_index
    if index == 0:
        position = "Start position"
    else:
        ply = index - 1
        dots = "." if ply % 2 == 0 else "..."
        position = f"{get_move_number(ply)}{dots} {expand_move_name(study.moves[ply], for_log=True)}"
    return "\n".join(
        [
            "PGN STUDY",
            study.game_name,
            f"Move {index}/{len(study.moves)}: {position}",
            "Scroll to step, tap for next game",
        ]
    )


# ------------------------------------------------------------------ #
# Combined                                                            #
# ------------------------------------------------------------------ #

def get_combined_display_text(state: SessionState) -> str:
    """The full text container content for the current phase."""
    match state.phase:
        case "menu":
            return get_menu_display_text(state)
        case "difficulty_select":
            return get_difficulty_display_text(state)
        case "board_markers_select":
            return get_board_markers_display_text(state)
        case "view_log":
            return get_log_display_text(state)
        case "reset_confirm":
            return get_reset_confirm_display_text(state)
        case "exit_confirm":
            return get_exit_confirm_display_text(state)
        case "mode_select":
            return get_mode_select_display_text(state)
        case "bullet_setup":
            return get_bullet_setup_display_text(state)
        case "academy_select":
            return get_academy_select_display_text(state)
        case "coordinate_drill":
            return get_coordinate_drill_display_text(state)
        case "knight_path_drill":
            return get_knight_path_display_text(state)
        case "tactics_drill" | "mate_drill":
            return get_tactics_display_text(state)
        case "pgn_study":
            return get_pgn_study_display_text(state)

    lines = []
    timer = get_timer_text(state)
    if timer:
        lines.append(timer)
    lines.append(get_status_text(state))
    carousel = get_carousel_display_text(state)
    if carousel:
        lines.append(carousel)
    return "\n".join(lines)
