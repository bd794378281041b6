"""Console helpers: coloured status tags and plain-text board rendering."""

import io
import sys
from typing import Sequence

ANSI_RESET = "\033[0m"
KIND_LETTERS = ".CGELH"


def color_text(text: str, color_code: str) -> str:
    return f"\033[{color_code}m{text}{ANSI_RESET}"


def _tagged(tag: str, color_code: str, text: str) -> str:
    # tags are padded to a common width so messages line up
    return f"{color_text(tag, color_code)} {' ' * (6 - len(tag))}{text}"


def debug_text(text: str) -> str:
    return _tagged("DEBUG", "31", text)


def info_text(text: str) -> str:
    return _tagged("INFO", "34", text)


def result_text(text: str) -> str:
    return _tagged("RESULT", "32", text)


def ensure_line_buffered_stdout() -> None:
    stdout = sys.stdout
    if isinstance(stdout, io.TextIOBase) and getattr(stdout, "line_buffering", False):
        return
    buffer = getattr(stdout, "buffer", None)
    if buffer is None:
        return
    sys.stdout = io.TextIOWrapper(buffer, line_buffering=True)


def format_hands(hands: Sequence[int]) -> str:
    """Compact hand listing such as ``C2 E1 | G1`` (First | Second)."""
    sides = []
    for offset in (0, 6):
        held = [
            f"{KIND_LETTERS[kind]}{hands[offset + kind]}"
            for kind in range(1, 6)
            if hands[offset + kind]
        ]
        sides.append(" ".join(held) or "-")
    return " | ".join(sides)


def render_board(board: Sequence[int]) -> str:
    """Four text rows, First's pieces upper case and Second's lower case."""
    rows = []
    for row in range(4):
        cells = []
        for code in board[row * 3:row * 3 + 3]:
            letter = KIND_LETTERS[abs(code)]
            cells.append(letter if code >= 0 else letter.lower())
        rows.append(f"{row + 1} {' '.join(cells)}")
    rows.append("  a b c")
    return "\n".join(rows)
