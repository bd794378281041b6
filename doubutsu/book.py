"""Exact-match opening book built from a handful of fixed lines."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Optional, Sequence, Tuple

from .board import BoardMove, Move, Position
from .movegen import generate_moves

# Each line is a sequence of (src, dst) board moves played from the initial position.
OPENING_LINES: Tuple[Tuple[Tuple[int, int], ...], ...] = (
    ((11, 8), (0, 3), (7, 4), (3, 4), (9, 5), (2, 6)),
    ((7, 4), (0, 4)),
    ((9, 6), (2, 5), (11, 8), (0, 3)),
    ((11, 8), (0, 3), (10, 11), (1, 0)),
    ((9, 6), (0, 3), (6, 4), (3, 4)),
    ((11, 8), (4, 7), (8, 7)),
    ((9, 6), (2, 5), (7, 4), (5, 4)),
    ((11, 8), (2, 5), (7, 4), (5, 4)),
    ((10, 6), (0, 3)),
    ((10, 8), (2, 5)),
    ((11, 8), (0, 3), (10, 11), (3, 6)),
    ((9, 6), (2, 5), (6, 3), (5, 8)),
    ((9, 6), (0, 3), (6, 9), (3, 0)),
)


class OpeningBook:
    """Maps :meth:`Position.key` to the recorded reply.

    Read-only once built; lookups never mutate the table.
    """

    def __init__(self, entries: Optional[Dict[str, Move]] = None) -> None:
        self._entries: Dict[str, Move] = dict(entries or {})

    @classmethod
    def build(
        cls,
        lines: Iterable[Sequence[Tuple[int, int]]] = OPENING_LINES,
        *,
        logger: Optional[Callable[[str], None]] = None,
    ) -> "OpeningBook":
        log = logger or (lambda *_: None)
        entries: Dict[str, Move] = {}
        root = Position.initial()
        for index, line in enumerate(lines):
            position = root
            for src, dst in line:
                move = _find_board_move(position, src, dst)
                if move is None:
                    log(f"book line {index} stops at illegal pair ({src}, {dst})")
                    break
                entries.setdefault(position.key(), move)
                position = position.apply(move)
        log(f"book built: {len(entries)} positions")
        return cls(entries)

    def lookup(self, position: Position) -> Optional[Move]:
        return self._entries.get(position.key())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, position: object) -> bool:
        return isinstance(position, Position) and position.key() in self._entries


def _find_board_move(position: Position, src: int, dst: int) -> Optional[BoardMove]:
    for move in generate_moves(position):
        if isinstance(move, BoardMove) and move.src == src and move.dst == dst:
            return move
    return None
