"""Shallow AND/OR search for forced wins."""

from __future__ import annotations

from typing import Callable, Dict, Optional, Tuple

from .board import Move, Position
from .movegen import generate_moves
from .rules import detect_terminal


class ForcedWinSolver:
    """Finds a move that wins by force within a fixed number of plies.

    The search is conservative: running out of depth or an opponent without
    replies both count as the opponent escaping, so a returned move is always
    a proven win under the terminal rules.
    """

    def __init__(self, *, logger: Optional[Callable[[str], None]] = None) -> None:
        self._logger = logger or (lambda *_: None)
        self._memo: Dict[Tuple[Position, int], Optional[Move]] = {}
        self.nodes = 0

    def solve(self, position: Position, depth: int) -> Optional[Move]:
        self._memo = {}
        self.nodes = 0
        if depth <= 0 or detect_terminal(position).over:
            return None
        move = self._winning_move(position, depth)
        self._logger(
            f"solver: depth={depth} nodes={self.nodes} "
            f"result={move if move is not None else 'none'}"
        )
        return move

    def _winning_move(self, position: Position, depth: int) -> Optional[Move]:
        key = (position, depth)
        if key in self._memo:
            return self._memo[key]

        mover = position.turn
        found: Optional[Move] = None
        for move in generate_moves(position):
            self.nodes += 1
            child = position.apply(move)
            result = detect_terminal(child)
            if result.over:
                if result.winner == mover:
                    found = move
                    break
                continue
            if depth - 1 > 0 and not self._opponent_escapes(child, depth - 1):
                found = move
                break

        self._memo[key] = found
        return found

    def _opponent_escapes(self, position: Position, depth: int) -> bool:
        defender = position.turn
        replies = generate_moves(position)
        if not replies:
            return True
        for reply in replies:
            self.nodes += 1
            after = position.apply(reply)
            result = detect_terminal(after)
            if result.over:
                if result.winner == defender:
                    return True
                continue
            if depth - 1 <= 0:
                return True
            if self._winning_move(after, depth - 1) is None:
                return True
        return False
