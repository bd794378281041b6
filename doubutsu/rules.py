"""Game-over detection: Lion capture and the Lion try."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .board import PROMOTION_MASKS, PieceKind, Position, Side
from .movegen import is_square_attacked


@dataclass(frozen=True, slots=True)
class GameResult:
    over: bool
    winner: Optional[Side] = None

    def reward_for(self, side: Side) -> float:
        """1.0 win, 0.5 draw or undecided, 0.0 loss from ``side``'s view."""

        if self.winner is None:
            return 0.5
        return 1.0 if self.winner == side else 0.0


NOT_OVER = GameResult(False)


def detect_terminal(position: Position) -> GameResult:
    for side in Side:
        if not position.pieces[side][PieceKind.LION]:
            return GameResult(True, side.opponent)

    mover = position.turn
    # The opponent had its reply and did not take the Lion.
    if position.pieces[mover][PieceKind.LION] & PROMOTION_MASKS[mover]:
        return GameResult(True, mover)

    waiting = mover.opponent
    lion = position.pieces[waiting][PieceKind.LION]
    if lion & PROMOTION_MASKS[waiting]:
        if not is_square_attacked(position, lion.bit_length() - 1, mover):
            return GameResult(True, waiting)
    return NOT_OVER
