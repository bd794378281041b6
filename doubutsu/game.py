"""Caller-side game record: current position, history and undo."""

from __future__ import annotations

from typing import List, Optional, Tuple, Union

from .board import Move, Position, parse_move
from .errors import IllegalMoveError
from .messages import StartSearchRequest
from .movegen import generate_moves
from .rules import GameResult, detect_terminal


class Game:
    def __init__(self, position: Optional[Position] = None) -> None:
        self._start = position or Position.initial()
        self._positions: List[Position] = [self._start]
        self._moves: List[Move] = []

    @property
    def position(self) -> Position:
        return self._positions[-1]

    @property
    def moves(self) -> Tuple[Move, ...]:
        return tuple(self._moves)

    @property
    def ply(self) -> int:
        return len(self._moves)

    def reset(self, position: Optional[Position] = None) -> None:
        self._start = position or Position.initial()
        self._positions = [self._start]
        self._moves = []

    def result(self) -> GameResult:
        return detect_terminal(self.position)

    def legal_moves(self) -> List[Move]:
        if self.result().over:
            return []
        return generate_moves(self.position)

    def play(self, move: Union[Move, str]) -> Position:
        if isinstance(move, str):
            try:
                move = parse_move(move)
            except ValueError as exc:
                raise IllegalMoveError(str(exc), context={"move": move}) from exc
        if move not in self.legal_moves():
            raise IllegalMoveError(
                "move is not legal here",
                context={"move": str(move), "key": self.position.key()},
            )
        self._positions.append(self.position.apply(move))
        self._moves.append(move)
        return self.position

    def undo(self) -> int:
        """Take back the last full turn (two plies), or one ply at the start."""

        count = 2 if len(self._moves) >= 2 else len(self._moves)
        for _ in range(count):
            self._moves.pop()
            self._positions.pop()
        return count

    def request(self, session_id: int, seconds: float) -> StartSearchRequest:
        return StartSearchRequest.from_position(self.position, session_id, seconds)
