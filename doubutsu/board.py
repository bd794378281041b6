"""Bitboard position model for Doubutsu Shogi.

The 3x4 board is numbered row-major, ``a1`` = 0 in the top-left corner and
``c4`` = 11 in the bottom-right. First starts on rows 3/2 and moves towards
row 0; Second mirrors it by a half-turn about the board centre.

A :class:`Position` keeps one 12-bit mask per side and piece kind plus the
per-side hand counts. Positions are never changed after construction:
:meth:`Position.apply` always returns a fresh instance.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .errors import InvalidPositionError, InvariantViolationError

BOARD_ROWS = 4
BOARD_COLS = 3
NUM_SQUARES = BOARD_ROWS * BOARD_COLS
FULL_MASK = (1 << NUM_SQUARES) - 1

COLUMN_NAMES = "abc"


class Side(IntEnum):
    FIRST = 0
    SECOND = 1

    @property
    def sign(self) -> int:
        return 1 if self is Side.FIRST else -1

    @property
    def opponent(self) -> "Side":
        return Side.SECOND if self is Side.FIRST else Side.FIRST

    @classmethod
    def from_sign(cls, sign: int) -> "Side":
        if sign == 1:
            return cls.FIRST
        if sign == -1:
            return cls.SECOND
        raise ValueError(f"side sign must be +1 or -1, got {sign!r}")


class PieceKind(IntEnum):
    CHICK = 1
    GIRAFFE = 2
    ELEPHANT = 3
    LION = 4
    HEN = 5

    @property
    def letter(self) -> str:
        return _KIND_LETTERS[self]

    @property
    def base(self) -> "PieceKind":
        """Kind the piece reverts to when captured."""

        return PieceKind.CHICK if self is PieceKind.HEN else self


_KIND_LETTERS = {
    PieceKind.CHICK: "C",
    PieceKind.GIRAFFE: "G",
    PieceKind.ELEPHANT: "E",
    PieceKind.LION: "L",
    PieceKind.HEN: "H",
}
_LETTER_KINDS = {letter: kind for kind, letter in _KIND_LETTERS.items()}

PIECE_KINDS: Tuple[PieceKind, ...] = tuple(PieceKind)
HAND_KINDS: Tuple[PieceKind, ...] = (
    PieceKind.CHICK,
    PieceKind.GIRAFFE,
    PieceKind.ELEPHANT,
)

PIECE_VALUES: Dict[PieceKind, int] = {
    PieceKind.CHICK: 10,
    PieceKind.GIRAFFE: 40,
    PieceKind.ELEPHANT: 40,
    PieceKind.LION: 1000,
    PieceKind.HEN: 50,
}

# Per-kind totals over both sides, Hen counted as Chick.
INITIAL_TOTALS: Dict[PieceKind, int] = {
    PieceKind.CHICK: 2,
    PieceKind.GIRAFFE: 2,
    PieceKind.ELEPHANT: 2,
    PieceKind.LION: 2,
}

INITIAL_BOARD: Tuple[int, ...] = (-2, -4, -3, 0, -1, 0, 0, 1, 0, 3, 4, 2)

ROW_MASKS: Tuple[int, ...] = tuple(0b111 << (row * BOARD_COLS) for row in range(BOARD_ROWS))

# Far row for each side: Chicks promote there and a Lion standing there is a try.
PROMOTION_MASKS: Tuple[int, int] = (ROW_MASKS[0], ROW_MASKS[BOARD_ROWS - 1])
HOME_ROW_MASKS: Tuple[int, int] = (PROMOTION_MASKS[1], PROMOTION_MASKS[0])


def iter_squares(mask: int) -> Iterator[int]:
    while mask:
        low = mask & -mask
        yield low.bit_length() - 1
        mask ^= low


def square_name(square: int) -> str:
    row, col = divmod(square, BOARD_COLS)
    return f"{COLUMN_NAMES[col]}{row + 1}"


def parse_square(text: str) -> int:
    if len(text) != 2 or text[0] not in COLUMN_NAMES or not text[1].isdigit():
        raise ValueError(f"invalid square name: {text!r}")
    row = int(text[1]) - 1
    if not 0 <= row < BOARD_ROWS:
        raise ValueError(f"invalid square name: {text!r}")
    return row * BOARD_COLS + COLUMN_NAMES.index(text[0])


@dataclass(frozen=True, slots=True)
class BoardMove:
    src: int
    dst: int
    promote: bool = False

    def __str__(self) -> str:
        suffix = "+" if self.promote else ""
        return f"{square_name(self.src)}{square_name(self.dst)}{suffix}"


@dataclass(frozen=True, slots=True)
class Drop:
    kind: PieceKind
    dst: int

    def __str__(self) -> str:
        return f"{self.kind.letter}*{square_name(self.dst)}"


Move = Union[BoardMove, Drop]


def parse_move(text: str) -> Move:
    """Parse ``b4b3``, ``b2b1+`` or ``C*b2`` notation."""

    text = text.strip()
    if len(text) == 4 and text[1] == "*":
        kind = _LETTER_KINDS.get(text[0].upper())
        if kind is None or kind not in HAND_KINDS:
            raise ValueError(f"invalid drop: {text!r}")
        return Drop(kind, parse_square(text[2:]))
    promote = text.endswith("+")
    body = text[:-1] if promote else text
    if len(body) != 4:
        raise ValueError(f"invalid move: {text!r}")
    return BoardMove(parse_square(body[:2]), parse_square(body[2:]), promote)


def _empty_side() -> List[int]:
    return [0] * (len(PIECE_KINDS) + 1)


class Position:
    """One game state: piece placement, hands and the side to move.

    ``pieces[side][kind]`` and ``hands[side][kind]`` are indexed by
    :class:`Side` and :class:`PieceKind`; slot 0 is unused. ``move_count`` is
    informational only and ignored by equality and hashing.
    """

    __slots__ = ("pieces", "hands", "turn", "move_count")

    def __init__(
        self,
        pieces: Tuple[Tuple[int, ...], Tuple[int, ...]],
        hands: Tuple[Tuple[int, ...], Tuple[int, ...]],
        turn: Side = Side.FIRST,
        move_count: int = 0,
    ) -> None:
        self.pieces = pieces
        self.hands = hands
        self.turn = turn
        self.move_count = move_count

    @classmethod
    def initial(cls) -> "Position":
        return cls.from_arrays(INITIAL_BOARD, [0] * 12, 1)

    @classmethod
    def from_arrays(
        cls,
        board: Sequence[int],
        hands: Sequence[int],
        side_to_move: int,
        move_count: int = 0,
    ) -> "Position":
        """Build a position from the signed-code interchange form.

        ``board`` holds 12 codes (0 empty, magnitude = kind, sign = side);
        ``hands`` holds First's counts at 0..5 and Second's at 6..11.
        Raises :class:`InvalidPositionError` on anything malformed.
        """

        if len(board) != NUM_SQUARES:
            raise InvalidPositionError(
                "board must have 12 squares", context={"length": len(board)}
            )
        if len(hands) != 12:
            raise InvalidPositionError(
                "hands must have 12 slots", context={"length": len(hands)}
            )
        try:
            turn = Side.from_sign(side_to_move)
        except ValueError as exc:
            raise InvalidPositionError(str(exc)) from exc

        pieces = [_empty_side(), _empty_side()]
        for square, code in enumerate(board):
            if code == 0:
                continue
            if abs(code) > len(PIECE_KINDS):
                raise InvalidPositionError(
                    "unknown piece code", context={"square": square, "code": code}
                )
            side = Side.FIRST if code > 0 else Side.SECOND
            pieces[side][abs(code)] |= 1 << square

        hand_counts = [_empty_side(), _empty_side()]
        for side in Side:
            offset = 6 * side
            if hands[offset] != 0:
                raise InvalidPositionError(
                    "hand slot 0 is unused and must be zero", context={"slot": offset}
                )
            for kind in PIECE_KINDS:
                count = hands[offset + kind]
                if count < 0:
                    raise InvalidPositionError(
                        "negative hand count", context={"slot": offset + kind}
                    )
                # a captured lion stays in hand but is never dropped
                if count and kind is PieceKind.HEN:
                    raise InvalidPositionError(
                        "hen can never be held in hand",
                        context={"slot": offset + kind},
                    )
                hand_counts[side][kind] = count

        position = cls(
            (tuple(pieces[0]), tuple(pieces[1])),
            (tuple(hand_counts[0]), tuple(hand_counts[1])),
            turn,
            move_count,
        )
        problems = position.consistency_problems()
        if problems:
            raise InvalidPositionError("; ".join(problems))
        return position

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def occupied(self, side: Side) -> int:
        masks = self.pieces[side]
        return masks[1] | masks[2] | masks[3] | masks[4] | masks[5]

    def all_occupied(self) -> int:
        return self.occupied(Side.FIRST) | self.occupied(Side.SECOND)

    def piece_at(self, square: int) -> Optional[Tuple[Side, PieceKind]]:
        bit = 1 << square
        for side in Side:
            masks = self.pieces[side]
            for kind in PIECE_KINDS:
                if masks[kind] & bit:
                    return side, kind
        return None

    def lion_square(self, side: Side) -> Optional[int]:
        mask = self.pieces[side][PieceKind.LION]
        if not mask:
            return None
        return mask.bit_length() - 1

    def hand_list(self, side: Side) -> List[PieceKind]:
        held: List[PieceKind] = []
        for kind in HAND_KINDS:
            held.extend([kind] * self.hands[side][kind])
        return held

    def board_array(self) -> List[int]:
        board = [0] * NUM_SQUARES
        for side in Side:
            for kind in PIECE_KINDS:
                for square in iter_squares(self.pieces[side][kind]):
                    board[square] = kind * side.sign
        return board

    def hands_array(self) -> List[int]:
        return list(self.hands[Side.FIRST]) + list(self.hands[Side.SECOND])

    def key(self) -> str:
        """Exact board-and-turn key used by the opening book."""

        return ",".join(str(code) for code in self.board_array()) + f"|{self.turn.sign}"

    def material_counts(self) -> Dict[PieceKind, int]:
        """Board plus hand counts per base kind, summed over both sides."""

        counts = {kind: 0 for kind in INITIAL_TOTALS}
        for side in Side:
            for kind in PIECE_KINDS:
                counts[kind.base] += self.pieces[side][kind].bit_count()
                counts[kind.base] += self.hands[side][kind]
        return counts

    def consistency_problems(self) -> List[str]:
        problems: List[str] = []
        seen = 0
        for side in Side:
            if self.pieces[side][0]:
                problems.append(f"{side.name.lower()} uses the unused piece slot")
            for kind in PIECE_KINDS:
                mask = self.pieces[side][kind]
                if mask & ~FULL_MASK:
                    problems.append(f"{side.name.lower()} {kind.name.lower()} off the board")
                if seen & mask:
                    problems.append(f"squares {sorted(iter_squares(seen & mask))} hold two pieces")
                seen |= mask
            if self.pieces[side][PieceKind.LION].bit_count() > 1:
                problems.append(f"{side.name.lower()} has more than one lion on the board")
            if self.hands[side][PieceKind.HEN]:
                problems.append(f"{side.name.lower()} holds a hen in hand")
        for kind, count in self.material_counts().items():
            if count > INITIAL_TOTALS[kind]:
                problems.append(
                    f"{count} {kind.name.lower()}s exceed the total of {INITIAL_TOTALS[kind]}"
                )
        return problems

    def validate(self) -> None:
        problems = self.consistency_problems()
        if problems:
            raise InvariantViolationError("; ".join(problems), context={"key": self.key()})

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def apply(self, move: Move) -> "Position":
        """Return the position after ``move``; ``self`` is left untouched."""

        me = self.turn
        opp = me.opponent
        mine = list(self.pieces[me])
        theirs = list(self.pieces[opp])
        my_hand = list(self.hands[me])
        dst_bit = 1 << move.dst

        if isinstance(move, BoardMove):
            src_bit = 1 << move.src
            kind = _kind_on(mine, src_bit)
            if kind is None:
                raise InvariantViolationError(
                    "move from an empty square", context={"move": str(move), "key": self.key()}
                )
            if self.occupied(me) & dst_bit:
                raise InvariantViolationError(
                    "move onto an own piece", context={"move": str(move), "key": self.key()}
                )
            if move.promote and kind is not PieceKind.CHICK:
                raise InvariantViolationError(
                    "only chicks promote", context={"move": str(move), "key": self.key()}
                )
            mine[kind] ^= src_bit
            mine[PieceKind.HEN if move.promote else kind] |= dst_bit
            captured = _kind_on(theirs, dst_bit)
            if captured is not None:
                theirs[captured] ^= dst_bit
                my_hand[captured.base] += 1
        else:
            if my_hand[move.kind] <= 0:
                raise InvariantViolationError(
                    "drop without a piece in hand", context={"move": str(move), "key": self.key()}
                )
            if self.all_occupied() & dst_bit:
                raise InvariantViolationError(
                    "drop onto an occupied square", context={"move": str(move), "key": self.key()}
                )
            my_hand[move.kind] -= 1
            mine[move.kind] |= dst_bit

        if me is Side.FIRST:
            pieces = (tuple(mine), tuple(theirs))
            hands = (tuple(my_hand), self.hands[opp])
        else:
            pieces = (tuple(theirs), tuple(mine))
            hands = (self.hands[opp], tuple(my_hand))
        return Position(pieces, hands, opp, self.move_count + 1)

    # ------------------------------------------------------------------
    # Value semantics
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Position):
            return NotImplemented
        return (
            self.turn == other.turn
            and self.pieces == other.pieces
            and self.hands == other.hands
        )

    def __hash__(self) -> int:
        return hash((self.pieces, self.hands, self.turn))

    def __repr__(self) -> str:
        return (
            f"Position(key={self.key()!r}, hands={self.hands_array()!r}, "
            f"move_count={self.move_count})"
        )


def _kind_on(masks: Sequence[int], bit: int) -> Optional[PieceKind]:
    for kind in PIECE_KINDS:
        if masks[kind] & bit:
            return kind
    return None
