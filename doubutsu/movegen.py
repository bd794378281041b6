"""Legal move generation from precomputed destination tables."""

from __future__ import annotations

from typing import Dict, List, Tuple

from .board import (
    BOARD_COLS,
    BOARD_ROWS,
    HAND_KINDS,
    NUM_SQUARES,
    PIECE_KINDS,
    PROMOTION_MASKS,
    BoardMove,
    Drop,
    Move,
    PieceKind,
    Position,
    Side,
    iter_squares,
)

# (row delta, column delta) for First; row 0 is the far side of the board.
FIRST_OFFSETS: Dict[PieceKind, Tuple[Tuple[int, int], ...]] = {
    PieceKind.CHICK: ((-1, 0),),
    PieceKind.GIRAFFE: ((-1, 0), (1, 0), (0, -1), (0, 1)),
    PieceKind.ELEPHANT: ((-1, -1), (-1, 1), (1, -1), (1, 1)),
    PieceKind.LION: (
        (-1, -1), (-1, 0), (-1, 1),
        (0, -1), (0, 1),
        (1, -1), (1, 0), (1, 1),
    ),
    PieceKind.HEN: ((-1, -1), (-1, 0), (-1, 1), (0, -1), (0, 1), (1, 0)),
}


def reflect(mask: int) -> int:
    """Map bit ``i`` to bit ``11 - i`` (half-turn about the board centre)."""

    result = 0
    for square in iter_squares(mask):
        result |= 1 << (NUM_SQUARES - 1 - square)
    return result


def _first_table() -> Dict[PieceKind, Tuple[int, ...]]:
    table: Dict[PieceKind, Tuple[int, ...]] = {}
    for kind, offsets in FIRST_OFFSETS.items():
        masks = []
        for square in range(NUM_SQUARES):
            row, col = divmod(square, BOARD_COLS)
            mask = 0
            for d_row, d_col in offsets:
                r, c = row + d_row, col + d_col
                if 0 <= r < BOARD_ROWS and 0 <= c < BOARD_COLS:
                    mask |= 1 << (r * BOARD_COLS + c)
            masks.append(mask)
        table[kind] = tuple(masks)
    return table


def _build_tables() -> Tuple[Dict[PieceKind, Tuple[int, ...]], Dict[PieceKind, Tuple[int, ...]]]:
    first = _first_table()
    second = {
        kind: tuple(reflect(masks[NUM_SQUARES - 1 - square]) for square in range(NUM_SQUARES))
        for kind, masks in first.items()
    }
    return first, second


# MOVE_TABLES[side][kind][square] -> destination mask
MOVE_TABLES = _build_tables()


def attack_mask(position: Position, side: Side) -> int:
    """Union of every square ``side``'s board pieces could move to or capture on."""

    tables = MOVE_TABLES[side]
    masks = position.pieces[side]
    attacked = 0
    for kind in PIECE_KINDS:
        table = tables[kind]
        for square in iter_squares(masks[kind]):
            attacked |= table[square]
    return attacked


def is_square_attacked(position: Position, square: int, by_side: Side) -> bool:
    tables = MOVE_TABLES[by_side]
    masks = position.pieces[by_side]
    target = 1 << square
    for kind in PIECE_KINDS:
        table = tables[kind]
        for origin in iter_squares(masks[kind]):
            if table[origin] & target:
                return True
    return False


def generate_moves(position: Position) -> List[Move]:
    """Every legal move for the side to move, board moves before drops."""

    me = position.turn
    tables = MOVE_TABLES[me]
    masks = position.pieces[me]
    own = position.occupied(me)
    empty = ~position.all_occupied() & ((1 << NUM_SQUARES) - 1)
    promotion_row = PROMOTION_MASKS[me]

    moves: List[Move] = []
    for kind in PIECE_KINDS:
        table = tables[kind]
        for src in iter_squares(masks[kind]):
            targets = table[src] & ~own
            for dst in iter_squares(targets):
                promote = kind is PieceKind.CHICK and bool(promotion_row & (1 << dst))
                moves.append(BoardMove(src, dst, promote))

    hand = position.hands[me]
    for kind in HAND_KINDS:
        if not hand[kind]:
            continue
        targets = empty & ~promotion_row if kind is PieceKind.CHICK else empty
        for dst in iter_squares(targets):
            moves.append(Drop(kind, dst))
    return moves
