import random

import pytest

from doubutsu.board import (
    INITIAL_BOARD,
    INITIAL_TOTALS,
    NUM_SQUARES,
    BoardMove,
    Drop,
    PieceKind,
    Position,
    Side,
    parse_move,
    parse_square,
    square_name,
)
from doubutsu.errors import InvalidPositionError, InvariantViolationError
from doubutsu.movegen import generate_moves
from doubutsu.rules import detect_terminal


def make_position(pieces, *, turn: int = 1, hands=None) -> Position:
    board = [0] * NUM_SQUARES
    for square, code in pieces.items():
        board[square] = code
    return Position.from_arrays(board, hands or [0] * 12, turn)


def test_initial_position_layout() -> None:
    position = Position.initial()
    assert position.board_array() == list(INITIAL_BOARD)
    assert position.hands_array() == [0] * 12
    assert position.turn is Side.FIRST
    assert position.key() == "-2,-4,-3,0,-1,0,0,1,0,3,4,2|1"
    assert position.lion_square(Side.FIRST) == 10
    assert position.lion_square(Side.SECOND) == 1
    assert position.piece_at(7) == (Side.FIRST, PieceKind.CHICK)
    assert position.piece_at(3) is None


def test_square_names_round_trip() -> None:
    assert square_name(0) == "a1"
    assert square_name(11) == "c4"
    assert parse_square("b3") == 7
    with pytest.raises(ValueError):
        parse_square("d1")
    with pytest.raises(ValueError):
        parse_square("a5")


def test_move_notation() -> None:
    assert str(BoardMove(7, 4)) == "b3b2"
    assert str(BoardMove(4, 1, True)) == "b2b1+"
    assert str(Drop(PieceKind.CHICK, 4)) == "C*b2"
    assert parse_move("b2b1+") == BoardMove(4, 1, True)
    assert parse_move("G*a2") == Drop(PieceKind.GIRAFFE, 3)
    assert parse_move(" c4c3 ") == BoardMove(11, 8)
    for bad in ("", "b3", "L*b2", "H*a1", "b3b2++", "x1a1"):
        with pytest.raises(ValueError):
            parse_move(bad)


def test_apply_capture_moves_piece_to_hand() -> None:
    start = Position.initial()
    after = start.apply(BoardMove(7, 4))

    assert after.board_array()[4] == 1
    assert after.board_array()[7] == 0
    assert after.hands[Side.FIRST][PieceKind.CHICK] == 1
    assert after.turn is Side.SECOND
    assert after.move_count == 1
    # the parent is untouched
    assert start == Position.initial()
    assert start.board_array() == list(INITIAL_BOARD)


def test_captured_hen_returns_as_chick() -> None:
    position = make_position({4: -5, 7: 2, 10: 4, 1: -4})
    after = position.apply(BoardMove(7, 4))
    assert after.hands[Side.FIRST][PieceKind.CHICK] == 1
    assert after.hands[Side.FIRST][PieceKind.HEN] == 0


def test_captured_lion_is_held_in_hand() -> None:
    position = make_position({4: 2, 1: -4, 10: 4})
    after = position.apply(BoardMove(4, 1))
    assert after.hands[Side.FIRST][PieceKind.LION] == 1
    assert after.material_counts() == {
        PieceKind.CHICK: 0,
        PieceKind.GIRAFFE: 1,
        PieceKind.ELEPHANT: 0,
        PieceKind.LION: 2,
    }
    assert detect_terminal(after).winner is Side.FIRST


def test_promotion_and_drop() -> None:
    position = make_position({4: 1, 10: 4, 2: -4}, hands=[0, 0, 1, 0, 0, 0, 0, 0, 0, 0, 0, 0])
    promoted = position.apply(BoardMove(4, 1, True))
    assert promoted.board_array()[1] == 5

    dropped = position.apply(Drop(PieceKind.GIRAFFE, 6))
    assert dropped.board_array()[6] == 2
    assert dropped.hands[Side.FIRST][PieceKind.GIRAFFE] == 0


def test_equality_ignores_move_count() -> None:
    a = Position.initial()
    b = Position(a.pieces, a.hands, a.turn, move_count=17)
    assert a == b
    assert hash(a) == hash(b)
    assert a != Position(a.pieces, a.hands, Side.SECOND)


def test_apply_rejects_impossible_moves() -> None:
    position = Position.initial()
    with pytest.raises(InvariantViolationError):
        position.apply(BoardMove(3, 0))
    with pytest.raises(InvariantViolationError):
        position.apply(BoardMove(10, 9))
    with pytest.raises(InvariantViolationError):
        position.apply(Drop(PieceKind.CHICK, 3))
    with pytest.raises(InvariantViolationError):
        position.apply(BoardMove(11, 8, True))


@pytest.mark.parametrize(
    "board, hands, turn",
    [
        ([0] * 11, [0] * 12, 1),
        (list(INITIAL_BOARD), [0] * 11, 1),
        (list(INITIAL_BOARD), [0] * 12, 0),
        ([6] + list(INITIAL_BOARD[1:]), [0] * 12, 1),
        (list(INITIAL_BOARD), [0, -1] + [0] * 10, 1),
        (list(INITIAL_BOARD), [1] + [0] * 11, 1),
        (list(INITIAL_BOARD), [0, 0, 0, 0, 0, 1] + [0] * 6, 1),
        ([0, 0, 0, 0, 4, 0, 0, 0, 0, 0, 4, 0], [0] * 12, 1),
        ([0, -4, 0, 0, 0, 0, 0, 0, 0, 0, 4, 0], [0, 0, 0, 0, 1, 0] + [0] * 6, 1),
        (list(INITIAL_BOARD), [0, 1] + [0] * 10, 1),
    ],
    ids=[
        "short-board",
        "short-hands",
        "bad-turn",
        "unknown-code",
        "negative-count",
        "unused-slot",
        "hen-in-hand",
        "two-lions",
        "third-lion-in-hand",
        "too-many-chicks",
    ],
)
def test_from_arrays_rejects_malformed_input(board, hands, turn) -> None:
    with pytest.raises(InvalidPositionError):
        Position.from_arrays(board, hands, turn)


def test_captured_lion_is_held_but_never_dropped() -> None:
    board = [0, 2, 0, 0, 0, 0, 0, 0, 0, 0, 4, 0]
    hands = [0, 1, 0, 0, 1, 0] + [0] * 6
    position = Position.from_arrays(board, hands, 1)
    assert position.hands_array() == hands
    assert position.hand_list(Side.FIRST) == [PieceKind.CHICK]

    drops = [move for move in generate_moves(position) if isinstance(move, Drop)]
    assert drops
    assert {drop.kind for drop in drops} == {PieceKind.CHICK}
    assert detect_terminal(Position.from_arrays(board, hands, -1)).over


def test_from_arrays_round_trips_interchange_form() -> None:
    board = [0, -4, 0, 0, 5, 0, -3, 0, 0, 0, 4, 0]
    hands = [0, 1, 0, 0, 0, 0, 0, 0, 1, 0, 0, 0]
    position = Position.from_arrays(board, hands, -1)
    assert position.board_array() == board
    assert position.hands_array() == hands
    assert position.turn is Side.SECOND
    assert position.key().endswith("|-1")


def test_random_playouts_keep_board_consistent() -> None:
    rng = random.Random(20240611)
    for _ in range(30):
        position = Position.initial()
        for _ in range(80):
            if detect_terminal(position).over:
                break
            moves = generate_moves(position)
            if not moves:
                break
            move = rng.choice(moves)
            child = position.apply(move)

            # replaying the same move gives an equal but distinct value
            again = position.apply(move)
            assert again == child
            assert again is not child

            board = child.board_array()
            occupied = sum(mask.bit_count() for side in Side for mask in child.pieces[side])
            assert occupied == NUM_SQUARES - board.count(0)
            assert child.consistency_problems() == []
            assert child.material_counts() == INITIAL_TOTALS
            position = child
