import pytest

from doubutsu.board import BoardMove, Position, Side
from doubutsu.errors import IllegalMoveError
from doubutsu.game import Game


def test_play_accepts_notation_and_moves() -> None:
    game = Game()
    game.play("b3b2")
    game.play(BoardMove(0, 3))
    assert game.ply == 2
    assert [str(move) for move in game.moves] == ["b3b2", "a1a2"]
    assert game.position.turn is Side.FIRST


def test_play_rejects_illegal_and_malformed_moves() -> None:
    game = Game()
    with pytest.raises(IllegalMoveError):
        game.play("a1a2")
    with pytest.raises(IllegalMoveError):
        game.play("zz")
    assert game.ply == 0


def test_finished_game_has_no_legal_moves() -> None:
    board = [0, -4, 0, 0, 2, 0, 0, 0, 0, 0, 4, 0]
    game = Game(Position.from_arrays(board, [0] * 12, 1))
    game.play("b2b1")
    assert game.result().winner is Side.FIRST
    assert game.legal_moves() == []
    with pytest.raises(IllegalMoveError):
        game.play("b4b3")


def test_undo_and_reset() -> None:
    game = Game()
    assert game.undo() == 0
    game.play("b3b2")
    assert game.undo() == 1
    assert game.position == Position.initial()

    game.play("b3b2")
    game.play("a1a2")
    game.play("c4c3")
    assert game.undo() == 2
    assert game.ply == 1

    game.reset()
    assert game.ply == 0
    assert game.position == Position.initial()


def test_request_snapshots_the_current_position() -> None:
    game = Game()
    game.play("b3b2")
    request = game.request(12, 0.25)
    assert request.session_id == 12
    assert request.side_to_move == -1
    assert request.time_budget_seconds == 0.25
    assert request.to_position() == game.position
