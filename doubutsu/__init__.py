"""Public package interface for the Doubutsu engine."""

from .board import BoardMove, Drop, Move, PieceKind, Position, Side, parse_move
from .book import OpeningBook
from .engine import DoubutsuEngine
from .errors import (
    DoubutsuError,
    IllegalMoveError,
    InvalidPositionError,
    InvariantViolationError,
)
from .game import Game
from .mcts import MonteCarloSearch, SearchOutcome, SearchTree, TreeNode
from .movegen import attack_mask, generate_moves, is_square_attacked
from .rules import GameResult, detect_terminal
from .session import SearchSessionController
from .solver import ForcedWinSolver

__all__ = [
    "BoardMove",
    "DoubutsuEngine",
    "DoubutsuError",
    "Drop",
    "ForcedWinSolver",
    "Game",
    "GameResult",
    "IllegalMoveError",
    "InvalidPositionError",
    "InvariantViolationError",
    "MonteCarloSearch",
    "Move",
    "OpeningBook",
    "PieceKind",
    "Position",
    "SearchOutcome",
    "SearchSessionController",
    "SearchTree",
    "Side",
    "TreeNode",
    "attack_mask",
    "detect_terminal",
    "generate_moves",
    "is_square_attacked",
    "parse_move",
]
