"""Monte-Carlo tree search with UCB1 selection and a weighted rollout."""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .board import (
    PIECE_VALUES,
    PROMOTION_MASKS,
    BoardMove,
    Move,
    PieceKind,
    Position,
    Side,
)
from .config import SearchParams
from .movegen import attack_mask, generate_moves
from .rules import GameResult, detect_terminal

PROMOTION_BONUS = 5.0
TRY_BONUS = 100.0


@dataclass(slots=True)
class SearchOutcome:
    move: Optional[Move]
    win_rate: float
    simulations: int
    time_spent: float
    root_side: Side
    cancelled: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


class TreeNode:
    """One arena slot. ``parent`` and ``children`` hold arena indices."""

    __slots__ = (
        "position",
        "parent",
        "move",
        "children",
        "reward",
        "visits",
        "untried_moves",
        "terminal",
    )

    def __init__(
        self,
        position: Position,
        parent: Optional[int] = None,
        move: Optional[Move] = None,
    ) -> None:
        self.position = position
        self.parent = parent
        self.move = move
        self.children: List[int] = []
        self.reward = 0.0
        self.visits = 0
        self.terminal: GameResult = detect_terminal(position)
        self.untried_moves: List[Move] = [] if self.terminal.over else generate_moves(position)

    @property
    def mean_reward(self) -> float:
        return self.reward / self.visits if self.visits else 0.5

    def ucb1(self, parent_visits: int, exploration: float) -> float:
        if self.visits == 0:
            return math.inf
        return self.reward / self.visits + exploration * math.sqrt(
            math.log(parent_visits) / self.visits
        )


class SearchTree:
    ROOT = 0

    def __init__(self, root: Position) -> None:
        self.nodes: List[TreeNode] = [TreeNode(root)]

    def __getitem__(self, index: int) -> TreeNode:
        return self.nodes[index]

    def __len__(self) -> int:
        return len(self.nodes)

    def add_child(self, parent: int, move: Move) -> int:
        position = self.nodes[parent].position.apply(move)
        position.validate()
        index = len(self.nodes)
        self.nodes.append(TreeNode(position, parent, move))
        self.nodes[parent].children.append(index)
        return index

    def select_child(self, index: int, exploration: float) -> int:
        node = self.nodes[index]
        best = node.children[0]
        best_score = -math.inf
        for child in node.children:
            score = self.nodes[child].ucb1(node.visits, exploration)
            if score > best_score:
                best_score = score
                best = child
        return best

    def most_visited_child(self, index: int = ROOT) -> Optional[int]:
        best: Optional[int] = None
        best_visits = -1
        for child in self.nodes[index].children:
            visits = self.nodes[child].visits
            if visits > best_visits:
                best_visits = visits
                best = child
        return best


class MonteCarloSearch:
    def __init__(
        self,
        params: Optional[SearchParams] = None,
        *,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.perf_counter,
        logger: Optional[Callable[[str], None]] = None,
    ) -> None:
        params = (params or SearchParams()).clamp()
        self.exploration = params.exploration
        self.rollout_limit = params.rollout_limit
        self.batch_size = params.batch_size
        self.progress_interval = params.progress_interval
        self._rng = rng or random.Random()
        self._clock = clock
        self._logger = logger or (lambda *_: None)

    def search(
        self,
        root: Position,
        budget_seconds: float,
        checkpoint: Optional[Callable[[int], bool]] = None,
        on_progress: Optional[Callable[[int], None]] = None,
    ) -> SearchOutcome:
        """Search from ``root`` until the budget runs out.

        ``checkpoint`` is called with the simulation count after every batch;
        returning ``False`` abandons the search and the outcome is flagged as
        cancelled. ``on_progress`` fires each time the count passes a multiple
        of ``progress_interval``.
        """

        start = self._clock()
        deadline = start + max(0.0, budget_seconds)
        tree = SearchTree(root)
        root_node = tree[SearchTree.ROOT]
        if not root_node.untried_moves:
            result = root_node.terminal
            return SearchOutcome(
                move=None,
                win_rate=result.reward_for(root.turn) if result.over else 0.0,
                simulations=0,
                time_spent=self._clock() - start,
                root_side=root.turn,
                metadata={"terminal": result.over},
            )

        simulations = 0
        next_progress = self.progress_interval
        while True:
            for _ in range(self.batch_size):
                self._iterate(tree)
            simulations += self.batch_size

            if checkpoint is not None and not checkpoint(simulations):
                self._logger(f"mcts: cancelled after {simulations} simulations")
                return SearchOutcome(
                    move=None,
                    win_rate=0.5,
                    simulations=simulations,
                    time_spent=self._clock() - start,
                    root_side=root.turn,
                    cancelled=True,
                )
            if simulations >= next_progress:
                if on_progress is not None:
                    on_progress(simulations)
                while next_progress <= simulations:
                    next_progress += self.progress_interval
            if self._clock() >= deadline:
                break

        return self._finalize(tree, simulations, self._clock() - start)

    def _finalize(self, tree: SearchTree, simulations: int, elapsed: float) -> SearchOutcome:
        root = tree[SearchTree.ROOT]
        best = tree.most_visited_child()
        if best is None:
            return SearchOutcome(None, 0.0, simulations, elapsed, root.position.turn)

        child = tree[best]
        ranked = sorted(root.children, key=lambda i: tree[i].visits, reverse=True)
        summary = [
            f"{tree[i].move}:{tree[i].visits}/{tree[i].mean_reward:.3f}" for i in ranked[:5]
        ]
        self._logger(
            f"mcts: sims={simulations} nodes={len(tree)} time={elapsed:.2f}s "
            f"best={child.move} visits={child.visits} rate={child.mean_reward:.3f}"
        )
        return SearchOutcome(
            move=child.move,
            win_rate=min(1.0, max(0.0, child.mean_reward)),
            simulations=simulations,
            time_spent=elapsed,
            root_side=root.position.turn,
            metadata={"nodes": len(tree), "children": summary},
        )

    def _iterate(self, tree: SearchTree) -> None:
        index = SearchTree.ROOT
        node = tree[index]
        while not node.untried_moves and node.children:
            index = tree.select_child(index, self.exploration)
            node = tree[index]

        if node.untried_moves and not node.terminal.over:
            pick = self._rng.randrange(len(node.untried_moves))
            move = node.untried_moves.pop(pick)
            index = tree.add_child(index, move)
            node = tree[index]

        winner = self.rollout(node.position)
        self._backpropagate(tree, index, winner)

    def _backpropagate(self, tree: SearchTree, index: Optional[int], winner: Optional[Side]) -> None:
        while index is not None:
            node = tree[index]
            node.visits += 1
            if node.parent is not None:
                mover = tree[node.parent].position.turn
                if winner is None:
                    node.reward += 0.5
                elif winner == mover:
                    node.reward += 1.0
            index = node.parent

    def rollout(self, position: Position) -> Optional[Side]:
        """Play out ``position`` and return the winner, ``None`` for a draw."""

        current = position
        for _ in range(self.rollout_limit):
            result = detect_terminal(current)
            if result.over:
                return result.winner
            moves = generate_moves(current)
            if not moves:
                return None
            current = current.apply(self._pick_rollout_move(current, moves))
        result = detect_terminal(current)
        return result.winner if result.over else None

    def _pick_rollout_move(self, position: Position, moves: List[Move]) -> Move:
        me = position.turn
        theirs = position.pieces[me.opponent]
        lion = position.pieces[me][PieceKind.LION]
        try_row = PROMOTION_MASKS[me]
        threatened: Optional[int] = None

        weights = []
        for move in moves:
            weight = 1.0
            if isinstance(move, BoardMove):
                bit = 1 << move.dst
                for kind in PieceKind:
                    if theirs[kind] & bit:
                        weight += PIECE_VALUES[kind] / 10.0
                        break
                if move.promote:
                    weight += PROMOTION_BONUS
                if lion >> move.src & 1 and bit & try_row:
                    if threatened is None:
                        threatened = attack_mask(position, me.opponent)
                    if not threatened & bit:
                        weight += TRY_BONUS
            weights.append(weight)
        return self._rng.choices(moves, weights=weights, k=1)[0]
