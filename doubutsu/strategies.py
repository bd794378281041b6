"""Strategy stack: book, forced-win solver and MCTS behind one selector."""

from __future__ import annotations

import random
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from .board import Move, Position
from .book import OpeningBook
from .config import SearchParams
from .errors import InvariantViolationError
from .mcts import MonteCarloSearch
from .messages import SearchSource
from .solver import ForcedWinSolver

BOOK_WIN_RATE = 0.55
FORCED_WIN_RATE = 1.0


class SearchPhase(Enum):
    IDLE = "idle"
    BOOK_LOOKUP = "book_lookup"
    MATE_SEARCH = "mate_search"
    ITERATING = "iterating"
    FINISHED = "finished"


@dataclass
class StrategyContext:
    legal_moves_count: int
    budget_seconds: float
    session_id: int = 0
    started_at: Optional[float] = None
    checkpoint: Optional[Callable[[int], bool]] = None
    on_progress: Optional[Callable[[int], None]] = None
    on_phase: Optional[Callable[[SearchPhase], None]] = None


@dataclass
class StrategyResult:
    move: Optional[Move]
    strategy_name: str
    score: Optional[float] = None
    confidence: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    definitive: bool = False


class MoveStrategy(ABC):
    phase: SearchPhase = SearchPhase.ITERATING

    def __init__(self, *, name: Optional[str] = None, priority: int = 0, confidence: Optional[float] = None):
        self.name = name or self.__class__.__name__
        self.priority = priority
        self.confidence = confidence

    @abstractmethod
    def is_applicable(self, context: StrategyContext) -> bool:
        ...

    @abstractmethod
    def generate_move(self, position: Position, context: StrategyContext) -> Optional[StrategyResult]:
        ...

    def apply_config(self, config: Any) -> None:
        pass


class StrategySelector:
    def __init__(
        self,
        *,
        logger: Optional[Callable[[str], None]] = None,
        should_continue: Optional[Callable[[], bool]] = None,
    ):
        self._strategies: List[MoveStrategy] = []
        self._logger = logger or (lambda *_: None)
        self._should_continue = should_continue or (lambda: True)

    def register(self, strategy: MoveStrategy) -> None:
        self._strategies.append(strategy)
        self._strategies.sort(key=lambda s: s.priority, reverse=True)
        self._logger(f"strategy registered: {strategy.name} (priority={strategy.priority})")

    def strategies(self) -> Tuple[MoveStrategy, ...]:
        return tuple(self._strategies)

    def apply_config(self, config: Any) -> None:
        for strategy in self._strategies:
            strategy.apply_config(config)

    def select(self, position: Position, context: StrategyContext) -> Optional[StrategyResult]:
        best_result: Optional[StrategyResult] = None
        best_key = (-float("inf"), -float("inf"), -float("inf"))

        for strategy in self._strategies:
            if not self._should_continue():
                self._logger("strategy selection interrupted")
                return None
            if not strategy.is_applicable(context):
                continue
            if context.on_phase is not None:
                context.on_phase(strategy.phase)
            try:
                result = strategy.generate_move(position, context)
            except InvariantViolationError:
                raise
            except Exception as exc:
                self._logger(f"strategy {strategy.name} error: {exc}")
                continue
            if not result or result.move is None:
                continue
            if result.definitive:
                return result

            score = float(result.score) if result.score is not None else 0.0
            confidence = float(result.confidence) if result.confidence is not None else 0.0
            key = (float(strategy.priority), score, confidence)
            if key > best_key:
                best_key = key
                best_result = result

        if best_result is None:
            self._logger("no strategies produced a move suggestion")
        return best_result


class OpeningBookStrategy(MoveStrategy):
    phase = SearchPhase.BOOK_LOOKUP

    def __init__(
        self,
        book: OpeningBook,
        *,
        logger: Optional[Callable[[str], None]] = None,
        **kwargs,
    ) -> None:
        super().__init__(priority=100, confidence=1.0, **kwargs)
        self.book = book
        self.enabled = True
        self._logger = logger or (lambda *_: None)

    def apply_config(self, config: SearchParams) -> None:
        self.enabled = config.book_enabled

    def is_applicable(self, context: StrategyContext) -> bool:
        return self.enabled and len(self.book) > 0 and context.legal_moves_count > 0

    def generate_move(self, position: Position, context: StrategyContext) -> Optional[StrategyResult]:
        move = self.book.lookup(position)
        if move is None:
            return None
        self._logger(f"book hit: {move}")
        return StrategyResult(
            move=move,
            strategy_name=self.name,
            score=BOOK_WIN_RATE,
            confidence=self.confidence,
            metadata={"source": SearchSource.BOOK},
            definitive=True,
        )


class ForcedWinStrategy(MoveStrategy):
    phase = SearchPhase.MATE_SEARCH

    def __init__(
        self,
        *,
        depth: int = 3,
        logger: Optional[Callable[[str], None]] = None,
        **kwargs,
    ) -> None:
        super().__init__(priority=90, confidence=1.0, **kwargs)
        self.depth = depth
        self._logger = logger or (lambda *_: None)
        self._solver = ForcedWinSolver(logger=self._logger)

    def apply_config(self, config: SearchParams) -> None:
        self.depth = config.mate_depth

    def is_applicable(self, context: StrategyContext) -> bool:
        return self.depth > 0 and context.legal_moves_count > 0

    def generate_move(self, position: Position, context: StrategyContext) -> Optional[StrategyResult]:
        move = self._solver.solve(position, self.depth)
        if move is None:
            return None
        return StrategyResult(
            move=move,
            strategy_name=self.name,
            score=FORCED_WIN_RATE,
            confidence=self.confidence,
            metadata={
                "source": SearchSource.FORCED_WIN,
                "depth": self.depth,
                "nodes": self._solver.nodes,
            },
            definitive=True,
        )


class MonteCarloStrategy(MoveStrategy):
    phase = SearchPhase.ITERATING

    def __init__(
        self,
        *,
        logger: Optional[Callable[[str], None]] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.perf_counter,
        **kwargs,
    ) -> None:
        super().__init__(priority=70, confidence=0.85, **kwargs)
        self._logger = logger or (lambda *_: None)
        self._rng = rng or random.Random()
        self._clock = clock
        self._search: Optional[MonteCarloSearch] = None

    def apply_config(self, config: SearchParams) -> None:
        if not isinstance(config, SearchParams):
            raise TypeError("MonteCarloStrategy.apply_config expects SearchParams")
        self._search = MonteCarloSearch(config, rng=self._rng, clock=self._clock, logger=self._logger)

    def remaining_budget(self, context: StrategyContext) -> float:
        """Budget left after the earlier strategies, measured from ``started_at``."""
        if context.started_at is None:
            return context.budget_seconds
        elapsed = self._clock() - context.started_at
        return max(0.0, context.budget_seconds - elapsed)

    def is_applicable(self, context: StrategyContext) -> bool:
        return context.legal_moves_count > 0

    def generate_move(self, position: Position, context: StrategyContext) -> Optional[StrategyResult]:
        if self._search is None:
            raise RuntimeError("MonteCarloStrategy not configured")
        budget = self.remaining_budget(context)
        self._logger(f"MCTS: budget={budget:.2f}s moves={context.legal_moves_count}")
        outcome = self._search.search(
            position,
            budget,
            checkpoint=context.checkpoint,
            on_progress=context.on_progress,
        )
        if outcome.cancelled or outcome.move is None:
            return None
        metadata = dict(outcome.metadata)
        metadata.update(
            source=SearchSource.MCTS,
            simulations=outcome.simulations,
            time=outcome.time_spent,
        )
        return StrategyResult(
            move=outcome.move,
            strategy_name=self.name,
            score=outcome.win_rate,
            confidence=self.confidence,
            metadata=metadata,
        )
