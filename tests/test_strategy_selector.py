import random

import pytest

from doubutsu.board import BoardMove, Position
from doubutsu.book import OpeningBook
from doubutsu.config import ParamsRegistry, SearchParams
from doubutsu.errors import InvariantViolationError
from doubutsu.messages import SearchSource
from doubutsu.strategies import (
    BOOK_WIN_RATE,
    ForcedWinStrategy,
    MonteCarloStrategy,
    MoveStrategy,
    OpeningBookStrategy,
    SearchPhase,
    StrategyContext,
    StrategyResult,
    StrategySelector,
)


def make_context(legal_moves: int = 4, **kwargs) -> StrategyContext:
    kwargs.setdefault("budget_seconds", 0.0)
    return StrategyContext(legal_moves_count=legal_moves, **kwargs)


class StaticStrategy(MoveStrategy):
    def __init__(self, name: str, priority: int, score: float, confidence: float, definitive: bool = False):
        super().__init__(name=name, priority=priority, confidence=confidence)
        self._score = score
        self._definitive = definitive

    def is_applicable(self, context: StrategyContext) -> bool:  # type: ignore[override]
        return True

    def generate_move(self, position: Position, context: StrategyContext) -> StrategyResult:  # type: ignore[override]
        return StrategyResult(
            move=BoardMove(7, 4),
            strategy_name=self.name,
            score=self._score,
            confidence=self.confidence,
            definitive=self._definitive,
            metadata={"source": self.name},
        )


class RaisingStrategy(MoveStrategy):
    def __init__(self, error: Exception) -> None:
        super().__init__(name="boom", priority=100)
        self._error = error

    def is_applicable(self, context: StrategyContext) -> bool:  # type: ignore[override]
        return True

    def generate_move(self, position: Position, context: StrategyContext):  # type: ignore[override]
        raise self._error


def test_selector_prefers_higher_priority() -> None:
    selector = StrategySelector()
    selector.register(StaticStrategy("low", priority=5, score=0.5, confidence=0.4))
    selector.register(StaticStrategy("high", priority=10, score=0.1, confidence=0.9))

    result = selector.select(Position.initial(), make_context())
    assert result is not None
    assert result.strategy_name == "high"
    assert [s.name for s in selector.strategies()] == ["high", "low"]


def test_selector_breaks_ties_by_score_then_confidence() -> None:
    selector = StrategySelector()
    selector.register(StaticStrategy("primary", priority=5, score=0.5, confidence=0.3))
    selector.register(StaticStrategy("better_score", priority=5, score=0.8, confidence=0.1))
    selector.register(StaticStrategy("higher_confidence", priority=5, score=0.8, confidence=0.9))

    result = selector.select(Position.initial(), make_context())
    assert result is not None
    assert result.strategy_name == "higher_confidence"


def test_selector_returns_definitive_result_immediately() -> None:
    selector = StrategySelector()
    selector.register(StaticStrategy("fallback", priority=1, score=0.0, confidence=0.0))
    selector.register(StaticStrategy("definitive", priority=0, score=0.0, confidence=0.0, definitive=True))

    result = selector.select(Position.initial(), make_context())
    assert result is not None
    assert result.strategy_name == "definitive"
    assert result.definitive is True


def test_selector_ignores_ordinary_exceptions() -> None:
    messages = []
    selector = StrategySelector(logger=messages.append)
    selector.register(RaisingStrategy(RuntimeError("strategy failure")))
    selector.register(StaticStrategy("safe", priority=1, score=0.0, confidence=0.0))

    result = selector.select(Position.initial(), make_context())
    assert result is not None
    assert result.strategy_name == "safe"
    assert any("strategy failure" in message for message in messages)


def test_selector_propagates_invariant_violations() -> None:
    selector = StrategySelector()
    selector.register(RaisingStrategy(InvariantViolationError("corrupt board")))
    selector.register(StaticStrategy("safe", priority=1, score=0.0, confidence=0.0))

    with pytest.raises(InvariantViolationError):
        selector.select(Position.initial(), make_context())


def test_selector_stops_when_session_is_superseded() -> None:
    selector = StrategySelector(should_continue=lambda: False)
    selector.register(StaticStrategy("any", priority=1, score=0.0, confidence=0.0))
    assert selector.select(Position.initial(), make_context()) is None


def test_selector_reports_each_phase() -> None:
    phases = []
    selector = StrategySelector()
    selector.register(OpeningBookStrategy(OpeningBook.build([])))
    selector.register(ForcedWinStrategy(depth=1))
    selector.register(StaticStrategy("fallback", priority=1, score=0.0, confidence=0.0))

    result = selector.select(Position.initial(), make_context(on_phase=phases.append))
    assert result is not None
    # an empty book is not applicable, so its phase never starts
    assert phases == [SearchPhase.MATE_SEARCH, SearchPhase.ITERATING]


def test_book_strategy_hit_is_definitive() -> None:
    strategy = OpeningBookStrategy(OpeningBook.build())
    result = strategy.generate_move(Position.initial(), make_context())
    assert result is not None
    assert result.definitive is True
    assert result.score == BOOK_WIN_RATE
    assert result.metadata["source"] is SearchSource.BOOK

    strategy.apply_config(SearchParams(book_enabled=False))
    assert strategy.is_applicable(make_context()) is False


def test_forced_win_strategy_follows_configured_depth() -> None:
    strategy = ForcedWinStrategy()
    strategy.apply_config(ParamsRegistry.resolve("fastblitz"))
    assert strategy.depth == 1
    strategy.apply_config(SearchParams(mate_depth=0))
    assert strategy.is_applicable(make_context()) is False

    position = Position.from_arrays([0, -4, 0, 0, 2, 0, 0, 0, 0, 0, 4, 0], [0] * 12, 1)
    strategy.apply_config(SearchParams(mate_depth=1))
    result = strategy.generate_move(position, make_context())
    assert result is not None
    assert result.move == BoardMove(4, 1)
    assert result.metadata["source"] is SearchSource.FORCED_WIN


def test_monte_carlo_strategy_requires_search_params() -> None:
    strategy = MonteCarloStrategy(rng=random.Random(0))
    with pytest.raises(RuntimeError):
        strategy.generate_move(Position.initial(), make_context())
    with pytest.raises(TypeError):
        strategy.apply_config({"batch_size": 10})

    strategy.apply_config(SearchParams(batch_size=10, rollout_limit=30))
    result = strategy.generate_move(Position.initial(), make_context())
    assert result is not None
    assert result.definitive is False
    assert result.metadata["source"] is SearchSource.MCTS
    assert result.metadata["simulations"] == 10


def test_monte_carlo_strategy_searches_with_the_remaining_budget() -> None:
    strategy = MonteCarloStrategy(rng=random.Random(0), clock=lambda: 10.0)
    strategy.apply_config(SearchParams(batch_size=10, rollout_limit=30))
    real_search = strategy._search.search
    budgets = []

    def record_budget(position, budget_seconds, **kwargs):
        budgets.append(budget_seconds)
        return real_search(position, 0.0, **kwargs)

    strategy._search.search = record_budget
    strategy.generate_move(Position.initial(), make_context(started_at=8.0, budget_seconds=3.0))
    strategy.generate_move(Position.initial(), make_context(started_at=5.0, budget_seconds=3.0))
    strategy.generate_move(Position.initial(), make_context())
    assert budgets == [pytest.approx(1.0), 0.0, 0.0]
