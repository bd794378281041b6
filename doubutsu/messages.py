"""
Pydantic models for the search session boundary.
Field names follow the camelCase wire form; snake_case is accepted as well.
"""

from enum import Enum
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .board import Position


class SearchSource(str, Enum):
    """Which stage produced a finish message"""
    BOOK = "book"
    FORCED_WIN = "forced_win"
    MCTS = "mcts"
    TERMINAL = "terminal"


class StartSearchRequest(BaseModel):
    """Snapshot of a position plus the search budget"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: Literal["START"] = "START"
    board: Tuple[int, ...] = Field(min_length=12, max_length=12)
    hands: Tuple[int, ...] = Field(min_length=12, max_length=12)
    side_to_move: int = Field(alias="sideToMove")
    time_budget_seconds: float = Field(alias="timeBudgetSeconds", ge=0)
    session_id: int = Field(alias="sessionId", ge=0)

    @field_validator("board")
    @classmethod
    def _check_codes(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        for square, code in enumerate(value):
            if not -5 <= code <= 5:
                raise ValueError(f"piece code {code} on square {square} is outside -5..5")
        return value

    @field_validator("hands")
    @classmethod
    def _check_counts(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        for slot, count in enumerate(value):
            if count < 0:
                raise ValueError(f"hand slot {slot} has negative count {count}")
        return value

    @field_validator("side_to_move")
    @classmethod
    def _check_side(cls, value: int) -> int:
        if value not in (1, -1):
            raise ValueError("sideToMove must be +1 or -1")
        return value

    def to_position(self) -> Position:
        """Rebuild the position; raises InvalidPositionError when inconsistent"""
        return Position.from_arrays(self.board, self.hands, self.side_to_move)

    @classmethod
    def from_position(
        cls, position: Position, session_id: int, time_budget_seconds: float
    ) -> "StartSearchRequest":
        return cls(
            board=tuple(position.board_array()),
            hands=tuple(position.hands_array()),
            side_to_move=position.turn.sign,
            time_budget_seconds=time_budget_seconds,
            session_id=session_id,
        )


class ProgressMessage(BaseModel):
    """Simulations completed so far"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: Literal["PROGRESS"] = "PROGRESS"
    session_id: int = Field(alias="sessionId")
    simulations_completed: int = Field(alias="simulationsCompleted")


class FinishMessage(BaseModel):
    """Final answer for one session"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: Literal["FINISH"] = "FINISH"
    session_id: int = Field(alias="sessionId")
    move: Optional[str] = None  # notation such as "b3b2", None means resign
    simulations_completed: int = Field(alias="simulationsCompleted")
    win_rate: float = Field(alias="winRate", ge=0.0, le=1.0)
    side_to_move_at_root: int = Field(alias="sideToMoveAtRoot")
    source: SearchSource = SearchSource.MCTS


class CancelMessage(BaseModel):
    """Cancels whatever session is active"""
    model_config = ConfigDict(frozen=True)

    type: Literal["CANCEL"] = "CANCEL"


class ErrorMessage(BaseModel):
    """A search aborted on an internal defect"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: Literal["ERROR"] = "ERROR"
    session_id: int = Field(alias="sessionId")
    error: Dict[str, Any]
