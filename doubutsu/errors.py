"""Exception hierarchy for the Doubutsu engine.

Every engine error derives from :class:`DoubutsuError` so callers can catch
the whole family at once. Boundary rejections also subclass ``ValueError``
and internal defects subclass ``RuntimeError`` so existing ``except`` clauses
keep working.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

__all__ = [
    "DoubutsuError",
    "IllegalMoveError",
    "InvalidPositionError",
    "InvariantViolationError",
]


class DoubutsuError(Exception):
    """Base exception for all engine errors.

    Attributes:
        code: Machine-readable error code
        message: Human-readable description
        context: Extra key/value details for debugging
    """

    code: str = "DOUBUTSU_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
        }


class InvalidPositionError(DoubutsuError, ValueError):
    """Malformed position handed in at the search boundary."""

    code: str = "INVALID_POSITION"


class IllegalMoveError(DoubutsuError, ValueError):
    """A caller asked to play a move that is not legal in the position."""

    code: str = "ILLEGAL_MOVE"


class InvariantViolationError(DoubutsuError, RuntimeError):
    """Board state that normal play can never produce.

    Raised when applying a move would overlap pieces or draw from an empty
    hand. Any such state points at a move generation defect, so the search
    that hit it is aborted rather than allowed to continue.
    """

    code: str = "INVARIANT_VIOLATION"
