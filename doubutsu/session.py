"""Search session controller.

The controller owns an opening book, the strategy stack and a worker thread.
Callers talk to it only through :meth:`SearchSessionController.start` and
:meth:`SearchSessionController.cancel`; the worker answers on ``outbox`` (and
the optional ``on_message`` callback) with progress, finish or error messages.

Every message is checked against the latest session the worker has observed
just before it is emitted. The worker drains its inbox at each yield point, so
a cancel or a newer start posted at any moment suppresses all later output of
the superseded session.
"""

from __future__ import annotations

import queue
import random
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, List, Mapping, Optional, Union

from pydantic import ValidationError

from .board import Position
from .book import OpeningBook
from .config import DEFAULT_PRESET, ParamsRegistry, SearchParams
from .errors import DoubutsuError, InvalidPositionError
from .messages import (
    CancelMessage,
    ErrorMessage,
    FinishMessage,
    ProgressMessage,
    SearchSource,
    StartSearchRequest,
)
from .movegen import generate_moves
from .rules import detect_terminal
from .strategies import (
    ForcedWinStrategy,
    MonteCarloStrategy,
    OpeningBookStrategy,
    SearchPhase,
    StrategyContext,
    StrategySelector,
)

BOOK_SIMULATIONS = -1
FORCED_WIN_SIMULATIONS = -2
TERMINAL_SIMULATIONS = 0
NO_SESSION = -1

OutgoingMessage = Union[ProgressMessage, FinishMessage, ErrorMessage]

_SHUTDOWN = object()


@dataclass(frozen=True)
class _StartJob:
    request: StartSearchRequest
    position: Position


class SearchSessionController:
    def __init__(
        self,
        *,
        preset: str = DEFAULT_PRESET,
        params: Optional[SearchParams] = None,
        book: Optional[OpeningBook] = None,
        on_message: Optional[Callable[[OutgoingMessage], None]] = None,
        logger: Optional[Callable[[str], None]] = None,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.perf_counter,
        threaded: bool = True,
    ) -> None:
        self._logger = logger or (lambda *_: None)
        self._clock = clock
        self.params = params.clamp() if params is not None else ParamsRegistry.resolve(preset)
        self.book = book if book is not None else OpeningBook.build(logger=self._logger)
        self._on_message = on_message

        self.selector = StrategySelector(logger=self._logger, should_continue=self._active_is_current)
        self.selector.register(OpeningBookStrategy(self.book, logger=self._logger))
        self.selector.register(ForcedWinStrategy(logger=self._logger))
        self.selector.register(MonteCarloStrategy(logger=self._logger, rng=rng, clock=clock))
        self.selector.apply_config(self.params)

        self.inbox: "queue.Queue[Any]" = queue.Queue()
        self.outbox: "queue.Queue[OutgoingMessage]" = queue.Queue()

        # Worker-side state; only the worker (or process_pending) touches it.
        self._latest_session = NO_SESSION
        self._active_session = NO_SESSION
        self._pending: Optional[_StartJob] = None
        self._stopping = False

        self._phase = SearchPhase.IDLE
        self._threaded = threaded
        self._worker: Optional[threading.Thread] = None
        if threaded:
            self._worker = threading.Thread(target=self._run, name="doubutsu-search", daemon=True)
            self._worker.start()

    # ------------------------------------------------------------------
    # Caller side
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SearchPhase:
        return self._phase

    @property
    def threaded(self) -> bool:
        return self._threaded

    def configure(self, params: SearchParams) -> None:
        """Swap search parameters; takes effect from the next started session."""

        self.params = params.clamp()
        self.selector.apply_config(self.params)

    def start(self, request: Union[StartSearchRequest, Mapping[str, Any]]) -> StartSearchRequest:
        """Validate ``request`` and queue it, superseding any running session.

        Raises :class:`InvalidPositionError` before anything is queued when the
        request is malformed.
        """

        if not isinstance(request, StartSearchRequest):
            try:
                request = StartSearchRequest.model_validate(request)
            except ValidationError as exc:
                raise InvalidPositionError(
                    "malformed start request", context={"errors": exc.error_count()}
                ) from exc
        position = request.to_position()
        self.inbox.put(_StartJob(request, position))
        return request

    def cancel(self) -> None:
        self.inbox.put(CancelMessage())

    def shutdown(self, timeout: float = 2.0) -> None:
        self.inbox.put(_SHUTDOWN)
        if self._worker is not None:
            self._worker.join(timeout=timeout)
            self._worker = None

    def process_pending(self) -> None:
        """Run queued work on the calling thread (``threaded=False`` only)."""

        if self._threaded:
            raise RuntimeError("process_pending is only available when threaded=False")
        self._run_pending()

    def drain_outbox(self) -> List[OutgoingMessage]:
        messages: List[OutgoingMessage] = []
        while True:
            try:
                messages.append(self.outbox.get_nowait())
            except queue.Empty:
                return messages

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def _run(self) -> None:
        while not self._stopping:
            self._observe(self.inbox.get())
            self._run_pending()

    def _run_pending(self) -> None:
        self._drain_inbox()
        while self._pending is not None and not self._stopping:
            job = self._pending
            self._pending = None
            self._execute(job)
            self._drain_inbox()

    def _observe(self, item: Any) -> None:
        if item is _SHUTDOWN:
            self._stopping = True
            self._latest_session = NO_SESSION
            self._pending = None
        elif isinstance(item, CancelMessage):
            self._latest_session = NO_SESSION
            self._pending = None
        elif isinstance(item, _StartJob):
            self._latest_session = item.request.session_id
            self._pending = item

    def _drain_inbox(self) -> None:
        while True:
            try:
                item = self.inbox.get_nowait()
            except queue.Empty:
                return
            self._observe(item)

    def _active_is_current(self) -> bool:
        self._drain_inbox()
        return not self._stopping and self._latest_session == self._active_session

    def _set_phase(self, phase: SearchPhase) -> None:
        self._phase = phase
        self._logger(f"phase: {phase.value}")

    def _emit(self, message: OutgoingMessage) -> bool:
        self._drain_inbox()
        if self._stopping or message.session_id != self._latest_session:
            self._logger(f"suppressed {message.type.lower()} for stale session {message.session_id}")
            return False
        self.outbox.put(message)
        if self._on_message is not None:
            self._on_message(message)
        return True

    def _execute(self, job: _StartJob) -> None:
        session_id = job.request.session_id
        self._active_session = session_id
        self._set_phase(SearchPhase.BOOK_LOOKUP)
        try:
            message = self._search(job)
        except DoubutsuError as exc:
            self._logger(f"search aborted: {exc}")
            message = ErrorMessage(session_id=session_id, error=exc.to_dict())
        except Exception as exc:
            self._logger(f"search failed: {exc}")
            message = ErrorMessage(
                session_id=session_id,
                error={"code": "INTERNAL_ERROR", "message": str(exc), "context": {}},
            )
        self._set_phase(SearchPhase.FINISHED)
        if message is not None:
            self._emit(message)
        self._active_session = NO_SESSION

    def _search(self, job: _StartJob) -> Optional[FinishMessage]:
        request, position = job.request, job.position
        started_at = self._clock()
        session_id = request.session_id
        root_sign = position.turn.sign

        terminal = detect_terminal(position)
        moves = [] if terminal.over else generate_moves(position)
        if not moves:
            return FinishMessage(
                session_id=session_id,
                move=None,
                simulations_completed=TERMINAL_SIMULATIONS,
                win_rate=terminal.reward_for(position.turn) if terminal.over else 0.0,
                side_to_move_at_root=root_sign,
                source=SearchSource.TERMINAL,
            )

        def checkpoint(_: int) -> bool:
            return self._active_is_current()

        def on_progress(simulations: int) -> None:
            self._emit(ProgressMessage(session_id=session_id, simulations_completed=simulations))

        context = StrategyContext(
            legal_moves_count=len(moves),
            budget_seconds=request.time_budget_seconds,
            session_id=session_id,
            started_at=started_at,
            checkpoint=checkpoint,
            on_progress=on_progress,
            on_phase=self._set_phase,
        )
        result = self.selector.select(position, context)
        if not self._active_is_current():
            return None
        if result is None or result.move is None:
            self._logger("no strategy produced a move")
            return FinishMessage(
                session_id=session_id,
                move=None,
                simulations_completed=TERMINAL_SIMULATIONS,
                win_rate=0.0,
                side_to_move_at_root=root_sign,
                source=SearchSource.MCTS,
            )

        source = result.metadata.get("source", SearchSource.MCTS)
        if source is SearchSource.BOOK:
            simulations = BOOK_SIMULATIONS
        elif source is SearchSource.FORCED_WIN:
            simulations = FORCED_WIN_SIMULATIONS
        else:
            simulations = int(result.metadata.get("simulations", 0))
        win_rate = result.score if result.score is not None else 0.5
        return FinishMessage(
            session_id=session_id,
            move=str(result.move),
            simulations_completed=simulations,
            win_rate=min(1.0, max(0.0, win_rate)),
            side_to_move_at_root=root_sign,
            source=source,
        )
