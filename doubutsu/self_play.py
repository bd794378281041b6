"""Self-play orchestration for engine-versus-engine games."""

from __future__ import annotations

import queue
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .board import Position, Side
from .game import Game
from .messages import ErrorMessage, FinishMessage, ProgressMessage
from .session import OutgoingMessage, SearchSessionController


class SelfPlayManager:
    """Plays one game at a time between two session controllers.

    The same controller may serve both sides. Moves are requested with a
    fixed per-move budget; the game ends on a decided result, a resignation
    (no move) or the ply limit, after which the trace file is written.
    """

    def __init__(
        self,
        controllers: Dict[Side, SearchSessionController],
        engine_names: Optional[Dict[Side, str]] = None,
        *,
        movetime: float = 1.0,
        max_plies: int = 200,
        start_position: Optional[Position] = None,
        trace_directory: Optional[Union[Path, str]] = None,
        logger: Optional[Callable[[str], None]] = None,
    ) -> None:
        if Side.FIRST not in controllers or Side.SECOND not in controllers:
            raise ValueError("SelfPlayManager requires controllers for both sides")

        self._controllers = controllers
        self._engine_names = engine_names or {Side.FIRST: "First", Side.SECOND: "Second"}
        self._movetime = movetime
        self._max_plies = max_plies
        self._start_position = start_position
        self._logger = logger or (lambda *_: None)

        self.game = Game(start_position)
        self._active = False
        self._waiting_for_move = False
        self._current_side: Optional[Side] = None
        self._current_session: Optional[int] = None
        self._session_counter = 0
        self._trace_directory = Path(trace_directory) if trace_directory else Path.cwd() / "self_play_traces"
        self._session_traces: Dict[Side, List[str]] = {Side.FIRST: [], Side.SECOND: []}
        self._session_start_key: Optional[str] = None
        self._session_started_at: Optional[datetime] = None
        self._last_trace_path: Optional[Path] = None
        self._stop_message: Optional[str] = None

    @property
    def active(self) -> bool:
        return self._active

    @property
    def last_trace_path(self) -> Optional[Path]:
        return self._last_trace_path

    @property
    def stop_message(self) -> Optional[str]:
        return self._stop_message

    def current_expected_side(self) -> Optional[Side]:
        if not self._waiting_for_move:
            return None
        return self._current_side

    def start(self) -> bool:
        if self._active:
            return False

        self.game.reset(self._start_position)
        self._active = True
        self._waiting_for_move = False
        self._current_side = None
        self._current_session = None
        self._stop_message = None
        self._session_traces = {Side.FIRST: [], Side.SECOND: []}
        self._session_start_key = self.game.position.key()
        self._session_started_at = datetime.now(timezone.utc)
        self._last_trace_path = None
        self._logger("Self-play running")

        if self.game.result().over:
            self.stop(self._outcome_message())
            return True
        self._request_move(self.game.position.turn)
        return True

    def stop(self, message: Optional[str] = None) -> bool:
        if not self._active and not self._waiting_for_move:
            return False

        if self._waiting_for_move and self._current_side is not None:
            self._controllers[self._current_side].cancel()

        self._active = False
        self._waiting_for_move = False
        self._current_side = None
        self._current_session = None
        self._stop_message = message or "Self-play stopped"
        self._logger(self._stop_message)
        self._export_traces(self._stop_message)
        return True

    def on_engine_message(self, side: Side, message: OutgoingMessage) -> None:
        if message.session_id != self._current_session:
            return
        if isinstance(message, ProgressMessage):
            self._trace(side, f"info sims {message.simulations_completed}")
        elif isinstance(message, FinishMessage):
            self._trace(
                side,
                f"result source={message.source.value} sims={message.simulations_completed} "
                f"winrate={message.win_rate:.3f} move={message.move or '(none)'}",
            )
            self.on_engine_move(side, message.move)
        elif isinstance(message, ErrorMessage):
            self._trace(side, f"error {message.error.get('code')}: {message.error.get('message')}")
            self._waiting_for_move = False
            self.stop(f"Self-play aborted: {self._engine_names[side]} failed")

    def on_engine_move(self, side: Side, move_text: Optional[str]) -> None:
        if not self._active or side != self._current_side:
            return

        self._waiting_for_move = False
        label = self._engine_names.get(side, "Engine")
        if move_text is None:
            self.stop(f"Self-play finished: {label} resigns")
            return

        self.game.play(move_text)
        if self.game.result().over:
            self.stop(self._outcome_message())
            return
        if self.game.ply >= self._max_plies:
            self.stop("Self-play finished: ply limit reached (draw)")
            return
        self._request_move(side.opponent)

    def run_game(self, timeout: Optional[float] = None) -> Optional[str]:
        """Play a whole game on the calling thread and return the stop message."""

        if not self.start():
            return None
        wait = timeout if timeout is not None else self._movetime + 30.0
        while self._active:
            side = self._current_side
            if side is None:
                break
            controller = self._controllers[side]
            if not controller.threaded:
                controller.process_pending()
            try:
                message = controller.outbox.get(timeout=wait)
            except queue.Empty:
                self.stop(f"Self-play stopped: {self._engine_names[side]} timed out")
                break
            self.on_engine_message(side, message)
        return self._stop_message

    def _request_move(self, side: Side) -> None:
        if not self._active:
            return
        self._session_counter += 1
        session_id = self._session_counter
        request = self.game.request(session_id, self._movetime)
        self._current_side = side
        self._current_session = session_id
        self._waiting_for_move = True
        self._controllers[side].start(request)
        self._logger(f"Self-play: {self._engine_names.get(side, 'Engine')} evaluating")

    def _trace(self, side: Side, line: str) -> None:
        self._session_traces.setdefault(side, []).append(line)

    def _outcome_message(self) -> str:
        winner = self.game.result().winner
        if winner is None:
            return "Self-play finished: draw"
        return f"Self-play finished: {self._engine_names.get(winner, winner.name)} wins"

    def _export_traces(self, stop_message: Optional[str]) -> None:
        has_trace = any(self._session_traces[side] for side in self._session_traces)
        if not has_trace and not self.game.ply:
            return
        timestamp = self._session_started_at or datetime.now(timezone.utc)
        filename = timestamp.strftime("self_play_%Y%m%dT%H%M%S_%f.log")
        path = self._trace_directory / filename
        header_lines = [
            f"Self-play trace recorded at {timestamp.isoformat()}",
            f"Initial position: {self._session_start_key or 'unknown'}",
            f"Final position: {self.game.position.key()}",
            f"Moves: {' '.join(str(move) for move in self.game.moves) or '-'}",
        ]
        if stop_message:
            header_lines.append(f"Stop reason: {stop_message}")

        try:
            self._trace_directory.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as trace_file:
                trace_file.write("\n".join(header_lines))
                trace_file.write("\n\n")
                for side in (Side.FIRST, Side.SECOND):
                    label = self._engine_names.get(side, "Engine")
                    trace_file.write(f"[{label}]\n")
                    for line in self._session_traces.get(side, []):
                        trace_file.write(f"  {line}\n")
                    trace_file.write("\n")
        except OSError as exc:
            self._logger(f"could not write trace file {path}: {exc}")
            return

        self._last_trace_path = path
        self._session_traces = {Side.FIRST: [], Side.SECOND: []}
        self._session_started_at = None
        self._session_start_key = None
