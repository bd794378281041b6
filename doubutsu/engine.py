"""Line-oriented protocol front-end for the Doubutsu engine.

Commands follow UCI, adapted to a 3x4 board with hands:

``position startpos [moves ...]``
``position board <12 codes> hands <12 counts> turn <1|-1> [moves ...]``
``go [movetime <ms>]``

Searches run on the session controller's worker thread. ``stop``, ``undo``
and ``ucinewgame`` cancel the running session and no ``bestmove`` follows.
"""

from __future__ import annotations

import random
import sys
import threading
from typing import Dict, List, Optional

from .board import Position
from .config import DEFAULT_PRESET, ParamsRegistry, SearchLimits
from .errors import InvalidPositionError
from .game import Game
from .messages import ErrorMessage, FinishMessage, ProgressMessage
from .session import OutgoingMessage, SearchSessionController
from .utils import ensure_line_buffered_stdout, format_hands


class DoubutsuEngine:
    def __init__(
        self,
        *,
        preset: str = DEFAULT_PRESET,
        debug: bool = False,
        threaded: bool = True,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.engine_name = "Doubutsu"
        self.engine_author = "Doubutsu developers"
        self.game = Game()
        self.debug = debug
        self.running = True
        self.state_lock = threading.Lock()

        self.preset_name = preset
        self.params = ParamsRegistry.resolve(preset)
        self.limits = SearchLimits.from_params(self.params)
        self._session_counter = 0
        self._active_session: Optional[int] = None

        self.controller = SearchSessionController(
            params=self.params,
            on_message=self._on_message,
            logger=self._log_debug,
            rng=rng,
            threaded=threaded,
        )

        self.dispatch_table = {
            "quit": self.handle_quit,
            "debug": self.handle_debug,
            "isready": self.handle_isready,
            "position": self.handle_position,
            "boardpos": self.handle_boardpos,
            "go": self.handle_go,
            "stop": self.handle_stop,
            "undo": self.handle_undo,
            "ucinewgame": self.handle_ucinewgame,
            "uci": self.handle_uci,
            "setoption": self.handle_setoption,
        }

    @property
    def active_session(self) -> Optional[int]:
        return self._active_session

    def _log_debug(self, message: str) -> None:
        if not self.debug:
            return
        for line in message.splitlines():
            print(f"info string {line}")

    def start(self) -> None:
        ensure_line_buffered_stdout()
        self.handle_uci()
        self.command_loop()

    def command_loop(self) -> None:
        while self.running:
            command = sys.stdin.readline()
            if not command:
                break
            command = command.strip()
            if not command:
                continue
            parts = command.split(" ", 1)
            name = parts[0].lower()
            args = parts[1] if len(parts) > 1 else ""
            handler = self.dispatch_table.get(name, self.handle_unknown)
            try:
                handler(args)
            except Exception as exc:
                print(f"info string Error processing command: {exc}")
            finally:
                sys.stdout.flush()
        if self.running:
            self.handle_quit("")

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    def handle_unknown(self, args: str) -> None:
        print(f"unknown command received: '{args}'")

    def handle_quit(self, _: str) -> None:
        self._cancel_active()
        self.controller.shutdown()
        print("info string Engine shutting down")
        self.running = False

    def handle_debug(self, args: str) -> None:
        setting = args.strip().lower()
        if setting == "on":
            self.debug = True
        elif setting == "off":
            self.debug = False
        else:
            print("info string Invalid debug setting. Use 'on' or 'off'.")
            return
        print(f"info string Debug:{self.debug}")

    def handle_isready(self, _: str) -> None:
        with self.state_lock:
            print("readyok" if self._active_session is None else "info string Engine is busy processing a move")

    def handle_uci(self, _: str = "") -> None:
        print(f"id name {self.engine_name}")
        print(f"id author {self.engine_author}")
        presets = " ".join(f"var {name}" for name in ParamsRegistry.names())
        print(f"option name Preset type combo default {self.preset_name} {presets}")
        print("uciok")

    def handle_setoption(self, args: str) -> None:
        tokens = args.split()
        lowered = [token.lower() for token in tokens]
        if "name" not in lowered or "value" not in lowered:
            print("info string Usage: setoption name <name> value <value>")
            return
        name_index = lowered.index("name")
        value_index = lowered.index("value")
        name = " ".join(tokens[name_index + 1:value_index]).lower()
        value = " ".join(tokens[value_index + 1:])
        if name != "preset":
            print(f"info string Unknown option '{name}'")
            return
        try:
            params = ParamsRegistry.resolve(value)
        except ValueError as exc:
            print(f"info string {exc}")
            return
        with self.state_lock:
            self.preset_name = value
            self.params = params
            self.limits = SearchLimits.from_params(params)
            self.controller.configure(params)
        print(f"info string Preset set to {value}")

    def handle_position(self, args: str) -> None:
        tokens = args.split()
        moves: List[str] = []
        if "moves" in tokens:
            split = tokens.index("moves")
            moves = tokens[split + 1:]
            tokens = tokens[:split]
        if not tokens:
            print("info string Unknown position command.")
            return

        with self.state_lock:
            if tokens[0] == "startpos":
                self.game.reset()
            elif tokens[0] == "board":
                try:
                    position = self._parse_board_args(tokens[1:])
                except (InvalidPositionError, ValueError) as exc:
                    print(f"info string Invalid position: {exc}")
                    return
                self.game.reset(position)
            else:
                print("info string Unknown position command.")
                return

            for move_text in moves:
                try:
                    self.game.play(move_text)
                except ValueError:
                    print(f"info string Invalid move in position command: {move_text}")
                    break
            self._log_debug(f"setpos {self.game.position.key()}")

    def handle_boardpos(self, _: str) -> None:
        with self.state_lock:
            position = self.game.position
            print(
                f"info string Position: {position.key()} "
                f"hands {format_hands(position.hands_array())} ply {self.game.ply}"
            )

    def handle_go(self, args: str) -> None:
        time_controls = self._parse_go_args(args)
        with self.state_lock:
            budget = self.limits.resolve_budget(time_controls)
            self._session_counter += 1
            session_id = self._session_counter
            request = self.game.request(session_id, budget)
            self._active_session = session_id
        self._log_debug(f"go: session={session_id} budget={budget:.2f}s")
        try:
            self.controller.start(request)
        except InvalidPositionError as exc:
            with self.state_lock:
                if self._active_session == session_id:
                    self._active_session = None
            print(f"info string Search rejected: {exc}")
            print("bestmove (none)")

    def handle_stop(self, _: str) -> None:
        if self._cancel_active():
            print("info string Search stopped")

    def handle_undo(self, _: str) -> None:
        self._cancel_active()
        with self.state_lock:
            count = self.game.undo()
        print(f"info string Undo {count} plies")

    def handle_ucinewgame(self, _: str) -> None:
        self._cancel_active()
        with self.state_lock:
            self.game.reset()
            self._log_debug("New game started, board reset to initial position")
        print("info string New game initialized")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _cancel_active(self) -> bool:
        with self.state_lock:
            if self._active_session is None:
                return False
            self._active_session = None
        self.controller.cancel()
        return True

    def _on_message(self, message: OutgoingMessage) -> None:
        with self.state_lock:
            if message.session_id != self._active_session:
                return
            if isinstance(message, ProgressMessage):
                print(f"info sims {message.simulations_completed}")
                return
            self._active_session = None
            if isinstance(message, FinishMessage):
                print(
                    f"info string result source={message.source.value} "
                    f"sims={message.simulations_completed} winrate={message.win_rate:.3f} "
                    f"side={message.side_to_move_at_root:+d}"
                )
                print(f"bestmove {message.move}" if message.move else "bestmove (none)")
            elif isinstance(message, ErrorMessage):
                print(f"info string Error generating move: {message.error.get('message')}")
                print("bestmove (none)")

    def _parse_board_args(self, tokens: List[str]) -> Position:
        if len(tokens) != 5 or tokens[1].lower() != "hands" or tokens[3].lower() != "turn":
            raise ValueError("expected board <codes> hands <counts> turn <1|-1>")
        board = [int(code) for code in tokens[0].split(",")]
        hands = [int(count) for count in tokens[2].split(",")]
        return Position.from_arrays(board, hands, int(tokens[4]))

    def _parse_go_args(self, args: str) -> Dict[str, int]:
        """Only ``movetime`` is honoured; depth, infinite and clock arguments are ignored."""
        parsed: Dict[str, int] = {}
        iterator = iter(args.split())
        for token in iterator:
            if token.lower() != "movetime":
                continue
            try:
                parsed["movetime"] = int(next(iterator))
            except (StopIteration, ValueError):
                continue
        return parsed
