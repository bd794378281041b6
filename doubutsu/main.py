"""Console entry point: protocol engine or headless self-play."""

from __future__ import annotations

import argparse
import random
from typing import List, Optional, Sequence

from .board import Side
from .config import ParamsRegistry, preset_from_env
from .engine import DoubutsuEngine
from .self_play import SelfPlayManager
from .session import SearchSessionController
from .utils import debug_text, info_text, render_board, result_text


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="doubutsu")
    parser.add_argument(
        "--preset",
        choices=ParamsRegistry.names(),
        default=None,
        help="Search preset (defaults to $DOUBUTSU_PRESET or 'balanced')",
    )
    parser.add_argument("-dev", action="store_true", help="Enable debug mode")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("engine", help="Speak the line protocol on stdin/stdout (default)")

    self_play = subparsers.add_parser("selfplay", help="Run headless engine-versus-engine games")
    self_play.add_argument("--games", type=int, default=1, help="Number of games to play")
    self_play.add_argument(
        "--movetime", type=float, default=0.5, help="Seconds of search per move"
    )
    self_play.add_argument(
        "--max-plies", type=int, default=200, help="Declare a draw after this many plies"
    )
    self_play.add_argument(
        "--trace-dir", default=None, help="Directory for self-play trace files"
    )
    self_play.add_argument("--seed", type=int, default=None, help="Seed for the rollout RNG")
    self_play.add_argument(
        "--quiet", action="store_true", help="Only print the result of each game"
    )
    return parser.parse_args(argv)


def run_self_play(
    preset: str,
    *,
    games: int,
    movetime: float,
    max_plies: int,
    trace_dir: Optional[str],
    seed: Optional[int] = None,
    quiet: bool = False,
    dev: bool = False,
) -> List[Optional[str]]:
    def log(message: str) -> None:
        if dev:
            print(debug_text(message))

    rng = random.Random(seed)
    controller = SearchSessionController(preset=preset, logger=log, rng=rng)
    manager = SelfPlayManager(
        {Side.FIRST: controller, Side.SECOND: controller},
        movetime=movetime,
        max_plies=max_plies,
        trace_directory=trace_dir,
        logger=log,
    )
    results: List[Optional[str]] = []
    try:
        for index in range(games):
            if not quiet:
                print(info_text(f"Game {index + 1}/{games} ({preset}, {movetime:.2f}s per move)"))
            try:
                outcome = manager.run_game()
            except KeyboardInterrupt:
                manager.stop("Self-play interrupted by user")
                results.append(manager.stop_message)
                break
            results.append(outcome)
            print(result_text(f"{outcome} after {manager.game.ply} plies"))
            if not quiet:
                print(render_board(manager.game.position.board_array()))
                if manager.last_trace_path:
                    print(info_text(f"Self-play trace written -> {manager.last_trace_path}"))
    finally:
        controller.shutdown()
    return results


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    preset = args.preset or preset_from_env()
    ParamsRegistry.resolve(preset)

    if args.command == "selfplay":
        run_self_play(
            preset,
            games=args.games,
            movetime=args.movetime,
            max_plies=args.max_plies,
            trace_dir=args.trace_dir,
            seed=args.seed,
            quiet=args.quiet,
            dev=args.dev,
        )
        return

    DoubutsuEngine(preset=preset, debug=args.dev).start()


if __name__ == "__main__":
    main()
