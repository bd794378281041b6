import pytest

from doubutsu.main import parse_args, run_self_play


def test_parse_args_defaults_to_engine_mode() -> None:
    args = parse_args([])
    assert args.command is None
    assert args.preset is None
    assert args.dev is False


def test_parse_args_selfplay_options() -> None:
    args = parse_args(["--preset", "fastblitz", "selfplay", "--games", "3", "--movetime", "0.1", "--seed", "4"])
    assert args.preset == "fastblitz"
    assert args.command == "selfplay"
    assert args.games == 3
    assert args.movetime == pytest.approx(0.1)
    assert args.max_plies == 200
    assert args.seed == 4


def test_parse_args_rejects_unknown_preset() -> None:
    with pytest.raises(SystemExit):
        parse_args(["--preset", "warp"])


def test_run_self_play_reports_each_game(capsys, tmp_path) -> None:
    # both opening plies come from the book, so the ply limit is reached at once
    results = run_self_play(
        "fastblitz",
        games=1,
        movetime=0.0,
        max_plies=2,
        trace_dir=str(tmp_path),
        seed=1,
        quiet=True,
    )
    assert results == ["Self-play finished: ply limit reached (draw)"]
    assert "ply limit reached" in capsys.readouterr().out
    assert list(tmp_path.glob("self_play_*.log"))
