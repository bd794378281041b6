import pytest

from doubutsu.config import (
    DEFAULT_PRESET,
    PRESET_ENV_VAR,
    ParamsRegistry,
    SearchLimits,
    SearchParams,
    preset_from_env,
)


def make_limits(**overrides) -> SearchLimits:
    params = {"min_time": 0.5, "max_time": 5.0, "default_time": 2.0}
    params.update(overrides)
    return SearchLimits(**params)


def test_resolve_budget_prefers_movetime() -> None:
    limits = make_limits()
    assert limits.resolve_budget({"movetime": 1500}) == pytest.approx(1.5)


def test_resolve_budget_clamps_movetime() -> None:
    limits = make_limits()
    assert limits.resolve_budget({"movetime": 10}) == pytest.approx(0.5)
    assert limits.resolve_budget({"movetime": 60000}) == pytest.approx(5.0)


def test_resolve_budget_defaults_without_time_controls() -> None:
    assert make_limits().resolve_budget(None) == pytest.approx(2.0)
    # infinite searches are not supported; they use the preset default
    assert make_limits().resolve_budget({"infinite": True}) == pytest.approx(2.0)
    assert make_limits(default_time=9.0).resolve_budget({}) == pytest.approx(5.0)


def test_presets_resolve_to_clamped_params() -> None:
    assert set(ParamsRegistry.names()) == {"balanced", "fastblitz", "tournament"}
    assert ParamsRegistry.resolve("balanced") == SearchParams()
    assert ParamsRegistry.resolve("fastblitz").mate_depth == 1
    assert ParamsRegistry.resolve("tournament").mate_depth == 5

    with pytest.raises(ValueError):
        ParamsRegistry.resolve("ludicrous")


def test_clamp_repairs_out_of_range_values() -> None:
    params = SearchParams(
        exploration=-1.0,
        rollout_limit=0,
        batch_size=-5,
        progress_interval=0,
        mate_depth=40,
        min_time=2.0,
        max_time=1.0,
        default_time=0.1,
    ).clamp()
    assert params.exploration == 0.0
    assert params.rollout_limit == 1
    assert params.batch_size == 1
    assert params.progress_interval == 1
    assert params.mate_depth == 7
    assert params.max_time == params.min_time == 2.0
    assert params.default_time == 2.0


def test_limits_follow_params() -> None:
    limits = SearchLimits.from_params(ParamsRegistry.resolve("fastblitz"))
    assert limits.max_time == 5.0
    assert limits.resolve_budget() == pytest.approx(1.0)


def test_preset_from_env() -> None:
    assert preset_from_env({}) == DEFAULT_PRESET
    assert preset_from_env({PRESET_ENV_VAR: ""}) == DEFAULT_PRESET
    assert preset_from_env({PRESET_ENV_VAR: "tournament"}) == "tournament"
