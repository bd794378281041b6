"""Search presets and time budgeting."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Dict, Mapping, Optional

PRESET_ENV_VAR = "DOUBUTSU_PRESET"
DEFAULT_PRESET = "balanced"


def _clamp(value: float, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


@dataclass(slots=True, frozen=True)
class SearchParams:
    exploration: float = 1.41
    rollout_limit: int = 150
    batch_size: int = 250
    progress_interval: int = 1000
    mate_depth: int = 3
    default_time: float = 3.0
    min_time: float = 0.01
    max_time: float = 30.0
    book_enabled: bool = True

    def clamp(self) -> "SearchParams":
        min_time = max(0.0, float(self.min_time))
        max_time = max(min_time, float(self.max_time))
        return replace(
            self,
            exploration=_clamp(self.exploration, 0.0, 10.0),
            rollout_limit=max(1, int(self.rollout_limit)),
            batch_size=max(1, int(self.batch_size)),
            progress_interval=max(1, int(self.progress_interval)),
            mate_depth=int(_clamp(self.mate_depth, 0, 7)),
            min_time=min_time,
            max_time=max_time,
            default_time=_clamp(self.default_time, min_time, max_time),
        )


class ParamsRegistry:
    PRESETS: Dict[str, SearchParams] = {
        "balanced": SearchParams(),
        "fastblitz": SearchParams(
            batch_size=100,
            progress_interval=500,
            mate_depth=1,
            default_time=1.0,
            max_time=5.0,
        ),
        "tournament": SearchParams(
            mate_depth=5,
            default_time=10.0,
            max_time=120.0,
        ),
    }

    @classmethod
    def resolve(cls, preset: str) -> SearchParams:
        if preset not in cls.PRESETS:
            raise ValueError(f"Unknown search preset '{preset}'")
        return cls.PRESETS[preset].clamp()

    @classmethod
    def names(cls) -> tuple:
        return tuple(cls.PRESETS)


def preset_from_env(environ: Optional[Mapping[str, str]] = None) -> str:
    env = os.environ if environ is None else environ
    return env.get(PRESET_ENV_VAR, DEFAULT_PRESET) or DEFAULT_PRESET


class SearchLimits:
    def __init__(self, *, min_time: float, max_time: float, default_time: float) -> None:
        self.min_time = min_time
        self.max_time = max_time
        self.default_time = default_time

    @classmethod
    def from_params(cls, params: SearchParams) -> "SearchLimits":
        return cls(
            min_time=params.min_time,
            max_time=params.max_time,
            default_time=params.default_time,
        )

    def resolve_budget(self, time_controls: Optional[Mapping[str, int]] = None) -> float:
        """Seconds to search for a ``go`` command's arguments.

        ``movetime`` is taken in milliseconds; anything else falls back to the
        preset's default. The result always lies within the preset bounds.
        """

        tc = time_controls or {}
        if "movetime" in tc:
            return self._clamp(tc["movetime"] / 1000.0)
        return self._clamp(self.default_time)

    def _clamp(self, seconds: float) -> float:
        return max(self.min_time, min(self.max_time, seconds))
