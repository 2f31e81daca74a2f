from __future__ import annotations

import math
from typing import Callable

from session_runner.core.models import GrowthCheckpoint, GrowthPattern, VolumeCurve
from session_runner.exceptions import UnsupportedGrowthPatternError


def _linear(checkpoints: tuple[GrowthCheckpoint, ...], elapsed_seconds: float) -> int:
    first = checkpoints[0]
    last = checkpoints[-1]

    # Clamp outside the checkpoint range.
    if elapsed_seconds <= first.offset_seconds:
        return first.target_volume
    if elapsed_seconds >= last.offset_seconds:
        return last.target_volume

    for left, right in zip(checkpoints, checkpoints[1:]):
        if left.offset_seconds <= elapsed_seconds <= right.offset_seconds:
            span = right.offset_seconds - left.offset_seconds
            fraction = (elapsed_seconds - left.offset_seconds) / span
            value = left.target_volume + (right.target_volume - left.target_volume) * fraction
            return int(math.floor(value))

    # Unreachable for a validated curve.
    return last.target_volume


_EVALUATORS: dict[GrowthPattern, Callable[[tuple[GrowthCheckpoint, ...], float], int]] = {
    GrowthPattern.LINEAR: _linear,
}


def ensure_supported(curve: VolumeCurve) -> None:
    """Fail fast when the curve's growth pattern has no evaluator."""
    if curve.pattern not in _EVALUATORS:
        raise UnsupportedGrowthPatternError(
            "UNSUPPORTED_GROWTH_PATTERN",
            f"growth pattern {curve.pattern.value!r} is not implemented",
            details={"supported": [p.value for p in _EVALUATORS]},
        )


def evaluate_volume(curve: VolumeCurve, elapsed_seconds: float) -> int:
    """Return the desired cumulative session volume ``elapsed_seconds`` after the curve start.

    Before the first checkpoint the first volume applies; after the last
    checkpoint the last volume applies. Interpolated values are floored.
    """
    ensure_supported(curve)
    return _EVALUATORS[curve.pattern](curve.checkpoints, elapsed_seconds)
