"""Tests for volume curve construction and evaluation."""

from __future__ import annotations

import pytest

from session_runner.core.curve import ensure_supported, evaluate_volume
from session_runner.core.models import GrowthCheckpoint, GrowthPattern, VolumeCurve
from session_runner.exceptions import InvalidCurveError, UnsupportedGrowthPatternError


class TestLinearEvaluation:
    """Piecewise-linear interpolation with clamping on both ends."""

    @pytest.mark.parametrize(
        "elapsed,expected",
        [
            (0, 0),
            (50, 5),
            (100, 10),
            (150, 10),  # clamp-right
            (-10, 0),  # clamp-left
        ],
    )
    def test_two_point_curve(self, elapsed: float, expected: int) -> None:
        curve = VolumeCurve.linear([(0, 0), (100, 10)])
        assert evaluate_volume(curve, elapsed) == expected

    def test_clamp_left_uses_first_volume(self) -> None:
        curve = VolumeCurve.linear([(60, 4), (120, 8)])
        assert evaluate_volume(curve, 0) == 4
        assert evaluate_volume(curve, 59.9) == 4

    def test_multi_segment_curve(self) -> None:
        curve = VolumeCurve.linear([(0, 0), (60, 60), (120, 60), (180, 0)])
        assert evaluate_volume(curve, 30) == 30
        assert evaluate_volume(curve, 90) == 60
        assert evaluate_volume(curve, 150) == 30

    def test_fractional_values_are_floored(self) -> None:
        curve = VolumeCurve.linear([(0, 0), (100, 3)])
        assert evaluate_volume(curve, 50) == 1
        assert evaluate_volume(curve, 99) == 2

    def test_decreasing_segment(self) -> None:
        curve = VolumeCurve.linear([(0, 10), (10, 0)])
        assert evaluate_volume(curve, 5) == 5

    def test_single_checkpoint_is_constant(self) -> None:
        curve = VolumeCurve.linear([(30, 7)])
        assert evaluate_volume(curve, 0) == 7
        assert evaluate_volume(curve, 30) == 7
        assert evaluate_volume(curve, 3600) == 7


class TestUnsupportedPattern:
    def test_exponential_fails_fast(self) -> None:
        curve = VolumeCurve(
            pattern=GrowthPattern.EXPONENTIAL,
            checkpoints=(GrowthCheckpoint(0, 1), GrowthCheckpoint(60, 10)),
        )
        with pytest.raises(UnsupportedGrowthPatternError):
            ensure_supported(curve)
        with pytest.raises(UnsupportedGrowthPatternError):
            evaluate_volume(curve, 10)

    def test_linear_is_supported(self) -> None:
        ensure_supported(VolumeCurve.linear([(0, 1)]))


class TestCurveValidation:
    """Invalid curves are rejected when constructed."""

    def test_empty_checkpoints(self) -> None:
        with pytest.raises(InvalidCurveError) as exc_info:
            VolumeCurve(pattern=GrowthPattern.LINEAR, checkpoints=())
        assert exc_info.value.code == "EMPTY_CURVE"

    def test_duplicate_offsets(self) -> None:
        with pytest.raises(InvalidCurveError) as exc_info:
            VolumeCurve.linear([(0, 1), (0, 2)])
        assert exc_info.value.code == "UNORDERED_CHECKPOINTS"

    def test_descending_offsets(self) -> None:
        with pytest.raises(InvalidCurveError):
            VolumeCurve.linear([(60, 1), (0, 2)])

    def test_negative_volume(self) -> None:
        with pytest.raises(InvalidCurveError) as exc_info:
            VolumeCurve.linear([(0, -1)])
        assert exc_info.value.code == "INVALID_VOLUME"

    def test_negative_offset(self) -> None:
        with pytest.raises(InvalidCurveError) as exc_info:
            VolumeCurve.linear([(-5, 1)])
        assert exc_info.value.code == "INVALID_OFFSET"

    def test_non_integer_volume(self) -> None:
        with pytest.raises(InvalidCurveError):
            VolumeCurve(pattern=GrowthPattern.LINEAR, checkpoints=(GrowthCheckpoint(0, 1.5),))  # type: ignore[arg-type]

    def test_list_checkpoints_are_frozen_to_tuple(self) -> None:
        curve = VolumeCurve(pattern=GrowthPattern.LINEAR, checkpoints=[GrowthCheckpoint(0, 1)])  # type: ignore[arg-type]
        assert isinstance(curve.checkpoints, tuple)
