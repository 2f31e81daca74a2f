from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from session_runner.core.models import GrowthCheckpoint, GrowthPattern, VolumeCurve
from session_runner.exceptions import ConfigurationError, InvalidCurveError


def curve_from_payload(data: Any) -> VolumeCurve:
    """Build a ``VolumeCurve`` from a session-requirements object.

    Expected shape:
      {
        "growthPattern": "LINEAR",
        "graph": [
          {"pointInSeconds": 60, "sessionVolume": 1},
          {"pointInSeconds": 7200, "sessionVolume": 100}
        ]
      }

    ``growthPattern`` defaults to LINEAR. Checkpoints are sorted by
    ``pointInSeconds`` before validation.
    """
    if not isinstance(data, dict):
        raise ConfigurationError("INVALID_REQUIREMENTS", "session requirements must be an object")

    raw_pattern = data.get("growthPattern", GrowthPattern.LINEAR.value)
    try:
        pattern = GrowthPattern(str(raw_pattern).upper())
    except ValueError as exc:
        raise ConfigurationError(
            "UNKNOWN_GROWTH_PATTERN",
            f"unknown growth pattern {raw_pattern!r}",
            details={"known": [p.value for p in GrowthPattern]},
        ) from exc

    graph = data.get("graph")
    if not isinstance(graph, list) or not graph:
        raise InvalidCurveError("EMPTY_CURVE", "session requirements must contain a non-empty 'graph' list")

    checkpoints: list[GrowthCheckpoint] = []
    for index, point in enumerate(graph):
        if not isinstance(point, dict):
            raise InvalidCurveError("INVALID_POINT", f"graph point {index} must be an object")
        checkpoints.append(
            GrowthCheckpoint(
                offset_seconds=point.get("pointInSeconds"),
                target_volume=point.get("sessionVolume"),
            )
        )

    if all(isinstance(c.offset_seconds, int) for c in checkpoints):
        checkpoints.sort(key=lambda c: c.offset_seconds)

    return VolumeCurve(pattern=pattern, checkpoints=tuple(checkpoints))


def curve_to_payload(curve: VolumeCurve) -> dict[str, Any]:
    return {
        "growthPattern": curve.pattern.value,
        "graph": [
            {"pointInSeconds": c.offset_seconds, "sessionVolume": c.target_volume}
            for c in curve.checkpoints
        ],
    }


def load_requirements_file(path: str) -> VolumeCurve:
    requirements_path = Path(path)
    try:
        data = json.loads(requirements_path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(
            "UNREADABLE_REQUIREMENTS",
            f"cannot read session requirements from {path}",
            details={"error": str(exc)},
        ) from exc
    return curve_from_payload(data)
