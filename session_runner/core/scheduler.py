"""Split an aggregate audience curve across concurrent workers.

The split is deterministic: the same curve and concurrency always produce the
same per-worker curves, and the per-worker volumes sum to the original volume
at every checkpoint.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from session_runner.core.curve import ensure_supported
from session_runner.core.models import GrowthCheckpoint, VolumeCurve
from session_runner.exceptions import ConfigurationError

# Per-worker start offset so workers do not hit the endpoint in lockstep.
DEFAULT_SHIFT_SECONDS = 1.0


@dataclass(frozen=True)
class WorkerPlan:
    index: int
    curve: VolumeCurve
    start_time: datetime
    end_time: datetime


def split_curve(curve: VolumeCurve, concurrency: int) -> list[VolumeCurve]:
    """Partition ``curve`` into ``concurrency`` curves with the same offsets.

    Earlier workers take ``ceil(remaining / workers_left)`` of what is still
    unassigned at each checkpoint; the last worker takes the exact remainder.
    """
    if concurrency < 1:
        raise ConfigurationError(
            "INVALID_CONCURRENCY",
            "concurrency must be >= 1",
            details={"concurrency": concurrency},
        )

    if concurrency == 1:
        return [curve]

    # Shared across workers, never reset.
    assigned_so_far = [0] * len(curve.checkpoints)
    curves: list[VolumeCurve] = []

    for i in range(concurrency):
        checkpoints: list[GrowthCheckpoint] = []
        for j, checkpoint in enumerate(curve.checkpoints):
            remaining = max(0, checkpoint.target_volume - assigned_so_far[j])
            if i == concurrency - 1:
                assigned = remaining
            else:
                assigned = math.ceil(remaining / (concurrency - i))
            assigned_so_far[j] += assigned
            checkpoints.append(GrowthCheckpoint(checkpoint.offset_seconds, assigned))

        curves.append(VolumeCurve(pattern=curve.pattern, checkpoints=tuple(checkpoints)))

    return curves


def plan_workers(
    curve: VolumeCurve,
    concurrency: int,
    start_time: datetime,
    end_time: datetime,
    *,
    shift_seconds: float = DEFAULT_SHIFT_SECONDS,
) -> list[WorkerPlan]:
    """Split the curve and give each worker its own shifted run window."""
    ensure_supported(curve)

    if end_time <= start_time:
        raise ConfigurationError(
            "INVALID_EVENT_WINDOW",
            "event end time must be after its start time",
            details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
        )
    if shift_seconds < 0:
        raise ConfigurationError(
            "INVALID_SHIFT",
            "shift_seconds must be >= 0",
            details={"shift_seconds": shift_seconds},
        )

    plans: list[WorkerPlan] = []
    for index, worker_curve in enumerate(split_curve(curve, concurrency)):
        shift = timedelta(seconds=index * shift_seconds)
        plans.append(
            WorkerPlan(
                index=index,
                curve=worker_curve,
                start_time=start_time + shift,
                end_time=end_time + shift,
            )
        )
    return plans
