from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from session_runner.exceptions import InvalidCurveError


class GrowthPattern(str, Enum):
    """How the desired volume moves between two checkpoints.

    linear: piecewise-linear interpolation
    exponential: reserved; curves using it are rejected at configuration time
    """

    LINEAR = "LINEAR"
    EXPONENTIAL = "EXPONENTIAL"


class WorkerPhase(str, Enum):
    """Phases of a worker run.

    SCHEDULED -> PREPARING -> WAITING -> INVOKING -> DECIDING -> (WAITING | DONE)
    """

    SCHEDULED = "scheduled"
    PREPARING = "preparing"
    WAITING = "waiting"
    INVOKING = "invoking"
    DECIDING = "deciding"
    DONE = "done"


@dataclass(frozen=True)
class GrowthCheckpoint:
    offset_seconds: int
    target_volume: int


@dataclass(frozen=True)
class VolumeCurve:
    """Desired cumulative session volume over time, relative to a start time.

    Checkpoints are validated on construction so a bad curve fails before any
    worker is scheduled.
    """

    pattern: GrowthPattern
    checkpoints: tuple[GrowthCheckpoint, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.checkpoints, tuple):
            object.__setattr__(self, "checkpoints", tuple(self.checkpoints))

        if not self.checkpoints:
            raise InvalidCurveError("EMPTY_CURVE", "volume curve needs at least one checkpoint")

        previous: int | None = None
        for index, checkpoint in enumerate(self.checkpoints):
            offset = checkpoint.offset_seconds
            volume = checkpoint.target_volume
            if not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
                raise InvalidCurveError(
                    "INVALID_OFFSET",
                    "checkpoint offset must be a non-negative integer",
                    details={"index": index, "offset_seconds": offset},
                )
            if not isinstance(volume, int) or isinstance(volume, bool) or volume < 0:
                raise InvalidCurveError(
                    "INVALID_VOLUME",
                    "checkpoint volume must be a non-negative integer",
                    details={"index": index, "target_volume": volume},
                )
            if previous is not None and offset <= previous:
                raise InvalidCurveError(
                    "UNORDERED_CHECKPOINTS",
                    "checkpoint offsets must be unique and ascending",
                    details={"index": index, "offset_seconds": offset, "previous": previous},
                )
            previous = offset

    @classmethod
    def linear(cls, points: list[tuple[int, int]]) -> "VolumeCurve":
        return cls(
            pattern=GrowthPattern.LINEAR,
            checkpoints=tuple(GrowthCheckpoint(offset, volume) for offset, volume in points),
        )

    @property
    def volumes(self) -> list[int]:
        return [c.target_volume for c in self.checkpoints]


@dataclass
class WorkerRunState:
    """State carried from one worker invocation to the next.

    The payload form is what external scheduling infrastructure stores between
    invocations; ``from_payload(to_payload(s)) == s`` holds for every state.
    """

    active_urls: list[str] = field(default_factory=list)
    last_discontinuity_sequence: int | None = None
    timestamp: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "activeUrls": list(self.active_urls),
            "lastDiscontinuitySequence": self.last_discontinuity_sequence,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_payload(cls, payload: dict[str, Any] | None) -> "WorkerRunState":
        if not payload:
            return cls()

        urls = payload.get("activeUrls") or []
        if not isinstance(urls, list):
            raise ValueError("activeUrls must be a list")

        sequence = payload.get("lastDiscontinuitySequence")
        if sequence is not None and (not isinstance(sequence, int) or isinstance(sequence, bool)):
            raise ValueError("lastDiscontinuitySequence must be an integer or null")

        return cls(
            active_urls=[str(u) if u is not None else "" for u in urls],
            last_discontinuity_sequence=sequence,
            timestamp=payload.get("timestamp"),
        )


@dataclass
class WorkerStats:
    cycles: int = 0
    sessions_requested: int = 0
    sessions_failed: int = 0
    sessions_retired: int = 0
    manifests_checked: int = 0
    regressions: int = 0
    alerts_sent: int = 0
    alerts_failed: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "cycles": self.cycles,
            "sessions_requested": self.sessions_requested,
            "sessions_failed": self.sessions_failed,
            "sessions_retired": self.sessions_retired,
            "manifests_checked": self.manifests_checked,
            "regressions": self.regressions,
            "alerts_sent": self.alerts_sent,
            "alerts_failed": self.alerts_failed,
        }


@dataclass(frozen=True)
class WorkerSettings:
    """Static configuration for one worker."""

    worker_id: int
    init_url: str
    curve: VolumeCurve
    start_time: datetime
    end_time: datetime
    interval_seconds: float
    host_name: str | None = None
    rendition_index: int = 0
    timeout_seconds: float = 10.0
    max_parallel_sessions: int = 8


@dataclass(frozen=True)
class RunConfig:
    """Configuration of a whole run (all workers)."""

    init_url: str
    curve: VolumeCurve
    start_time: datetime
    end_time: datetime
    interval_seconds: float
    concurrency: int = 1
    host_name: str | None = None
    rendition_index: int = 0
    webhook_url: str | None = None
    timeout_seconds: float = 10.0
    shift_seconds: float = 1.0


@dataclass
class WorkerResult:
    worker_id: int
    final_state: WorkerRunState
    stats: WorkerStats


@dataclass
class RunResult:
    started_at: datetime
    ended_at: datetime
    workers: list[WorkerResult] = field(default_factory=list)

    @property
    def duration_seconds(self) -> float:
        return max(0.0, (self.ended_at - self.started_at).total_seconds())

    @property
    def total_regressions(self) -> int:
        return sum(w.stats.regressions for w in self.workers)

    @property
    def active_sessions(self) -> int:
        return sum(len(w.final_state.active_urls) for w in self.workers)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso8601(moment: datetime) -> str:
    """Render a UTC timestamp the way the state payload stores it (``...Z``)."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso8601(raw: str) -> datetime:
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment
