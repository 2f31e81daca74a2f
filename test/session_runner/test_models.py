"""Tests for worker run state payloads, run results and timestamp helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from session_runner.core.models import (
    RunResult,
    WorkerResult,
    WorkerRunState,
    WorkerStats,
    parse_iso8601,
    to_iso8601,
)


class TestWorkerRunStatePayload:
    """The payload is what external schedulers carry between invocations."""

    def test_payload_keys(self) -> None:
        state = WorkerRunState(
            active_urls=["https://cdn.example.com/a.m3u8", ""],
            last_discontinuity_sequence=7,
            timestamp="2026-10-18T20:01:00.000Z",
        )
        assert state.to_payload() == {
            "activeUrls": ["https://cdn.example.com/a.m3u8", ""],
            "lastDiscontinuitySequence": 7,
            "timestamp": "2026-10-18T20:01:00.000Z",
        }

    @pytest.mark.parametrize(
        "state",
        [
            WorkerRunState(),
            WorkerRunState(active_urls=["", "https://x/y"], last_discontinuity_sequence=0, timestamp="t"),
            WorkerRunState(active_urls=["https://x/y"], last_discontinuity_sequence=None, timestamp="t"),
        ],
    )
    def test_payload_round_trip(self, state: WorkerRunState) -> None:
        assert WorkerRunState.from_payload(state.to_payload()) == state

    @pytest.mark.parametrize("payload", [None, {}])
    def test_missing_payload_is_initial_state(self, payload) -> None:
        state = WorkerRunState.from_payload(payload)
        assert state == WorkerRunState()
        assert state.active_urls == []
        assert state.last_discontinuity_sequence is None
        assert state.timestamp is None

    def test_null_urls_become_empty(self) -> None:
        state = WorkerRunState.from_payload({"activeUrls": [None, "https://x/y"]})
        assert state.active_urls == ["", "https://x/y"]

    @pytest.mark.parametrize(
        "payload",
        [
            {"activeUrls": "https://x/y"},
            {"activeUrls": [], "lastDiscontinuitySequence": "3"},
            {"activeUrls": [], "lastDiscontinuitySequence": True},
        ],
    )
    def test_malformed_payload(self, payload: dict) -> None:
        with pytest.raises(ValueError):
            WorkerRunState.from_payload(payload)


class TestTimestamps:
    def test_to_iso8601_uses_z_and_milliseconds(self) -> None:
        moment = datetime(2026, 10, 18, 20, 0, 5, 123456, tzinfo=timezone.utc)
        assert to_iso8601(moment) == "2026-10-18T20:00:05.123Z"

    def test_to_iso8601_converts_offsets(self) -> None:
        moment = datetime(2026, 10, 18, 22, 0, 0, tzinfo=timezone(timedelta(hours=2)))
        assert to_iso8601(moment) == "2026-10-18T20:00:00.000Z"

    def test_naive_is_treated_as_utc(self) -> None:
        assert to_iso8601(datetime(2026, 10, 18, 20, 0, 0)) == "2026-10-18T20:00:00.000Z"

    @pytest.mark.parametrize(
        "raw",
        ["2026-10-18T20:00:00Z", "2026-10-18T20:00:00.000Z", "2026-10-18T20:00:00+00:00", "2026-10-18T20:00:00"],
    )
    def test_parse_iso8601(self, raw: str) -> None:
        assert parse_iso8601(raw) == datetime(2026, 10, 18, 20, 0, 0, tzinfo=timezone.utc)

    def test_parse_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            parse_iso8601("yesterday")


class TestRunResult:
    def test_aggregates(self) -> None:
        start = datetime(2026, 10, 18, 20, 0, 0, tzinfo=timezone.utc)
        first = WorkerStats(regressions=2)
        second = WorkerStats(regressions=1)
        result = RunResult(
            started_at=start,
            ended_at=start + timedelta(minutes=5),
            workers=[
                WorkerResult(0, WorkerRunState(active_urls=["a", "b"]), first),
                WorkerResult(1, WorkerRunState(active_urls=["c"]), second),
            ],
        )
        assert result.duration_seconds == 300.0
        assert result.total_regressions == 3
        assert result.active_sessions == 3

    def test_stats_as_dict(self) -> None:
        stats = WorkerStats(cycles=4, alerts_sent=1)
        payload = stats.as_dict()
        assert payload["cycles"] == 4
        assert payload["alerts_sent"] == 1
        assert set(payload) == {
            "cycles",
            "sessions_requested",
            "sessions_failed",
            "sessions_retired",
            "manifests_checked",
            "regressions",
            "alerts_sent",
            "alerts_failed",
        }
