from __future__ import annotations

import re
from datetime import datetime, timedelta

from session_runner.core.models import parse_iso8601, utcnow

_DURATION_RE = re.compile(r"^(?P<value>\d+(?:\.\d+)?)(?P<unit>ms|s|m|h)$")


def parse_duration_to_seconds(raw: str) -> float:
    """Parse duration strings like '500ms', '10s', '5m', '1h' into seconds."""
    match = _DURATION_RE.match(raw.strip())
    if not match:
        raise ValueError("duration must match <number><unit> where unit is ms|s|m|h")

    value = float(match.group("value"))
    unit = match.group("unit")

    if unit == "ms":
        return value / 1000.0
    if unit == "s":
        return value
    if unit == "m":
        return value * 60.0
    return value * 3600.0


def parse_event_time(raw: str, *, now: datetime | None = None) -> datetime:
    """Parse an event time: ISO-8601 (``2026-10-18T20:00:00Z``) or ``+<duration>`` from now."""
    text = raw.strip()
    if text.startswith("+"):
        offset = parse_duration_to_seconds(text[1:])
        return (now or utcnow()) + timedelta(seconds=offset)
    try:
        return parse_iso8601(text)
    except ValueError as exc:
        raise ValueError("event time must be ISO-8601 or +<duration> (e.g. +15m)") from exc
