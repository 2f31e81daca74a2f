"""Pytest configuration and fixtures

Provides a recording logger, a fake SSAI origin served through
``httpx.MockTransport``, and builders for worker settings.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest
import pytest_asyncio

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from session_runner.core.manifest_client import ManifestClient
from session_runner.core.models import VolumeCurve, WorkerSettings
from session_runner.core.notifier import RegressionNotifier
from session_runner.logger import Logger


INIT_URL = "https://ssai.example.com/v1/session/abc123/live/"
EVENT_START = datetime(2026, 10, 18, 20, 0, 0, tzinfo=timezone.utc)


MASTER_PLAYLIST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-STREAM-INF:BANDWIDTH=2200000,RESOLUTION=1280x720
rendition_720p.m3u8
#EXT-X-STREAM-INF:BANDWIDTH=800000,RESOLUTION=640x360
rendition_360p.m3u8
"""


def media_playlist(discontinuity_sequence: int | None) -> str:
    lines = [
        "#EXTM3U",
        "#EXT-X-VERSION:3",
        "#EXT-X-TARGETDURATION:6",
        "#EXT-X-MEDIA-SEQUENCE:120",
    ]
    if discontinuity_sequence is not None:
        lines.append(f"#EXT-X-DISCONTINUITY-SEQUENCE:{discontinuity_sequence}")
    lines += [
        "#EXTINF:6.000,",
        "segment_120.ts",
        "#EXTINF:6.000,",
        "segment_121.ts",
        "",
    ]
    return "\n".join(lines)


# ============================================================================
# LOGGING
# ============================================================================


class RecordingLogger(Logger):
    """Logger that keeps every event in memory for assertions."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict]] = []

    def _record(self, level: str, message: str, kwargs: dict) -> None:
        self.records.append((level, message, kwargs))

    def debug(self, message: str, **kwargs) -> None:
        self._record("debug", message, kwargs)

    def info(self, message: str, **kwargs) -> None:
        self._record("info", message, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._record("warning", message, kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._record("error", message, kwargs)

    def events(self, name: str) -> list[dict]:
        return [fields for _, message, fields in self.records if message == name]


@pytest.fixture
def recording_logger():
    return RecordingLogger()


# ============================================================================
# FAKE SSAI ORIGIN
# ============================================================================


class FakeOrigin:
    """In-memory session initializer and manifest origin.

    - POST to INIT_URL returns ``{"manifestUrl": "/v1/master/abc123/session-<n>.m3u8"}``
    - GET of a session master returns MASTER_PLAYLIST
    - GET of a rendition returns a media playlist carrying ``discontinuity_sequence``
    - ``sequence_script`` values, when set, are served one per media fetch
    """

    def __init__(self) -> None:
        self.sessions_created = 0
        self.discontinuity_sequence: int | None = 0
        self.fail_session_create = False
        self.fail_manifest = False
        self.master_paths = True
        self.sequence_script: list[int | None] = []
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        if request.method == "POST":
            if self.fail_session_create:
                return httpx.Response(503, text="unavailable")
            self.sessions_created += 1
            if self.master_paths:
                path = f"/v1/master/abc123/session-{self.sessions_created}.m3u8"
            else:
                path = f"/v1/media/abc123/session-{self.sessions_created}"
            return httpx.Response(200, json={"manifestUrl": path})

        if self.fail_manifest:
            return httpx.Response(500, text="boom")
        if "rendition_" in url or "/v1/media/" in url:
            if self.sequence_script:
                self.discontinuity_sequence = self.sequence_script.pop(0)
            return httpx.Response(200, text=media_playlist(self.discontinuity_sequence))
        if url.endswith(".m3u8"):
            return httpx.Response(200, text=MASTER_PLAYLIST)
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def origin():
    return FakeOrigin()


@pytest_asyncio.fixture
async def client(origin, recording_logger):
    http = httpx.AsyncClient(transport=origin.transport())
    manifest_client = ManifestClient(logger=recording_logger, http=http)
    yield manifest_client
    await manifest_client.aclose()


class FakeChannel:
    """Notification channel that records published alerts."""

    def __init__(self, *, fail: bool = False) -> None:
        self.published: list[tuple[str, str]] = []
        self.fail = fail

    async def publish(self, subject: str, body: str) -> str:
        if self.fail:
            from session_runner.exceptions import NotificationDeliveryError

            raise NotificationDeliveryError("TEST_FAILURE", "channel down")
        self.published.append((subject, body))
        return f"msg-{len(self.published)}"


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def failing_channel():
    return FakeChannel(fail=True)


@pytest.fixture
def notifier(channel, recording_logger):
    return RegressionNotifier(channel, logger=recording_logger)


def make_settings(
    curve: VolumeCurve | None = None,
    *,
    worker_id: int = 0,
    start_time: datetime = EVENT_START,
    end_time: datetime | None = None,
    interval_seconds: float = 60.0,
    host_name: str | None = None,
    rendition_index: int = 0,
) -> WorkerSettings:
    return WorkerSettings(
        worker_id=worker_id,
        init_url=INIT_URL,
        curve=curve or VolumeCurve.linear([(0, 1), (60, 1)]),
        start_time=start_time,
        end_time=end_time or start_time + timedelta(hours=1),
        interval_seconds=interval_seconds,
        host_name=host_name,
        rendition_index=rendition_index,
    )


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def playlist_text():
    """Manifest bodies: ``playlist_text("master")`` or ``playlist_text("media", 7)``."""

    def _build(kind: str, discontinuity_sequence: int | None = 0) -> str:
        if kind == "master":
            return MASTER_PLAYLIST
        return media_playlist(discontinuity_sequence)

    return _build
