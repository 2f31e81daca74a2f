from __future__ import annotations

import asyncio
from datetime import datetime

from session_runner.core.curve import ensure_supported, evaluate_volume
from session_runner.core.manifest_client import ManifestClient, MediaPlaylist, ParseFailure
from session_runner.core.models import (
    WorkerRunState,
    WorkerSettings,
    WorkerStats,
    parse_iso8601,
    to_iso8601,
    utcnow,
)
from session_runner.core.notifier import RegressionNotifier
from session_runner.exceptions import ConfigurationError
from session_runner.logger import Logger, session_logger

# Session manifest URLs carrying this marker point at a master playlist.
MASTER_PLAYLIST_MARKER = ".m3u8"


class SessionWorker:
    """One simulated audience slice.

    ``step`` is the whole per-invocation behavior: it takes the previous
    ``WorkerRunState`` and returns the next one. It never raises for
    per-cycle failures and never sleeps; whoever drives it decides when the
    next invocation happens.
    """

    def __init__(
        self,
        settings: WorkerSettings,
        *,
        client: ManifestClient,
        notifier: RegressionNotifier,
        logger: Logger | None = None,
    ) -> None:
        ensure_supported(settings.curve)
        if settings.rendition_index < 0:
            raise ConfigurationError(
                "INVALID_RENDITION_INDEX",
                "rendition_index must be >= 0",
                details={"rendition_index": settings.rendition_index},
            )
        if settings.max_parallel_sessions < 1:
            raise ConfigurationError(
                "INVALID_PARALLELISM",
                "max_parallel_sessions must be >= 1",
                details={"max_parallel_sessions": settings.max_parallel_sessions},
            )

        self._settings = settings
        self._client = client
        self._notifier = notifier
        self._logger = logger or session_logger
        self.stats = WorkerStats()

    @property
    def settings(self) -> WorkerSettings:
        return self._settings

    def desired_volume(self, now: datetime) -> int:
        elapsed = (now - self._settings.start_time).total_seconds()
        return evaluate_volume(self._settings.curve, elapsed)

    def should_continue(self, state: WorkerRunState) -> bool:
        """Deciding phase: keep cycling while the state's timestamp is before the end time."""
        if state.timestamp is None:
            return True
        return parse_iso8601(state.timestamp) < self._settings.end_time

    async def step(self, state: WorkerRunState, now: datetime | None = None) -> WorkerRunState:
        now = now or utcnow()
        timestamp = to_iso8601(now)
        urls = list(state.active_urls)
        sequence = state.last_discontinuity_sequence

        self.stats.cycles += 1
        self._logger.debug(
            "worker.cycle_start",
            event="worker.cycle_start",
            worker_id=self._settings.worker_id,
            active=len(urls),
            last_discontinuity_sequence=sequence,
        )

        try:
            desired = self.desired_volume(now)
            stale_first = bool(urls) and not urls[0]
            urls = await self._track_volume(urls, desired)
            if stale_first and urls:
                urls[0] = await self._retry_first_session()
            if urls:
                sequence = await self._check_first_session(urls[0], sequence, timestamp)
        except Exception as exc:
            self._logger.error(
                "worker.cycle_failed",
                event="worker.cycle_failed",
                worker_id=self._settings.worker_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )

        self._logger.info(
            "worker.cycle_end",
            event="worker.cycle_end",
            worker_id=self._settings.worker_id,
            active=len(urls),
            discontinuity_sequence=sequence,
            timestamp=timestamp,
        )
        return WorkerRunState(
            active_urls=urls,
            last_discontinuity_sequence=sequence,
            timestamp=timestamp,
        )

    async def _track_volume(self, urls: list[str], desired: int) -> list[str]:
        if len(urls) < desired:
            shortfall = desired - len(urls)
            gate = asyncio.Semaphore(self._settings.max_parallel_sessions)

            async def _gated() -> str:
                async with gate:
                    return await self._start_session()

            created = await asyncio.gather(*(_gated() for _ in range(shortfall)))
            self.stats.sessions_requested += shortfall
            self.stats.sessions_failed += sum(1 for url in created if not url)
            self._logger.info(
                "worker.sessions_created",
                event="worker.sessions_created",
                worker_id=self._settings.worker_id,
                desired=desired,
                requested=shortfall,
                failed=sum(1 for url in created if not url),
            )
            return urls + list(created)

        if len(urls) > desired:
            self.stats.sessions_retired += len(urls) - desired
            self._logger.info(
                "worker.sessions_retired",
                event="worker.sessions_retired",
                worker_id=self._settings.worker_id,
                desired=desired,
                retired=len(urls) - desired,
            )
            return urls[:desired]

        return urls

    async def _retry_first_session(self) -> str:
        """Replace a leading placeholder so the sampled slot gets a live session again."""
        url = await self._start_session()
        self.stats.sessions_requested += 1
        if not url:
            self.stats.sessions_failed += 1
        self._logger.info(
            "worker.session_retried",
            event="worker.session_retried",
            worker_id=self._settings.worker_id,
            started=bool(url),
        )
        return url

    async def _start_session(self) -> str:
        """Create one session; an empty string marks a session that failed to start."""
        try:
            manifest_url = await self._client.create_session(
                self._settings.init_url,
                self._settings.host_name,
            )
            if MASTER_PLAYLIST_MARKER in manifest_url:
                rendition_url = await self._client.resolve_rendition_url(
                    manifest_url,
                    self._settings.rendition_index,
                )
                return rendition_url or ""
            return manifest_url
        except Exception as exc:
            self._logger.warning(
                "worker.session_start_failed",
                event="worker.session_start_failed",
                worker_id=self._settings.worker_id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return ""

    async def _check_first_session(self, url: str, previous: int | None, timestamp: str) -> int | None:
        """Sample the first session's media manifest and compare discontinuity sequences."""
        if not url:
            self._logger.warning(
                "worker.sample_skipped",
                event="worker.sample_skipped",
                worker_id=self._settings.worker_id,
                reason="first_session_not_started",
            )
            return previous

        playlist = await self._client.fetch_playlist(url)

        if isinstance(playlist, ParseFailure):
            return previous
        if not isinstance(playlist, MediaPlaylist):
            self._logger.warning(
                "worker.sample_not_media",
                event="worker.sample_not_media",
                worker_id=self._settings.worker_id,
                url=url,
            )
            return previous

        self.stats.manifests_checked += 1
        current = playlist.discontinuity_sequence

        if current is not None and previous is not None and current < previous:
            self.stats.regressions += 1
            self._logger.warning(
                "worker.discontinuity_regression",
                event="worker.discontinuity_regression",
                worker_id=self._settings.worker_id,
                url=url,
                previous_sequence=previous,
                current_sequence=current,
            )
            message_id = await self._notifier.notify(url, timestamp, previous, current)
            if message_id is None:
                self.stats.alerts_failed += 1
            else:
                self.stats.alerts_sent += 1

        return current
