from __future__ import annotations

import asyncio
import signal
from datetime import datetime
from typing import Awaitable, Callable

from session_runner.core.manifest_client import ManifestClient
from session_runner.core.models import (
    RunConfig,
    RunResult,
    WorkerPhase,
    WorkerResult,
    WorkerRunState,
    WorkerSettings,
    utcnow,
)
from session_runner.core.notifier import LogChannel, NotificationChannel, RegressionNotifier, WebhookChannel
from session_runner.core.scheduler import WorkerPlan, plan_workers
from session_runner.core.worker import SessionWorker
from session_runner.exceptions import ConfigurationError
from session_runner.logger import Logger, session_logger

Clock = Callable[[], datetime]
Sleep = Callable[[float], Awaitable[None]]


class SessionRunner:
    """Drives every worker of a run on its cadence with asyncio.

    Each worker goes through PREPARING (wait for its shifted start), then
    repeats WAITING -> INVOKING -> DECIDING until its end time passes or the
    run is stopped. Workers share nothing but the HTTP client and notifier.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        logger: Logger | None = None,
        client: ManifestClient | None = None,
        channel: NotificationChannel | None = None,
        clock: Clock = utcnow,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._config = config
        self._logger = logger or session_logger
        self._client = client
        self._channel = channel
        self._clock = clock
        self._sleep = sleep

    async def run(self, stop_event: asyncio.Event | None = None) -> RunResult:
        if self._config.interval_seconds <= 0:
            raise ConfigurationError(
                "INVALID_INTERVAL",
                "interval_seconds must be > 0",
                details={"interval_seconds": self._config.interval_seconds},
            )

        plans = plan_workers(
            self._config.curve,
            self._config.concurrency,
            self._config.start_time,
            self._config.end_time,
            shift_seconds=self._config.shift_seconds,
        )

        stop_event = stop_event or asyncio.Event()
        owns_client = self._client is None
        client = self._client or ManifestClient(
            timeout_seconds=self._config.timeout_seconds,
            logger=self._logger,
        )
        channel = self._channel or self._build_channel()
        notifier = RegressionNotifier(channel, logger=self._logger)

        started = self._clock()
        self._logger.info(
            "run.start",
            event="run.start",
            workers=len(plans),
            init_url=self._config.init_url,
            start_time=self._config.start_time.isoformat(),
            end_time=self._config.end_time.isoformat(),
            interval_seconds=self._config.interval_seconds,
            growth_pattern=self._config.curve.pattern.value,
            checkpoints=len(self._config.curve.checkpoints),
        )

        def _handle_signal(signum: int, _frame) -> None:  # pragma: no cover
            self._logger.warning("run.signal", event="run.signal", signum=signum)
            stop_event.set()

        try:
            workers = [self._build_worker(plan, client, notifier) for plan in plans]
            for worker in workers:
                self._log_phase(
                    worker,
                    WorkerPhase.SCHEDULED,
                    start_time=worker.settings.start_time.isoformat(),
                    end_time=worker.settings.end_time.isoformat(),
                    volumes=worker.settings.curve.volumes,
                )

            with _SignalHandlers(_handle_signal):
                results = await asyncio.gather(
                    *(self._drive(worker, stop_event) for worker in workers)
                )
        finally:
            if owns_client:
                await client.aclose()
            if isinstance(channel, WebhookChannel) and self._channel is None:
                await channel.aclose()

        result = RunResult(started_at=started, ended_at=self._clock(), workers=list(results))
        self._logger.info(
            "run.end",
            event="run.end",
            workers=len(result.workers),
            active_sessions=result.active_sessions,
            regressions=result.total_regressions,
            duration_seconds=result.duration_seconds,
        )
        return result

    def _build_channel(self) -> NotificationChannel:
        if self._config.webhook_url:
            return WebhookChannel(self._config.webhook_url, timeout_seconds=self._config.timeout_seconds)
        return LogChannel(logger=self._logger)

    def _build_worker(
        self,
        plan: WorkerPlan,
        client: ManifestClient,
        notifier: RegressionNotifier,
    ) -> SessionWorker:
        settings = WorkerSettings(
            worker_id=plan.index,
            init_url=self._config.init_url,
            curve=plan.curve,
            start_time=plan.start_time,
            end_time=plan.end_time,
            interval_seconds=self._config.interval_seconds,
            host_name=self._config.host_name,
            rendition_index=self._config.rendition_index,
            timeout_seconds=self._config.timeout_seconds,
        )
        return SessionWorker(settings, client=client, notifier=notifier, logger=self._logger)

    async def _drive(self, worker: SessionWorker, stop_event: asyncio.Event) -> WorkerResult:
        settings = worker.settings
        state = WorkerRunState()

        self._log_phase(worker, WorkerPhase.PREPARING)
        delay = (settings.start_time - self._clock()).total_seconds()
        if delay > 0:
            await self._wait(delay, stop_event)

        while not stop_event.is_set():
            self._log_phase(worker, WorkerPhase.WAITING)
            await self._wait(settings.interval_seconds, stop_event)
            if stop_event.is_set():
                break

            self._log_phase(worker, WorkerPhase.INVOKING)
            state = await worker.step(state, now=self._clock())

            self._log_phase(worker, WorkerPhase.DECIDING)
            if not worker.should_continue(state):
                break

        self._log_phase(worker, WorkerPhase.DONE, cycles=worker.stats.cycles, active=len(state.active_urls))
        return WorkerResult(worker_id=settings.worker_id, final_state=state, stats=worker.stats)

    async def _wait(self, seconds: float, stop_event: asyncio.Event) -> None:
        sleeper = asyncio.ensure_future(self._sleep(seconds))
        stopper = asyncio.ensure_future(stop_event.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, stopper):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleeper, stopper, return_exceptions=True)

    def _log_phase(self, worker: SessionWorker, phase: WorkerPhase, **fields) -> None:
        log = self._logger.info if phase in (WorkerPhase.PREPARING, WorkerPhase.DONE) else self._logger.debug
        log(
            "worker.phase",
            event="worker.phase",
            worker_id=worker.settings.worker_id,
            phase=phase.value,
            **fields,
        )


class _SignalHandlers:
    def __init__(self, handler) -> None:
        self._handler = handler
        self._previous: dict[int, object] = {}

    def __enter__(self):
        for signum in (signal.SIGINT, signal.SIGTERM):
            try:
                self._previous[signum] = signal.signal(signum, self._handler)
            except (ValueError, OSError):
                # Not on the main thread, or the platform forbids it.
                pass
        return self

    def __exit__(self, exc_type, exc, tb):
        for signum, previous in self._previous.items():
            try:
                signal.signal(signum, previous)  # type: ignore[arg-type]
            except (ValueError, OSError):
                pass
        return False
