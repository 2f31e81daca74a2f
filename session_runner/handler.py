"""Single-invocation entry point for external scheduling infrastructure.

A timer, queue consumer or workflow engine calls ``handler(event)`` once per
cycle with the previous state payload and feeds the returned payload into the
next call. Static configuration comes from environment variables:

    SESSION_INITIALIZATION_URL  session-initialization endpoint (required)
    SESSION_REQUIREMENTS        JSON curve, see core/requirements.py (required)
    EVENT_START_TIME            ISO-8601 start of this worker's curve (required)
    EVENT_END_TIME              ISO-8601 end of the run (default: start + 24h)
    HOST_NAME                   host-name override for manifest URLs
    INDEX_OF_RENDITIONS         rendition index in master playlists (default 0)
    INTERVAL_IN_SECONDS         cadence, informational for the caller (default 60)
    HTTP_TIMEOUT_SECONDS        per-request timeout (default 10)
    NOTIFY_WEBHOOK_URL          webhook for regression alerts (default: log only)
    WORKER_INDEX                worker id used in log events (default 0)
"""

from __future__ import annotations

import asyncio
import json
import os
from datetime import datetime, timedelta
from typing import Any, Mapping

from session_runner.core.manifest_client import ManifestClient
from session_runner.core.models import WorkerRunState, WorkerSettings, parse_iso8601
from session_runner.core.notifier import LogChannel, NotificationChannel, RegressionNotifier, WebhookChannel
from session_runner.core.requirements import curve_from_payload
from session_runner.core.worker import SessionWorker
from session_runner.exceptions import ConfigurationError
from session_runner.logger import Logger, session_logger as logger

DEFAULT_EVENT_DURATION = timedelta(hours=24)


def _parse_int_env(
    environ: Mapping[str, str],
    name: str,
    default: int,
    minimum: int = 0,
) -> int:
    """Parse an integer environment value with fallback."""
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default

    try:
        value = int(raw)
        if value < minimum:
            raise ValueError(f"must be >= {minimum}")
        return value
    except ValueError:
        logger.warning(
            "handler.invalid_env",
            event="handler.invalid_env",
            variable=name,
            provided_value=raw,
            default_value=default,
        )
        return default


def _require_env(environ: Mapping[str, str], name: str) -> str:
    value = (environ.get(name) or "").strip()
    if not value:
        raise ConfigurationError(
            "MISSING_ENV",
            f"environment variable {name} is required",
            details={"variable": name},
        )
    return value


def settings_from_env(environ: Mapping[str, str] | None = None) -> WorkerSettings:
    environ = os.environ if environ is None else environ

    init_url = _require_env(environ, "SESSION_INITIALIZATION_URL")

    try:
        requirements = json.loads(_require_env(environ, "SESSION_REQUIREMENTS"))
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            "INVALID_ENV",
            "SESSION_REQUIREMENTS is not valid JSON",
            details={"error": str(exc)},
        ) from exc
    curve = curve_from_payload(requirements)

    start_time = _parse_time_env(environ, "EVENT_START_TIME")
    end_time = (
        _parse_time_env(environ, "EVENT_END_TIME")
        if (environ.get("EVENT_END_TIME") or "").strip()
        else start_time + DEFAULT_EVENT_DURATION
    )

    return WorkerSettings(
        worker_id=_parse_int_env(environ, "WORKER_INDEX", 0),
        init_url=init_url,
        curve=curve,
        start_time=start_time,
        end_time=end_time,
        interval_seconds=float(_parse_int_env(environ, "INTERVAL_IN_SECONDS", 60, minimum=1)),
        host_name=(environ.get("HOST_NAME") or "").strip() or None,
        rendition_index=_parse_int_env(environ, "INDEX_OF_RENDITIONS", 0),
        timeout_seconds=float(_parse_int_env(environ, "HTTP_TIMEOUT_SECONDS", 10, minimum=1)),
    )


def _parse_time_env(environ: Mapping[str, str], name: str) -> datetime:
    raw = _require_env(environ, name)
    try:
        return parse_iso8601(raw)
    except ValueError as exc:
        raise ConfigurationError(
            "INVALID_ENV",
            f"{name} must be an ISO-8601 timestamp",
            details={"variable": name, "provided_value": raw},
        ) from exc


async def handle_invocation(
    event: Mapping[str, Any] | None,
    worker: SessionWorker,
    *,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Run one cycle for ``event`` and return the next state payload.

    ``event`` may be the bare state payload or wrapped as ``{"Payload": {...}}``.
    The returned payload adds ``done`` so the caller can stop re-invoking.
    """
    payload = dict(event or {})
    if isinstance(payload.get("Payload"), dict):
        payload = payload["Payload"]

    state = await worker.step(WorkerRunState.from_payload(payload), now=now)
    return {**state.to_payload(), "done": not worker.should_continue(state)}


def handler(
    event: Mapping[str, Any] | None,
    context: Any = None,
    *,
    environ: Mapping[str, str] | None = None,
    log: Logger | None = None,
) -> dict[str, Any]:
    environ = os.environ if environ is None else environ
    log = log or logger
    settings = settings_from_env(environ)

    webhook_url = (environ.get("NOTIFY_WEBHOOK_URL") or "").strip()

    async def _run() -> dict[str, Any]:
        channel: NotificationChannel
        if webhook_url:
            channel = WebhookChannel(webhook_url, timeout_seconds=settings.timeout_seconds)
        else:
            channel = LogChannel(logger=log)
        try:
            async with ManifestClient(timeout_seconds=settings.timeout_seconds, logger=log) as client:
                worker = SessionWorker(
                    settings,
                    client=client,
                    notifier=RegressionNotifier(channel, logger=log),
                    logger=log,
                )
                return await handle_invocation(event, worker)
        finally:
            if isinstance(channel, WebhookChannel):
                await channel.aclose()

    return asyncio.run(_run())
