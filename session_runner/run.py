from __future__ import annotations

import argparse
import asyncio
import json
import os
from datetime import timedelta
from pathlib import Path

from session_runner.api.report import build_run_report
from session_runner.core.engine import SessionRunner
from session_runner.core.models import RunConfig
from session_runner.core.requirements import load_requirements_file
from session_runner.core.timeparse import parse_duration_to_seconds, parse_event_time
from session_runner.exceptions import SessionRunnerError
from session_runner.logger import session_logger as logger

_ENV_PREFIX = "SSAI_SIM_"


def _env(name: str, default: str | None = None) -> str | None:
    return os.environ.get(_ENV_PREFIX + name, default)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Simulate SSAI viewer sessions and watch for discontinuity-sequence regressions",
    )
    parser.add_argument(
        "--init-url",
        type=str,
        default=_env("SESSION_INITIALIZATION_URL"),
        help="Session-initialization endpoint (POST). Env: SSAI_SIM_SESSION_INITIALIZATION_URL",
    )
    parser.add_argument(
        "--host-name",
        type=str,
        default=_env("HOST_NAME"),
        help="Optional host name (e.g. a CDN domain) used to resolve returned manifest paths",
    )
    parser.add_argument(
        "--rendition-index",
        type=int,
        default=_env("INDEX_OF_RENDITIONS", "0"),
        help="Which variant of a master playlist each session follows (default 0)",
    )
    parser.add_argument(
        "--requirements-file",
        type=str,
        default=_env("REQUIREMENTS_FILE"),
        help="JSON file with growthPattern and graph of {pointInSeconds, sessionVolume}",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=1,
        help="Number of independent workers the audience curve is split across",
    )
    parser.add_argument(
        "--interval",
        type=str,
        default="60s",
        help="Cycle interval per worker (e.g. 30s, 1m)",
    )
    parser.add_argument(
        "--start",
        type=str,
        default="+0s",
        help="Event start: ISO-8601 timestamp or +<duration> from now (default: now)",
    )
    parser.add_argument(
        "--end",
        type=str,
        default=None,
        help="Event end: ISO-8601 timestamp or +<duration> from now",
    )
    parser.add_argument(
        "--duration",
        type=str,
        default=None,
        help="Event duration from --start (e.g. 2h). Used when --end is not set.",
    )
    parser.add_argument(
        "--webhook-url",
        type=str,
        default=_env("NOTIFY_WEBHOOK_URL"),
        help="Webhook receiving regression alerts as JSON {subject, body}. Default: log only",
    )
    parser.add_argument(
        "--timeout-seconds",
        type=float,
        default=10.0,
        help="HTTP timeout per request",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write summary report JSON to this path",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.init_url:
        logger.error(
            "run.missing_init_url",
            event="run.missing_init_url",
            recovery="Provide --init-url or set SSAI_SIM_SESSION_INITIALIZATION_URL",
        )
        return 2

    if not args.requirements_file:
        logger.error(
            "run.missing_requirements",
            event="run.missing_requirements",
            recovery="Provide --requirements-file (see session-requirements.example.json)",
        )
        return 2

    if args.concurrency < 1:
        logger.error(
            "run.invalid_concurrency",
            event="run.invalid_concurrency",
            provided=args.concurrency,
            recovery="Provide --concurrency >= 1",
        )
        return 2

    if args.rendition_index < 0:
        logger.error(
            "run.invalid_rendition_index",
            event="run.invalid_rendition_index",
            provided=args.rendition_index,
            recovery="Provide --rendition-index >= 0",
        )
        return 2

    try:
        interval_seconds = parse_duration_to_seconds(args.interval)
        start_time = parse_event_time(args.start)
        if args.end is not None:
            end_time = parse_event_time(args.end)
        elif args.duration is not None:
            end_time = start_time + timedelta(seconds=parse_duration_to_seconds(args.duration))
        else:
            logger.error(
                "run.missing_stop_condition",
                event="run.missing_stop_condition",
                cause="end_and_duration_both_missing",
                recovery="Provide --end or --duration",
            )
            return 2
    except ValueError as exc:
        logger.error(
            "run.invalid_time",
            event="run.invalid_time",
            error=str(exc),
            recovery="Use durations like 30s/5m/1h and ISO-8601 or +<duration> times",
        )
        return 2

    try:
        curve = load_requirements_file(args.requirements_file)
    except SessionRunnerError as exc:
        logger.error(
            "run.invalid_requirements",
            event="run.invalid_requirements",
            path=args.requirements_file,
            error_type=exc.code,
            error=exc.message,
            details=exc.details,
        )
        return 2

    config = RunConfig(
        init_url=args.init_url.strip(),
        curve=curve,
        start_time=start_time,
        end_time=end_time,
        interval_seconds=interval_seconds,
        concurrency=args.concurrency,
        host_name=(args.host_name.strip() if args.host_name else None),
        rendition_index=args.rendition_index,
        webhook_url=(args.webhook_url.strip() if args.webhook_url else None),
        timeout_seconds=args.timeout_seconds,
    )

    runner = SessionRunner(config, logger=logger)
    try:
        result = asyncio.run(runner.run())
    except SessionRunnerError as exc:
        logger.error(
            "run.invalid_config",
            event="run.invalid_config",
            error_type=exc.code,
            error=exc.message,
            details=exc.details,
        )
        return 2

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = build_run_report(config, result)
        output_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

        logger.info(
            "run.report_written",
            event="run.report_written",
            path=str(output_path),
        )

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
