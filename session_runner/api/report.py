from __future__ import annotations

from typing import Any

from session_runner.core.models import RunConfig, RunResult, to_iso8601
from session_runner.core.requirements import curve_to_payload


def build_run_report(config: RunConfig, result: RunResult) -> dict[str, Any]:
    config_payload = {
        "init_url": config.init_url,
        "host_name": config.host_name,
        "rendition_index": config.rendition_index,
        "concurrency": config.concurrency,
        "interval_seconds": config.interval_seconds,
        "start_time": to_iso8601(config.start_time),
        "end_time": to_iso8601(config.end_time),
        "session_requirements": curve_to_payload(config.curve),
        "notification": "webhook" if config.webhook_url else "log",
        "timeout_seconds": config.timeout_seconds,
    }
    return {
        "config": config_payload,
        "result": {
            "started_at": to_iso8601(result.started_at),
            "ended_at": to_iso8601(result.ended_at),
            "duration_seconds": result.duration_seconds,
            "active_sessions": result.active_sessions,
            "regressions": result.total_regressions,
        },
        "workers": [
            {
                "worker_id": worker.worker_id,
                "final_state": worker.final_state.to_payload(),
                "stats": worker.stats.as_dict(),
            }
            for worker in result.workers
        ],
    }
