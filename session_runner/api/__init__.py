"""Run report builders."""

from __future__ import annotations

__all__ = ["build_run_report"]

from session_runner.api.report import build_run_report
