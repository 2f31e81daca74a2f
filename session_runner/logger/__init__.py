"""Logger module for the SSAI session runner.

Usage:
    from session_runner.logger import Logger, session_logger

    session_logger.info("worker.cycle_start", event="worker.cycle_start", worker_id=0)

    # Or implement your own
    class MyCustomLogger(Logger):
        def info(self, message: str, **kwargs):
            ...
"""

import logging
import os

from session_runner.logger.base import Logger
from session_runner.logger.console_logger import ConsoleLogger

# Shared logger instance for modules that just need basic console logging
session_logger: Logger = ConsoleLogger(
    level=logging.DEBUG if os.environ.get("SSAI_SIM_DEBUG") else logging.INFO,
    json_format=os.environ.get("SSAI_SIM_LOG_FORMAT", "").lower() == "json",
)

__all__ = [
    "Logger",
    "ConsoleLogger",
    "session_logger",
]
