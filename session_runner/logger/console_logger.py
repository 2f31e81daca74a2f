from __future__ import annotations

import json
import logging
import sys
from typing import Any

from session_runner.logger.base import Logger

_REDACTED = "[REDACTED]"
_SECRET_MARKERS = ("token", "authorization", "password", "secret", "api_key")
_MAX_FIELD_CHARS = 2000

# Fixed labels; streamlink re-registers the stdlib level names in lowercase.
_LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARNING",
    logging.ERROR: "ERROR",
}


def _sanitize(key: str, value: Any) -> Any:
    lowered = key.lower()
    if any(marker in lowered for marker in _SECRET_MARKERS):
        return _REDACTED
    if isinstance(value, str) and len(value) > _MAX_FIELD_CHARS:
        return value[:_MAX_FIELD_CHARS] + "...[truncated]"
    return value


def _level_name(level: int) -> str:
    return _LEVEL_NAMES.get(level, f"LEVEL{level}")


class ConsoleLogger(Logger):
    """Structured logger writing to stdout through the stdlib ``logging`` module.

    Plain mode renders ``message key=value ...``; ``json_format=True`` renders
    one JSON object per line with ``level`` and ``message`` keys added.
    """

    def __init__(
        self,
        name: str = "session_runner",
        *,
        level: int = logging.INFO,
        json_format: bool = False,
    ) -> None:
        self._json_format = json_format
        self._logger = logging.getLogger(name)
        self._logger.setLevel(level)
        self._logger.propagate = False
        if not self._logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(logging.Formatter("%(asctime)s %(level_name)s %(message)s"))
            self._logger.addHandler(handler)

    def debug(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, message, kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        self._emit(logging.ERROR, message, kwargs)

    def format(self, level: int, message: str, fields: dict[str, Any]) -> str:
        clean = {key: _sanitize(key, value) for key, value in fields.items()}
        if self._json_format:
            payload = {"level": _level_name(level), "message": message, **clean}
            return json.dumps(payload, default=str, sort_keys=True)
        if not clean:
            return message
        rendered = " ".join(f"{key}={value!r}" for key, value in clean.items())
        return f"{message} {rendered}"

    def _emit(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(
            level,
            self.format(level, message, fields),
            extra={"level_name": _level_name(level)},
        )
