"""Base exception classes for the SSAI session runner.

Every error carries a machine-readable ``code``, a human ``message`` and an
optional ``details`` dict so log events and run reports can classify failures
without parsing strings.
"""

from __future__ import annotations

from typing import Any


class SessionRunnerError(Exception):
    """Root of the session runner exception hierarchy."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} (details: {self.details})"
        return f"{self.code}: {self.message}"


class ValidationError(SessionRunnerError):
    """Raised when a value fails structural validation."""

    pass


class ConfigurationError(SessionRunnerError):
    """Raised when run or worker configuration is unusable."""

    pass
