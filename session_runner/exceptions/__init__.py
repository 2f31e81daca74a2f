"""Exception taxonomy for the SSAI session runner.

Configuration-time errors (``ConfigurationError``, ``ValidationError`` and the
curve errors) stop a run before any worker starts. Per-cycle errors
(``NetworkError``, ``ManifestParseError``, ``NotificationDeliveryError``) are
logged and absorbed by the worker loop.
"""

from session_runner.exceptions.base import (
    ConfigurationError,
    SessionRunnerError,
    ValidationError,
)
from session_runner.exceptions.curve import (
    InvalidCurveError,
    UnsupportedGrowthPatternError,
)
from session_runner.exceptions.transport import (
    ManifestParseError,
    NetworkError,
    NotificationDeliveryError,
)

__all__ = [
    # Base exceptions
    "SessionRunnerError",
    "ValidationError",
    "ConfigurationError",
    # Configuration time
    "InvalidCurveError",
    "UnsupportedGrowthPatternError",
    # Per cycle
    "NetworkError",
    "ManifestParseError",
    "NotificationDeliveryError",
]
