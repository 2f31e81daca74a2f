"""Volume curve exceptions.

Both are fatal at configuration time: a worker whose curve cannot be
evaluated must never start.
"""

from session_runner.exceptions.base import ConfigurationError, ValidationError


class InvalidCurveError(ValidationError):
    """Raised when checkpoints are empty, unordered, duplicated or negative."""

    pass


class UnsupportedGrowthPatternError(ConfigurationError):
    """Raised when a curve requests a growth pattern with no evaluator."""

    pass
