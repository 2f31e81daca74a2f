"""Per-cycle exceptions raised by network collaborators.

These never escape a worker cycle. They are raised inside the manifest
client and notifier and converted into log events and absent results.
"""

from session_runner.exceptions.base import SessionRunnerError


class NetworkError(SessionRunnerError):
    """Endpoint unreachable, timed out, or answered with a non-2xx status."""

    pass


class ManifestParseError(SessionRunnerError):
    """Manifest text is malformed or has an unexpected playlist shape."""

    pass


class NotificationDeliveryError(SessionRunnerError):
    """A regression alert could not be handed to the notification channel."""

    pass
