"""Regression alerts.

``RegressionNotifier`` formats the alert and hands it to a
``NotificationChannel``. Delivery problems are logged and reported as an
absent delivery id; they never fail the worker cycle that raised the alert.
"""

from __future__ import annotations

import re
import uuid
from typing import Protocol

import httpx

from session_runner.exceptions import NotificationDeliveryError
from session_runner.logger import Logger, session_logger

REGRESSION_SUBJECT = "Discontinuity sequence is decreased"

_HEADER = "=========="
_FOOTER = "----------"


class NotificationChannel(Protocol):
    async def publish(self, subject: str, body: str) -> str: ...


def trim_message(message: str) -> str:
    """Drop surrounding whitespace, blank lines and per-line indentation."""
    return re.sub(r"\n\s*", "\n", message.strip())


def format_regression_alert(
    session_url: str,
    observed_at: str,
    previous_sequence: int,
    current_sequence: int,
) -> str:
    return trim_message(
        f"""
        {_HEADER}
        Invalid manifest: {session_url}
        Date: {observed_at}
        #EXT-X-DISCONTINUITY_SEQUENCE is decreased from {previous_sequence} to {current_sequence}
        {_FOOTER}
        """
    )


class LogChannel:
    """Delivers alerts to the structured log only."""

    def __init__(self, *, logger: Logger | None = None) -> None:
        self._logger = logger or session_logger

    async def publish(self, subject: str, body: str) -> str:
        message_id = str(uuid.uuid4())
        self._logger.warning(
            "notify.alert",
            event="notify.alert",
            subject=subject,
            body=body,
            message_id=message_id,
        )
        return message_id


class WebhookChannel:
    """POSTs ``{"subject": ..., "body": ...}`` to a webhook URL."""

    def __init__(
        self,
        webhook_url: str,
        *,
        timeout_seconds: float = 10.0,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._http = http or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def aclose(self) -> None:
        await self._http.aclose()

    async def publish(self, subject: str, body: str) -> str:
        try:
            response = await self._http.post(
                self._webhook_url,
                json={"subject": subject, "body": body},
            )
        except httpx.HTTPError as exc:
            raise NotificationDeliveryError(
                "WEBHOOK_UNREACHABLE",
                str(exc) or type(exc).__name__,
                details={"webhook_url": self._webhook_url},
            ) from exc

        if not response.is_success:
            raise NotificationDeliveryError(
                "WEBHOOK_REJECTED",
                f"webhook returned {response.status_code}",
                details={"webhook_url": self._webhook_url, "status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError:
            payload = None
        if isinstance(payload, dict):
            message_id = payload.get("id") or payload.get("MessageId")
            if message_id:
                return str(message_id)
        return str(uuid.uuid4())


class RegressionNotifier:
    def __init__(self, channel: NotificationChannel, *, logger: Logger | None = None) -> None:
        self._channel = channel
        self._logger = logger or session_logger

    async def notify(
        self,
        session_url: str,
        observed_at: str,
        previous_sequence: int,
        current_sequence: int,
    ) -> str | None:
        """Send a regression alert; return the delivery id or ``None`` if delivery failed."""
        body = format_regression_alert(session_url, observed_at, previous_sequence, current_sequence)
        try:
            message_id = await self._channel.publish(REGRESSION_SUBJECT, body)
        except NotificationDeliveryError as exc:
            self._logger.error(
                "notify.delivery_failed",
                event="notify.delivery_failed",
                session_url=session_url,
                error_type=exc.code,
                error=exc.message,
            )
            return None
        except Exception as exc:
            self._logger.error(
                "notify.delivery_failed",
                event="notify.delivery_failed",
                session_url=session_url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

        self._logger.info(
            "notify.sent",
            event="notify.sent",
            session_url=session_url,
            previous_sequence=previous_sequence,
            current_sequence=current_sequence,
            message_id=message_id,
        )
        return message_id
