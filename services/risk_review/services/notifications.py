"""
Notification Service
====================

Outbound notifications for status changes and escalations.

Backends:
- WebhookNotifier: POSTs JSON events with httpx (NOTIFY_WEBHOOK_URL)
- LogNotifier: logs events only, used when no webhook is configured

Delivery failures are logged and never raised to the caller.

Version: 0.1.0
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

import httpx

from shared.config import settings
from shared.logging import get_logger
from shared.models import SubmissionStatus
from services.risk_review.services.workflow import EscalationTier


logger = get_logger(__name__)


class Notifier(ABC):
    """Delivers one notification event."""

    @abstractmethod
    async def send(self, event: str, payload: dict[str, Any]) -> None:
        ...

    async def close(self) -> None:
        return None


class LogNotifier(Notifier):
    """Notifier that only writes a log line."""

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("notification_logged", notification_event=event, **payload)


class WebhookNotifier(Notifier):
    """Notifier that POSTs events to a webhook."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._client = httpx.AsyncClient(timeout=httpx.Timeout(timeout), transport=transport)

    async def send(self, event: str, payload: dict[str, Any]) -> None:
        body = {
            "event": event,
            "sent_at": datetime.now(UTC).isoformat(),
            "data": payload,
        }
        response = await self._client.post(self.url, json=body)
        response.raise_for_status()
        logger.debug("notification_sent", notification_event=event, status_code=response.status_code)

    async def close(self) -> None:
        await self._client.aclose()


def create_notifier() -> Notifier:
    """Webhook notifier when configured, log notifier otherwise."""
    if settings.notifications.enabled:
        return WebhookNotifier(
            settings.notifications.webhook_url,
            timeout=settings.notifications.timeout_seconds,
        )
    return LogNotifier()


class NotificationService:
    """
    Builds notification events and hands them to a notifier.

    Every public method swallows delivery errors.
    """

    def __init__(self, notifier: Notifier | None = None) -> None:
        self.notifier = notifier or LogNotifier()

    async def _deliver(self, event: str, payload: dict[str, Any]) -> bool:
        try:
            await self.notifier.send(event, payload)
            return True
        except Exception as e:
            logger.warning("notification_failed", notification_event=event, error=str(e))
            return False

    async def submission_received(
        self,
        submission_id: str,
        submitted_by_id: str,
        system_name: str | None,
    ) -> bool:
        return await self._deliver(
            "submission.received",
            {
                "submission_id": submission_id,
                "recipient_id": submitted_by_id,
                "system_name": system_name,
            },
        )

    async def status_changed(
        self,
        submission_id: str,
        submitted_by_id: str,
        system_name: str | None,
        new_status: SubmissionStatus,
        notes: str | None = None,
    ) -> bool:
        return await self._deliver(
            "submission.status_changed",
            {
                "submission_id": submission_id,
                "recipient_id": submitted_by_id,
                "system_name": system_name,
                "new_status": new_status.value,
                "notes": notes,
            },
        )

    async def escalated(
        self,
        submission_id: str,
        system_name: str | None,
        tier: EscalationTier,
    ) -> bool:
        return await self._deliver(
            "submission.escalated",
            {
                "submission_id": submission_id,
                "system_name": system_name,
                "level": tier.level,
                "action": tier.action,
                "notify_roles": list(tier.notify_roles),
            },
        )

    async def close(self) -> None:
        await self.notifier.close()
