"""Notification sink client - fire-and-forget delivery of workflow messages"""

import logging
from typing import Iterable

import httpx

from rental_disputes.config import settings
from rental_disputes.domain.models import Notification
from rental_disputes.infrastructure.observability.metrics import notification_failure_counter

logger = logging.getLogger(__name__)


class NotificationClient:
    """Client for the external notification service (push/email fan-out lives there)"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.notification_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def notify(self, notification: Notification) -> bool:
        """
        Deliver one notification. Failures are logged and counted, never raised.

        Returns:
            True when the sink accepted the message
        """
        payload = {
            "user_id": str(notification.user_id),
            "message": notification.message,
            "category": notification.category.value,
            "related_order_id": str(notification.related_order_id) if notification.related_order_id else None,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(f"{self.base_url}/notifications", json=payload)
                response.raise_for_status()
            return True
        except httpx.HTTPError as e:
            notification_failure_counter.inc()
            logger.warning(
                f"Notification delivery failed: {e}",
                extra={"user_id": payload["user_id"], "category": payload["category"]},
            )
            return False

    async def deliver_all(self, notifications: Iterable[Notification]) -> int:
        """Send queued notifications in order; returns how many were delivered"""
        delivered = 0
        for notification in notifications:
            if await self.notify(notification):
                delivered += 1
        return delivered
