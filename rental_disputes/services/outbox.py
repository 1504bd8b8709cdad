"""Per-command queue of notifications, dispatched only after the transaction commits"""

import uuid
from typing import List, Optional

from rental_disputes.domain.models import Notification, NotificationCategory


class NotificationOutbox:
    """Collects counterparty notifications produced while a command runs"""

    def __init__(self) -> None:
        self._pending: List[Notification] = []

    def add(
        self,
        user_id: uuid.UUID,
        message: str,
        category: NotificationCategory = NotificationCategory.DISPUTE,
        related_order_id: Optional[uuid.UUID] = None,
    ) -> None:
        self._pending.append(
            Notification(
                user_id=user_id,
                message=message,
                category=category,
                related_order_id=related_order_id,
            )
        )

    def drain(self) -> List[Notification]:
        """Hand over everything queued so far and start empty"""
        pending, self._pending = self._pending, []
        return pending
