"""Reflects the violation ledger back onto the owning order's status"""

import logging

from sqlalchemy.orm import Session

from rental_disputes.domain.models import NotificationCategory, OrderStatus, ViolationStatus
from rental_disputes.domain.order_status import derive_order_status
from rental_disputes.infrastructure.database.models import RentalOrder
from rental_disputes.infrastructure.database.repositories import ViolationRepository
from rental_disputes.services.outbox import NotificationOutbox
from rental_disputes.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


class OrderStatusBridge:
    """Recomputes order status from the full violation set inside the caller's transaction"""

    def __init__(self, db: Session, outbox: NotificationOutbox):
        self.violations = ViolationRepository(db)
        self.outbox = outbox

    def recompute(self, order: RentalOrder) -> OrderStatus:
        """Re-read every violation of the order and apply the derived status"""
        violations = self.violations.list_by_order(order.id)
        current = OrderStatus(order.status)
        derived = derive_order_status(current, [ViolationStatus(v.status) for v in violations])

        if derived == current:
            return current

        order.status = derived.value
        order.updated_at = utcnow()
        logger.info(
            f"Order status {current.value} -> {derived.value}",
            extra={"order_id": str(order.id), "step": "order_status_changed"},
        )

        if derived == OrderStatus.RETURNED:
            self.outbox.add(
                order.customer_id,
                "All violation issues have been resolved. Your order has been marked as returned.",
                NotificationCategory.ORDER,
                order.id,
            )
            self.outbox.add(
                order.provider_id,
                f"All violation issues for order #{order.id} have been resolved. Order status updated to returned.",
                NotificationCategory.ORDER,
                order.id,
            )

        return derived
