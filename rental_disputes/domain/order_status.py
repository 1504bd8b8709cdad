"""Order status derived from the full set of violations filed against it"""

from typing import Iterable

from rental_disputes.domain.models import OrderStatus, ViolationStatus
from rental_disputes.domain.workflow import is_settled

INSPECTION_STATUSES = frozenset({OrderStatus.RETURNING, OrderStatus.RETURNED_WITH_ISSUE})


def accepts_violations(status: OrderStatus) -> bool:
    """Violations may only be filed while the order is under return inspection"""
    return status in INSPECTION_STATUSES


def derive_order_status(current: OrderStatus, violation_statuses: Iterable[ViolationStatus]) -> OrderStatus:
    """
    Recompute the order status from scratch.

    - returning + any violation                        -> returned_with_issue
    - returned_with_issue + every violation settled    -> returned
    Everything else keeps the current status.
    """
    statuses = list(violation_statuses)
    if not statuses:
        return current

    if current == OrderStatus.RETURNING:
        current = OrderStatus.RETURNED_WITH_ISSUE

    if current == OrderStatus.RETURNED_WITH_ISSUE and all(is_settled(s) for s in statuses):
        return OrderStatus.RETURNED

    return current
