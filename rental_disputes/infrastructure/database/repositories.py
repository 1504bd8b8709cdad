"""Data access layer for orders, violations, resolutions and deposit refunds"""

import uuid
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session, selectinload

from rental_disputes.infrastructure.database.models import (
    DepositRefund,
    IssueResolution,
    RentalOrder,
    RentalOrderItem,
    RentalViolation,
    RentalViolationImage,
)


class OrderRepository:
    """Repository for marketplace orders"""

    def __init__(self, db: Session):
        self.db = db

    def get_order(self, order_id: uuid.UUID) -> Optional[RentalOrder]:
        """Fetch order with its items"""
        return (
            self.db.query(RentalOrder)
            .options(selectinload(RentalOrder.items))
            .filter(RentalOrder.id == order_id)
            .first()
        )


class ViolationRepository:
    """Repository for rental violations and their evidence"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, violation: RentalViolation) -> RentalViolation:
        self.db.add(violation)
        self.db.flush()  # Get ID without committing
        return violation

    def add_evidence(self, violation: RentalViolation, url: str, uploaded_by: str, file_type: str) -> RentalViolationImage:
        image = RentalViolationImage(
            violation_id=violation.id,
            url=url,
            uploaded_by=uploaded_by,
            file_type=file_type,
        )
        violation.images.append(image)
        return image

    def get(self, violation_id: uuid.UUID) -> Optional[RentalViolation]:
        """Fetch violation with its order item and owning order"""
        return (
            self.db.query(RentalViolation)
            .options(
                selectinload(RentalViolation.order_item).selectinload(RentalOrderItem.order),
                selectinload(RentalViolation.images),
            )
            .filter(RentalViolation.id == violation_id)
            .first()
        )

    def list_by_order(self, order_id: uuid.UUID) -> List[RentalViolation]:
        """All violations of an order, re-read from the database"""
        self.db.flush()
        return (
            self.db.query(RentalViolation)
            .join(RentalOrderItem, RentalViolation.order_item_id == RentalOrderItem.id)
            .filter(RentalOrderItem.order_id == order_id)
            .order_by(RentalViolation.created_at)
            .all()
        )

    def exists_for_order_item(self, order_item_id: uuid.UUID) -> bool:
        return (
            self.db.query(RentalViolation.id)
            .filter(RentalViolation.order_item_id == order_item_id)
            .first()
            is not None
        )

    def list_by_party(self, user_id: uuid.UUID, as_provider: bool) -> List[RentalViolation]:
        """Violations where the user is the order's provider (or customer)"""
        owner_column = RentalOrder.provider_id if as_provider else RentalOrder.customer_id
        return (
            self.db.query(RentalViolation)
            .join(RentalOrderItem, RentalViolation.order_item_id == RentalOrderItem.id)
            .join(RentalOrder, RentalOrderItem.order_id == RentalOrder.id)
            .filter(owner_column == user_id)
            .order_by(RentalViolation.created_at.desc())
            .all()
        )

    def list_by_status(self, status: str) -> List[RentalViolation]:
        """Oldest first, as an admin work queue"""
        return (
            self.db.query(RentalViolation)
            .filter(RentalViolation.status == status)
            .order_by(RentalViolation.created_at)
            .all()
        )


class ResolutionRepository:
    """Repository for admin issue resolutions"""

    def __init__(self, db: Session):
        self.db = db

    def create(self, resolution: IssueResolution) -> IssueResolution:
        self.db.add(resolution)
        self.db.flush()
        return resolution

    def get_by_violation(self, violation_id: uuid.UUID) -> Optional[IssueResolution]:
        return (
            self.db.query(IssueResolution)
            .filter(IssueResolution.violation_id == violation_id)
            .first()
        )


class DepositRefundRepository:
    """Repository for deposit refund ledger entries"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, refund: DepositRefund) -> DepositRefund:
        self.db.add(refund)
        self.db.flush()
        return refund

    def get(self, refund_id: uuid.UUID) -> Optional[DepositRefund]:
        return self.db.get(DepositRefund, refund_id)

    def get_by_order(self, order_id: uuid.UUID) -> Optional[DepositRefund]:
        return (
            self.db.query(DepositRefund)
            .filter(DepositRefund.order_id == order_id)
            .first()
        )

    def list(self, status: Optional[str] = None) -> List[DepositRefund]:
        query = self.db.query(DepositRefund)
        if status is not None:
            query = query.filter(DepositRefund.status == status)
        return query.order_by(DepositRefund.created_at.desc()).all()

    def list_by_customer(self, customer_id: uuid.UUID) -> List[DepositRefund]:
        return (
            self.db.query(DepositRefund)
            .filter(DepositRefund.customer_id == customer_id)
            .order_by(DepositRefund.created_at.desc())
            .all()
        )

    def count_by_status(self, status: str) -> int:
        return (
            self.db.query(func.count(DepositRefund.id))
            .filter(DepositRefund.status == status)
            .scalar()
        )
