"""SQLAlchemy ORM models for orders, violations, resolutions and deposit refunds"""

import uuid
from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    Text,
    Uuid,
)
from sqlalchemy.orm import declarative_base, relationship

from rental_disputes.utils.date_utils import utcnow

Base = declarative_base()


class RentalOrder(Base):
    """Order owned by the marketplace; source of truth for deposits"""

    __tablename__ = "rental_order"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid, nullable=False, index=True)
    provider_id = Column(Uuid, nullable=False, index=True)
    status = Column(Text, nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship("RentalOrderItem", back_populates="order", cascade="all, delete-orphan")
    deposit_refund = relationship("DepositRefund", back_populates="order", uselist=False)


class RentalOrderItem(Base):
    """Single product line of an order"""

    __tablename__ = "rental_order_item"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("rental_order.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Uuid, nullable=False)
    product_name = Column(Text, nullable=False, default="")
    transaction_type = Column(Text, nullable=False, default="rental")
    quantity = Column(Integer, nullable=False, default=1)
    deposit_per_unit_cents = Column(BigInteger, nullable=False, default=0)

    order = relationship("RentalOrder", back_populates="items")
    violations = relationship("RentalViolation", back_populates="order_item")


class RentalViolation(Base):
    """Provider's claim against one returned order item"""

    __tablename__ = "rental_violation"
    __table_args__ = (
        CheckConstraint("penalty_cents >= 0", name="ck_violation_penalty_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_item_id = Column(
        Uuid, ForeignKey("rental_order_item.id", ondelete="CASCADE"), nullable=False, unique=True, index=True
    )
    violation_type = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    damage_percentage = Column(Float, nullable=True)
    penalty_percentage = Column(Float, nullable=False, default=0.0)
    penalty_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(Text, nullable=False, default="PENDING", index=True)
    customer_notes = Column(Text, nullable=True)
    customer_response_at = Column(DateTime(timezone=True), nullable=True)
    provider_response_to_customer = Column(Text, nullable=True)
    provider_response_at = Column(DateTime(timezone=True), nullable=True)
    provider_escalation_reason = Column(Text, nullable=True)
    customer_escalation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)

    order_item = relationship("RentalOrderItem", back_populates="violations")
    images = relationship("RentalViolationImage", back_populates="violation", cascade="all, delete-orphan")
    resolution = relationship("IssueResolution", back_populates="violation", uselist=False)

    # Optimistic concurrency: a stale UPDATE raises StaleDataError
    __mapper_args__ = {"version_id_col": version}


class RentalViolationImage(Base):
    """Evidence reference stored in the external evidence store"""

    __tablename__ = "rental_violation_image"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    violation_id = Column(Uuid, ForeignKey("rental_violation.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    uploaded_by = Column(Text, nullable=False)
    file_type = Column(Text, nullable=False, default="image")
    uploaded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    violation = relationship("RentalViolation", back_populates="images")


class IssueResolution(Base):
    """Admin's final ruling on a violation; written once"""

    __tablename__ = "issue_resolution"
    __table_args__ = (
        CheckConstraint("customer_fine_cents >= 0", name="ck_resolution_fine_non_negative"),
        CheckConstraint("provider_compensation_cents >= 0", name="ck_resolution_compensation_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    violation_id = Column(Uuid, ForeignKey("rental_violation.id"), nullable=False, unique=True)
    resolution_type = Column(Text, nullable=False)
    customer_fine_cents = Column(BigInteger, nullable=False)
    provider_compensation_cents = Column(BigInteger, nullable=False)
    reason = Column(Text, nullable=False)
    resolution_status = Column(Text, nullable=False, default="PENDING")
    processed_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    processed_by_admin_id = Column(Uuid, nullable=False)

    violation = relationship("RentalViolation", back_populates="resolution")


class DepositRefund(Base):
    """Deposit money-movement record; at most one per order"""

    __tablename__ = "deposit_refund"
    __table_args__ = (
        CheckConstraint("refund_cents >= 0", name="ck_refund_non_negative"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id = Column(Uuid, ForeignKey("rental_order.id"), nullable=False, unique=True)
    customer_id = Column(Uuid, nullable=False, index=True)
    original_deposit_cents = Column(BigInteger, nullable=False)
    total_penalty_cents = Column(BigInteger, nullable=False, default=0)
    refund_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="initiated", index=True)
    refund_bank_account_id = Column(Uuid, nullable=True)
    notes = Column(Text, nullable=True)
    processed_by_admin_id = Column(Uuid, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    external_transaction_id = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)

    order = relationship("RentalOrder", back_populates="deposit_refund")

    __mapper_args__ = {"version_id_col": version}
