"""Deposit refund ledger: derives refund = deposit - penalty from dispute outcomes"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from rental_disputes.config import Settings, settings
from rental_disputes.domain.exceptions import InvalidStateError, NotFoundError, ValidationError
from rental_disputes.domain.models import (
    Actor,
    NotificationCategory,
    RefundStatus,
    TransactionType,
    ViolationStatus,
)
from rental_disputes.domain.penalties import aggregate_penalty, compute_refund_cents, item_deposit_cents
from rental_disputes.domain.workflow import Capability, authorize, is_settled
from rental_disputes.infrastructure.clients.bank_accounts import BankAccountRegistry
from rental_disputes.infrastructure.database.models import DepositRefund, RentalOrder
from rental_disputes.infrastructure.database.repositories import DepositRefundRepository, ViolationRepository
from rental_disputes.infrastructure.database.session import unit_of_work
from rental_disputes.infrastructure.observability.logging import log_refund_event
from rental_disputes.infrastructure.observability.metrics import refund_payout_counter
from rental_disputes.services.outbox import NotificationOutbox
from rental_disputes.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


def order_deposit_cents(order: RentalOrder) -> int:
    """Total security deposit held for the rental lines of an order"""
    return sum(
        item_deposit_cents(item.deposit_per_unit_cents, item.quantity)
        for item in order.items
        if item.transaction_type == TransactionType.RENTAL.value
    )


def append_note(existing: Optional[str], note: Optional[str]) -> Optional[str]:
    if not note:
        return existing
    if not existing:
        return note
    return f"{existing}\n{note}"


class DepositRefundReconciler:
    """Keeps exactly one refund entry per order consistent with its settled violations"""

    def __init__(
        self,
        db: Session,
        outbox: NotificationOutbox,
        bank_accounts: BankAccountRegistry | None = None,
        config: Settings = settings,
    ):
        self.db = db
        self.outbox = outbox
        self.refunds = DepositRefundRepository(db)
        self.violations = ViolationRepository(db)
        self.bank_accounts = bank_accounts or BankAccountRegistry()
        self.config = config

    def reconcile(
        self,
        order: RentalOrder,
        penalty_cents: int,
        notes: Optional[str] = None,
        violation_id: Optional[uuid.UUID] = None,
    ) -> DepositRefund:
        """
        Create or update the order's refund entry.

        Runs inside the caller's unit of work. `penalty_cents` is the penalty
        settled by this event; other settled violations of the order only count
        under the "sum" aggregation strategy.

        Raises:
            InvalidStateError: If the refund has already been paid out
        """
        others: List[int] = [
            v.penalty_cents
            for v in self.violations.list_by_order(order.id)
            if v.id != violation_id and is_settled(ViolationStatus(v.status))
        ]
        total_penalty = aggregate_penalty(self.config.penalty_aggregation, penalty_cents, others)

        refund = self.refunds.get_by_order(order.id)
        if refund is None:
            original = order_deposit_cents(order)
            refund = self.refunds.add(
                DepositRefund(
                    order_id=order.id,
                    customer_id=order.customer_id,
                    original_deposit_cents=original,
                    total_penalty_cents=total_penalty,
                    refund_cents=compute_refund_cents(original, total_penalty),
                    status=RefundStatus.INITIATED.value,
                    notes=notes,
                )
            )
            log_refund_event("created", refund.id, order.id, refund.status, refund.refund_cents)
            return refund

        if refund.status == RefundStatus.COMPLETED.value:
            raise InvalidStateError(
                f"Deposit refund {refund.id} for order {order.id} has already been paid out",
                entity=str(refund.id),
                field="status",
            )

        refund.total_penalty_cents = total_penalty
        refund.refund_cents = compute_refund_cents(refund.original_deposit_cents, total_penalty)
        refund.notes = append_note(refund.notes, notes)
        refund.updated_at = utcnow()
        log_refund_event("updated", refund.id, order.id, refund.status, refund.refund_cents)
        return refund

    async def process_payout(
        self,
        refund_id: uuid.UUID,
        actor: Actor,
        approve: bool,
        bank_account_id: Optional[uuid.UUID] = None,
        external_transaction_id: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> DepositRefund:
        """Operator decision on an initiated refund: pay it out or mark it failed"""
        authorize(actor, Capability.PROCESS_REFUND, entity=f"refund {refund_id}")

        if notes is not None and len(notes) > self.config.notes_max_length:
            raise ValidationError(
                f"Notes must be at most {self.config.notes_max_length} characters",
                entity=str(refund_id),
                field="notes",
            )
        if not approve and not (notes and notes.strip()):
            raise ValidationError("A reason is required to reject a refund", entity=str(refund_id), field="notes")

        with unit_of_work(self.db):
            refund = self._get_or_raise(refund_id)
            if refund.status != RefundStatus.INITIATED.value:
                raise InvalidStateError(
                    f"Deposit refund {refund_id} is already {refund.status}",
                    entity=str(refund_id),
                    field="status",
                )

            if approve:
                open_claims = [
                    v for v in self.violations.list_by_order(refund.order_id)
                    if not is_settled(ViolationStatus(v.status))
                ]
                if open_claims:
                    raise InvalidStateError(
                        f"Order {refund.order_id} still has {len(open_claims)} unsettled violation(s); "
                        "refund cannot be paid out",
                        entity=str(refund.order_id),
                        field="status",
                    )
                if bank_account_id is not None and not await self.bank_accounts.exists(
                    bank_account_id, refund.customer_id
                ):
                    raise ValidationError(
                        f"Bank account {bank_account_id} does not belong to customer {refund.customer_id}",
                        entity=str(bank_account_id),
                        field="bank_account_id",
                    )
                refund.status = RefundStatus.COMPLETED.value
                refund.refund_bank_account_id = bank_account_id
                refund.external_transaction_id = external_transaction_id
                message = f"Your deposit refund of {refund.refund_cents} cents has been paid out."
            else:
                refund.status = RefundStatus.FAILED.value
                message = f"Your deposit refund could not be processed: {notes}"

            refund.notes = append_note(refund.notes, notes)
            refund.processed_by_admin_id = actor.user_id
            refund.processed_at = utcnow()
            refund.updated_at = refund.processed_at
            self.outbox.add(refund.customer_id, message, NotificationCategory.REFUND, refund.order_id)

        refund_payout_counter.labels(outcome=refund.status).inc()
        log_refund_event("processed", refund.id, refund.order_id, refund.status, refund.refund_cents)
        return refund

    def reopen(self, refund_id: uuid.UUID, actor: Actor) -> DepositRefund:
        """Put a failed refund back into the operator queue"""
        authorize(actor, Capability.PROCESS_REFUND, entity=f"refund {refund_id}")

        with unit_of_work(self.db):
            refund = self._get_or_raise(refund_id)
            if refund.status != RefundStatus.FAILED.value:
                raise InvalidStateError(
                    f"Only failed refunds can be reopened; refund {refund_id} is {refund.status}",
                    entity=str(refund_id),
                    field="status",
                )
            refund.status = RefundStatus.INITIATED.value
            refund.processed_by_admin_id = None
            refund.processed_at = None
            refund.external_transaction_id = None
            refund.updated_at = utcnow()

        log_refund_event("reopened", refund.id, refund.order_id, refund.status, refund.refund_cents)
        return refund

    # ------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------

    def get_refund(self, refund_id: uuid.UUID, actor: Actor) -> DepositRefund:
        refund = self._get_or_raise(refund_id)
        authorize(actor, Capability.VIEW, customer_id=refund.customer_id, entity=f"refund {refund_id}")
        return refund

    def list_refunds(self, actor: Actor, status: Optional[RefundStatus] = None) -> List[DepositRefund]:
        authorize(actor, Capability.PROCESS_REFUND, entity="refund queue")
        return self.refunds.list(status.value if status else None)

    def customer_refunds(self, customer_id: uuid.UUID, actor: Actor) -> List[DepositRefund]:
        authorize(actor, Capability.VIEW, customer_id=customer_id, entity=f"refunds of customer {customer_id}")
        return self.refunds.list_by_customer(customer_id)

    def pending_count(self, actor: Actor) -> int:
        authorize(actor, Capability.PROCESS_REFUND, entity="refund queue")
        return self.refunds.count_by_status(RefundStatus.INITIATED.value)

    def _get_or_raise(self, refund_id: uuid.UUID) -> DepositRefund:
        refund = self.refunds.get(refund_id)
        if refund is None:
            raise NotFoundError(f"Deposit refund {refund_id} not found", entity=str(refund_id))
        return refund
