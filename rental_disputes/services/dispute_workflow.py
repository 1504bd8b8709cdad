"""Dispute state machine driven by the customer and provider of an order"""

import uuid
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from rental_disputes.config import Settings, settings
from rental_disputes.domain.evidence import classify_file, validate_evidence_files
from rental_disputes.domain.exceptions import NotFoundError, ValidationError
from rental_disputes.domain.models import (
    Actor,
    EvidenceFile,
    EvidenceUploader,
    NotificationCategory,
    ViolationStatus,
)
from rental_disputes.domain.workflow import Capability, Party, authorize, ensure_status, ensure_transition
from rental_disputes.infrastructure.clients.evidence_store import EvidenceStoreClient
from rental_disputes.infrastructure.database.models import RentalViolation
from rental_disputes.infrastructure.database.repositories import ViolationRepository
from rental_disputes.infrastructure.database.session import unit_of_work
from rental_disputes.infrastructure.observability.logging import log_violation_event
from rental_disputes.infrastructure.observability.metrics import record_customer_response
from rental_disputes.services.order_status_bridge import OrderStatusBridge
from rental_disputes.services.outbox import NotificationOutbox
from rental_disputes.services.refund_reconciler import DepositRefundReconciler
from rental_disputes.services.violation_ledger import discard_uploads, validate_text
from rental_disputes.utils.date_utils import utcnow


class DisputeWorkflow:
    """PENDING -> CUSTOMER_ACCEPTED | CUSTOMER_REJECTED, plus annotations on rejected claims"""

    def __init__(
        self,
        db: Session,
        evidence_store: EvidenceStoreClient,
        outbox: NotificationOutbox,
        reconciler: DepositRefundReconciler | None = None,
        config: Settings = settings,
    ):
        self.db = db
        self.evidence_store = evidence_store
        self.outbox = outbox
        self.config = config
        self.violations = ViolationRepository(db)
        self.reconciler = reconciler or DepositRefundReconciler(db, outbox, config=config)
        self.bridge = OrderStatusBridge(db, outbox)

    async def customer_respond(
        self,
        violation_id: uuid.UUID,
        actor: Actor,
        accept: bool,
        notes: Optional[str] = None,
        evidence: Sequence[EvidenceFile] = (),
    ) -> RentalViolation:
        """
        Customer accepts or rejects a pending claim.

        Accepting settles the claim immediately: the deposit refund is
        reconciled with the violation's current penalty and the order status
        recomputed. Rejecting puts the claim in the admin dispute queue.
        """
        target = ViolationStatus.CUSTOMER_ACCEPTED if accept else ViolationStatus.CUSTOMER_REJECTED

        if notes is not None and len(notes) > self.config.notes_max_length:
            raise ValidationError(
                f"Notes must be at most {self.config.notes_max_length} characters",
                entity=str(violation_id),
                field="notes",
            )
        if not accept and not (notes and notes.strip()):
            raise ValidationError("A reason is required to reject a violation", entity=str(violation_id), field="notes")
        if accept and evidence:
            raise ValidationError(
                "Counter-evidence can only accompany a rejection",
                entity=str(violation_id),
                field="evidence",
            )
        validate_evidence_files(evidence, self.config.max_image_bytes, self.config.max_video_bytes)

        uploaded: List[str] = []
        try:
            with unit_of_work(self.db):
                violation = self._get_violation(violation_id)
                order = violation.order_item.order
                authorize(
                    actor,
                    Capability.RESPOND_TO_VIOLATION,
                    customer_id=order.customer_id,
                    entity=f"violation {violation_id}",
                )
                ensure_transition(violation.id, ViolationStatus(violation.status), target)

                violation.status = target.value
                violation.customer_notes = notes
                violation.customer_response_at = utcnow()
                violation.updated_at = violation.customer_response_at

                if accept:
                    self.reconciler.reconcile(
                        order,
                        violation.penalty_cents,
                        notes=f"Customer accepted violation {violation.id}: penalty {violation.penalty_cents}",
                        violation_id=violation.id,
                    )
                    self.outbox.add(
                        order.provider_id,
                        "Customer has accepted the violation claim. The penalty will be deducted from the deposit.",
                        NotificationCategory.DISPUTE,
                        order.id,
                    )
                    self.bridge.recompute(order)
                else:
                    for file in evidence:
                        url = await self.evidence_store.upload(
                            file.content, file.filename, file.content_type, actor.user_id
                        )
                        uploaded.append(url)
                        self.violations.add_evidence(
                            violation, url, EvidenceUploader.CUSTOMER.value, classify_file(file.filename)
                        )
                    self.outbox.add(
                        order.provider_id,
                        "Customer has rejected the violation claim. You can adjust the claim or escalate to admin for review.",
                        NotificationCategory.DISPUTE,
                        order.id,
                    )
        except Exception:
            await discard_uploads(self.evidence_store, uploaded)
            raise

        record_customer_response(accept)
        log_violation_event(
            "accepted" if accept else "rejected",
            violation.id,
            order.id,
            violation.status,
            actor.user_id,
            violation.penalty_cents,
        )
        return violation

    def provider_reply(self, violation_id: uuid.UUID, actor: Actor, response: str) -> RentalViolation:
        """Provider answers the customer's rejection notes; no state change"""
        validate_text(response, "response", 1, self.config.notes_max_length, str(violation_id))

        with unit_of_work(self.db):
            violation = self._get_violation(violation_id)
            order = violation.order_item.order
            authorize(
                actor,
                Capability.REPLY_TO_CUSTOMER,
                provider_id=order.provider_id,
                entity=f"violation {violation_id}",
            )
            ensure_status(violation.id, ViolationStatus(violation.status), ViolationStatus.CUSTOMER_REJECTED, "reply to")

            violation.provider_response_to_customer = response
            violation.provider_response_at = utcnow()
            violation.updated_at = violation.provider_response_at
            self.outbox.add(
                order.customer_id,
                "The provider has responded to your rejection of a violation claim.",
                NotificationCategory.DISPUTE,
                order.id,
            )

        log_violation_event("provider_replied", violation.id, order.id, violation.status, actor.user_id)
        return violation

    def escalate(self, violation_id: uuid.UUID, actor: Actor, reason: str) -> RentalViolation:
        """Either party annotates a rejected claim for the admin; the status is unchanged"""
        validate_text(
            reason,
            "escalation_reason",
            self.config.reason_min_length,
            self.config.notes_max_length,
            str(violation_id),
        )

        with unit_of_work(self.db):
            violation = self._get_violation(violation_id)
            order = violation.order_item.order
            party = authorize(
                actor,
                Capability.ESCALATE,
                provider_id=order.provider_id,
                customer_id=order.customer_id,
                entity=f"violation {violation_id}",
            )
            ensure_status(violation.id, ViolationStatus(violation.status), ViolationStatus.CUSTOMER_REJECTED, "escalate")

            if party == Party.ORDER_PROVIDER:
                violation.provider_escalation_reason = reason
                counterparty, who = order.customer_id, "Provider"
            else:
                violation.customer_escalation_reason = reason
                counterparty, who = order.provider_id, "Customer"
            violation.updated_at = utcnow()

            self.outbox.add(
                counterparty,
                f"{who} has escalated the violation dispute to admin for review.",
                NotificationCategory.DISPUTE,
                order.id,
            )

        log_violation_event("escalated", violation.id, order.id, violation.status, actor.user_id)
        return violation

    def _get_violation(self, violation_id: uuid.UUID) -> RentalViolation:
        violation = self.violations.get(violation_id)
        if violation is None:
            raise NotFoundError(f"Violation {violation_id} not found", entity=str(violation_id))
        return violation
