"""Violation ledger: filing, resubmitting and reading provider claims"""

import logging
import uuid
from dataclasses import dataclass
from typing import List, Sequence

from sqlalchemy.orm import Session

from rental_disputes.config import Settings, settings
from rental_disputes.domain.evidence import classify_file, validate_evidence_files
from rental_disputes.domain.exceptions import (
    InvalidStateError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from rental_disputes.domain.models import (
    Actor,
    ActorRole,
    EvidenceFile,
    EvidenceUploader,
    NotificationCategory,
    OrderStatus,
    ViolationPatch,
    ViolationSpec,
    ViolationStatus,
)
from rental_disputes.domain.order_status import accepts_violations
from rental_disputes.domain.penalties import (
    compute_refund_cents,
    item_deposit_cents,
    validate_penalty,
    validate_percentage,
)
from rental_disputes.domain.workflow import Capability, authorize, ensure_transition
from rental_disputes.infrastructure.clients.evidence_store import EvidenceStoreClient
from rental_disputes.infrastructure.database.models import RentalOrder, RentalOrderItem, RentalViolation
from rental_disputes.infrastructure.database.repositories import OrderRepository, ViolationRepository
from rental_disputes.infrastructure.database.session import unit_of_work
from rental_disputes.infrastructure.observability.logging import log_violation_event
from rental_disputes.infrastructure.observability.metrics import violations_filed_counter
from rental_disputes.services.order_status_bridge import OrderStatusBridge
from rental_disputes.services.outbox import NotificationOutbox
from rental_disputes.utils.date_utils import utcnow

logger = logging.getLogger(__name__)


def violation_deposit_cents(violation: RentalViolation) -> int:
    item = violation.order_item
    return item_deposit_cents(item.deposit_per_unit_cents, item.quantity)


@dataclass
class ViolationDetail:
    """Violation with the money it puts at stake"""

    violation: RentalViolation
    deposit_cents: int
    refund_cents: int


def describe(violation: RentalViolation) -> ViolationDetail:
    deposit = violation_deposit_cents(violation)
    return ViolationDetail(
        violation=violation,
        deposit_cents=deposit,
        refund_cents=compute_refund_cents(deposit, violation.penalty_cents),
    )


def validate_text(value: str, field: str, min_length: int, max_length: int, entity: str) -> None:
    length = len(value.strip()) if value else 0
    if length < min_length or length > max_length:
        raise ValidationError(
            f"{field} must be between {min_length} and {max_length} characters for {entity}",
            entity=entity,
            field=field,
        )


async def discard_uploads(evidence_store: EvidenceStoreClient, urls: Sequence[str]) -> None:
    """Best-effort removal of files uploaded by a command that did not commit"""
    for url in urls:
        try:
            await evidence_store.delete(url)
        except StorageError as e:
            logger.warning(f"Evidence cleanup failed: {e}", extra={"url": url})


class ViolationLedger:
    """Owns RentalViolation records and their evidence references"""

    def __init__(
        self,
        db: Session,
        evidence_store: EvidenceStoreClient,
        outbox: NotificationOutbox,
        config: Settings = settings,
    ):
        self.db = db
        self.evidence_store = evidence_store
        self.outbox = outbox
        self.config = config
        self.orders = OrderRepository(db)
        self.violations = ViolationRepository(db)
        self.bridge = OrderStatusBridge(db, outbox)

    async def create_violations(
        self,
        order_id: uuid.UUID,
        actor: Actor,
        specs: Sequence[ViolationSpec],
    ) -> List[RentalViolation]:
        """
        File a batch of violations against a returned order (all-or-nothing).

        Flow:
        1. Check ownership and that the order is under return inspection
        2. Validate every claim and every evidence file in the batch
        3. Persist violations and upload evidence inside one transaction
        4. Move the order to returned_with_issue and notify the customer

        Any failure rolls back the transaction and deletes files already uploaded.
        """
        order = self._get_order(order_id)
        authorize(actor, Capability.FILE_VIOLATION, provider_id=order.provider_id, entity=f"order {order_id}")

        if not accepts_violations(OrderStatus(order.status)):
            raise InvalidStateError(
                f"Order {order_id} is {order.status}; violations can only be filed during return inspection",
                entity=str(order_id),
                field="status",
            )
        if not specs:
            raise ValidationError("At least one violation is required", entity=str(order_id), field="violations")

        items = {item.id: item for item in order.items}
        seen: set[uuid.UUID] = set()
        for spec in specs:
            item = items.get(spec.order_item_id)
            if item is None:
                raise ValidationError(
                    f"Item {spec.order_item_id} does not belong to order {order_id}",
                    entity=str(spec.order_item_id),
                    field="order_item_id",
                )
            if spec.order_item_id in seen:
                raise ValidationError(
                    f"Item {spec.order_item_id} appears more than once in the batch",
                    entity=str(spec.order_item_id),
                    field="order_item_id",
                )
            seen.add(spec.order_item_id)
            if self.violations.exists_for_order_item(item.id):
                raise InvalidStateError(
                    f"Item {item.id} already has a violation report",
                    entity=str(item.id),
                    field="order_item_id",
                )
            self._validate_spec(spec, item)

        uploaded: List[str] = []
        created: List[RentalViolation] = []
        try:
            with unit_of_work(self.db):
                for spec in specs:
                    violation = self.violations.add(
                        RentalViolation(
                            order_item_id=spec.order_item_id,
                            violation_type=spec.violation_type.value,
                            description=spec.description,
                            damage_percentage=spec.damage_percentage,
                            penalty_percentage=spec.penalty_percentage,
                            penalty_cents=spec.penalty_cents,
                            status=ViolationStatus.PENDING.value,
                        )
                    )
                    await self._attach_evidence(violation, spec.evidence, actor, EvidenceUploader.PROVIDER, uploaded)
                    created.append(violation)

                self.bridge.recompute(order)
        except Exception:
            await discard_uploads(self.evidence_store, uploaded)
            raise

        for violation in created:
            violations_filed_counter.labels(violation_type=violation.violation_type).inc()
            log_violation_event("filed", violation.id, order.id, violation.status, actor.user_id, violation.penalty_cents)

        item_text = "items" if len(created) > 1 else "item"
        self.outbox.add(
            order.customer_id,
            f"Violation Report: {len(created)} {item_text} from your order have been reported with issues. "
            "Please review and respond.",
            NotificationCategory.ORDER,
            order.id,
        )
        return created

    def resubmit_violation(self, violation_id: uuid.UUID, actor: Actor, patch: ViolationPatch) -> RentalViolation:
        """Provider revises a rejected claim; it goes back to the customer as PENDING"""
        with unit_of_work(self.db):
            violation = self._get_violation(violation_id)
            order = violation.order_item.order
            authorize(actor, Capability.RESUBMIT_VIOLATION, provider_id=order.provider_id, entity=f"violation {violation_id}")
            ensure_transition(violation.id, ViolationStatus(violation.status), ViolationStatus.PENDING)

            label = str(violation.order_item_id)
            if patch.description is not None:
                validate_text(
                    patch.description,
                    "description",
                    self.config.description_min_length,
                    self.config.description_max_length,
                    label,
                )
                violation.description = patch.description
            if patch.penalty_percentage is not None:
                validate_percentage(patch.penalty_percentage, "penalty_percentage", label)
                violation.penalty_percentage = patch.penalty_percentage
            if patch.penalty_cents is not None:
                validate_penalty(patch.penalty_cents, violation_deposit_cents(violation), label)
                violation.penalty_cents = patch.penalty_cents

            # A new negotiation round: the previous rejection no longer stands
            violation.customer_notes = None
            violation.customer_response_at = None
            violation.provider_response_to_customer = None
            violation.provider_response_at = None
            violation.provider_escalation_reason = None
            violation.customer_escalation_reason = None
            violation.status = ViolationStatus.PENDING.value
            violation.updated_at = utcnow()

            self.outbox.add(
                order.customer_id,
                "The provider has updated a violation claim after your rejection. Please review and respond again.",
                NotificationCategory.DISPUTE,
                order.id,
            )

        log_violation_event("resubmitted", violation.id, order.id, violation.status, actor.user_id, violation.penalty_cents)
        return violation

    # ------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------

    def get_violation(self, violation_id: uuid.UUID, actor: Actor) -> ViolationDetail:
        violation = self._get_violation(violation_id)
        order = violation.order_item.order
        authorize(
            actor,
            Capability.VIEW,
            provider_id=order.provider_id,
            customer_id=order.customer_id,
            entity=f"violation {violation_id}",
        )
        return describe(violation)

    def list_order_violations(self, order_id: uuid.UUID, actor: Actor) -> List[ViolationDetail]:
        order = self._get_order(order_id)
        authorize(
            actor,
            Capability.VIEW,
            provider_id=order.provider_id,
            customer_id=order.customer_id,
            entity=f"order {order_id}",
        )
        return [describe(v) for v in self.violations.list_by_order(order_id)]

    def list_for_actor(self, actor: Actor) -> List[ViolationDetail]:
        """Violations where the caller is the provider or the customer of the order"""
        if actor.role == ActorRole.ADMIN:
            raise ValidationError("Admins browse violations through the dispute queue", field="role")
        violations = self.violations.list_by_party(actor.user_id, as_provider=actor.role == ActorRole.PROVIDER)
        return [describe(v) for v in violations]

    # ------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------

    def _validate_spec(self, spec: ViolationSpec, item: RentalOrderItem) -> None:
        label = str(item.id)
        validate_text(
            spec.description,
            "description",
            self.config.description_min_length,
            self.config.description_max_length,
            label,
        )
        validate_percentage(spec.penalty_percentage, "penalty_percentage", label)
        if spec.damage_percentage is not None:
            validate_percentage(spec.damage_percentage, "damage_percentage", label)
        validate_penalty(spec.penalty_cents, item_deposit_cents(item.deposit_per_unit_cents, item.quantity), label)
        if not spec.evidence:
            raise ValidationError(
                f"At least one evidence file is required for item {label}",
                entity=label,
                field="evidence",
            )
        validate_evidence_files(spec.evidence, self.config.max_image_bytes, self.config.max_video_bytes)

    async def _attach_evidence(
        self,
        violation: RentalViolation,
        files: Sequence[EvidenceFile],
        actor: Actor,
        uploaded_by: EvidenceUploader,
        uploaded: List[str],
    ) -> None:
        for file in files:
            url = await self.evidence_store.upload(file.content, file.filename, file.content_type, actor.user_id)
            uploaded.append(url)
            self.violations.add_evidence(violation, url, uploaded_by.value, classify_file(file.filename))

    def _get_order(self, order_id: uuid.UUID) -> RentalOrder:
        order = self.orders.get_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found", entity=str(order_id))
        return order

    def _get_violation(self, violation_id: uuid.UUID) -> RentalViolation:
        violation = self.violations.get(violation_id)
        if violation is None:
            raise NotFoundError(f"Violation {violation_id} not found", entity=str(violation_id))
        return violation
