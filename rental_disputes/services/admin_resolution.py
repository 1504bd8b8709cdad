"""Admin resolution engine: final rulings on disputed violations"""

import uuid
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy.orm import Session

from rental_disputes.config import Settings, settings
from rental_disputes.domain.exceptions import InvalidStateError, NotFoundError
from rental_disputes.domain.models import (
    Actor,
    NotificationCategory,
    ResolutionStatus,
    ResolutionType,
    ViolationStatus,
)
from rental_disputes.domain.penalties import clamp_penalty, resolution_amounts
from rental_disputes.domain.workflow import Capability, authorize, ensure_transition
from rental_disputes.infrastructure.database.models import IssueResolution, RentalViolation
from rental_disputes.infrastructure.database.repositories import ResolutionRepository, ViolationRepository
from rental_disputes.infrastructure.database.session import unit_of_work
from rental_disputes.infrastructure.observability.logging import log_resolution
from rental_disputes.infrastructure.observability.metrics import resolution_counter
from rental_disputes.services.order_status_bridge import OrderStatusBridge
from rental_disputes.services.outbox import NotificationOutbox
from rental_disputes.services.refund_reconciler import DepositRefundReconciler
from rental_disputes.services.violation_ledger import ViolationDetail, describe, validate_text, violation_deposit_cents
from rental_disputes.utils.date_utils import utcnow


@dataclass
class DisputeCase:
    """Admin view of one dispute"""

    detail: ViolationDetail
    resolution: Optional[IssueResolution]


class AdminResolutionEngine:
    """Consumes disputed violations and writes one immutable IssueResolution per violation"""

    def __init__(
        self,
        db: Session,
        outbox: NotificationOutbox,
        reconciler: DepositRefundReconciler | None = None,
        config: Settings = settings,
    ):
        self.db = db
        self.outbox = outbox
        self.config = config
        self.violations = ViolationRepository(db)
        self.resolutions = ResolutionRepository(db)
        self.reconciler = reconciler or DepositRefundReconciler(db, outbox, config=config)
        self.bridge = OrderStatusBridge(db, outbox)

    def resolve(
        self,
        violation_id: uuid.UUID,
        actor: Actor,
        resolution_type: ResolutionType,
        customer_fine_cents: int,
        provider_compensation_cents: int,
        reason: str,
    ) -> IssueResolution:
        """
        Rule on a disputed violation.

        In one transaction: write the resolution (COMPLETED), close the
        violation as RESOLVED with its revised penalty, reconcile the order's
        deposit refund with the customer fine, recompute the order status and
        queue one notification for each party.

        Raises:
            NotFoundError: Unknown violation
            ValidationError: Missing/short reason or negative amounts
            InvalidStateError: Violation is not in dispute (e.g. already RESOLVED)
        """
        authorize(actor, Capability.RESOLVE_DISPUTE, entity=f"violation {violation_id}")

        with unit_of_work(self.db):
            violation = self._get_violation(violation_id)
            validate_text(
                reason,
                "reason",
                self.config.reason_min_length,
                self.config.reason_max_length,
                str(violation_id),
            )
            ensure_transition(violation.id, ViolationStatus(violation.status), ViolationStatus.RESOLVED)
            if self.resolutions.get_by_violation(violation.id) is not None:
                raise InvalidStateError(
                    f"Violation {violation_id} already has a resolution",
                    entity=str(violation_id),
                    field="resolution",
                )

            amounts = resolution_amounts(
                resolution_type,
                violation.penalty_cents,
                customer_fine_cents,
                provider_compensation_cents,
            )
            order = violation.order_item.order

            resolution = self.resolutions.create(
                IssueResolution(
                    violation_id=violation.id,
                    resolution_type=resolution_type.value,
                    customer_fine_cents=amounts.customer_fine_cents,
                    provider_compensation_cents=amounts.provider_compensation_cents,
                    reason=reason,
                    resolution_status=ResolutionStatus.COMPLETED.value,
                    processed_at=utcnow(),
                    processed_by_admin_id=actor.user_id,
                )
            )

            violation.penalty_cents = clamp_penalty(amounts.violation_penalty_cents, violation_deposit_cents(violation))
            violation.status = ViolationStatus.RESOLVED.value
            violation.updated_at = resolution.processed_at

            self.reconciler.reconcile(
                order,
                amounts.customer_fine_cents,
                notes=f"Admin resolution {resolution_type.value}. Reason: {reason}",
                violation_id=violation.id,
            )
            self.bridge.recompute(order)

            self.outbox.add(
                order.customer_id,
                f"Admin has resolved the violation dispute ({resolution_type.value}). "
                f"Fine applied: {amounts.customer_fine_cents} cents.",
                NotificationCategory.DISPUTE,
                order.id,
            )
            self.outbox.add(
                order.provider_id,
                f"Admin has resolved the violation dispute ({resolution_type.value}). "
                f"Compensation: {amounts.provider_compensation_cents} cents.",
                NotificationCategory.DISPUTE,
                order.id,
            )

        resolution_counter.labels(resolution_type=resolution.resolution_type).inc()
        log_resolution(
            violation.id,
            actor.user_id,
            resolution.resolution_type,
            resolution.customer_fine_cents,
            resolution.provider_compensation_cents,
        )
        return resolution

    def pending_disputes(self, actor: Actor) -> List[RentalViolation]:
        """Rejected claims awaiting an admin ruling, oldest first"""
        authorize(actor, Capability.RESOLVE_DISPUTE, entity="dispute queue")
        return self.violations.list_by_status(ViolationStatus.CUSTOMER_REJECTED.value)

    def dispute_case(self, violation_id: uuid.UUID, actor: Actor) -> DisputeCase:
        authorize(actor, Capability.RESOLVE_DISPUTE, entity=f"violation {violation_id}")
        violation = self._get_violation(violation_id)
        return DisputeCase(detail=describe(violation), resolution=self.resolutions.get_by_violation(violation.id))

    def _get_violation(self, violation_id: uuid.UUID) -> RentalViolation:
        violation = self.violations.get(violation_id)
        if violation is None:
            raise NotFoundError(f"Violation {violation_id} not found", entity=str(violation_id))
        return violation
