"""Admin dispute queue and resolution endpoints"""

from fastapi import APIRouter, BackgroundTasks, Depends

from rental_disputes.api.dependencies import (
    get_actor,
    get_notification_client,
    get_outbox,
    get_resolution_engine,
)
from rental_disputes.api.v1.schemas import (
    DisputeCaseResponse,
    ResolutionRequest,
    ResolutionResponse,
    ViolationListResponse,
)
from rental_disputes.api.v1.serializers import dispute_case_response, resolution_response, violation_response
from rental_disputes.api.v1.violations import parse_uuid
from rental_disputes.domain.models import Actor
from rental_disputes.infrastructure.clients.notifications import NotificationClient
from rental_disputes.services.admin_resolution import AdminResolutionEngine
from rental_disputes.services.outbox import NotificationOutbox
from rental_disputes.services.violation_ledger import describe

router = APIRouter(prefix="/admin/disputes")


@router.get("", response_model=ViolationListResponse)
def list_disputes(
    actor: Actor = Depends(get_actor),
    engine: AdminResolutionEngine = Depends(get_resolution_engine),
):
    """Rejected claims waiting for a ruling, oldest first"""
    return ViolationListResponse(violations=[violation_response(describe(v)) for v in engine.pending_disputes(actor)])


@router.get("/{violation_id}", response_model=DisputeCaseResponse)
def get_dispute(
    violation_id: str,
    actor: Actor = Depends(get_actor),
    engine: AdminResolutionEngine = Depends(get_resolution_engine),
):
    return dispute_case_response(engine.dispute_case(parse_uuid(violation_id, "violation_id"), actor))


@router.post("/{violation_id}/resolution", response_model=ResolutionResponse, status_code=201)
def resolve_dispute(
    violation_id: str,
    body: ResolutionRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    engine: AdminResolutionEngine = Depends(get_resolution_engine),
    outbox: NotificationOutbox = Depends(get_outbox),
    notifier: NotificationClient = Depends(get_notification_client),
):
    """
    Rule on a disputed violation.

    UPHOLD_CLAIM keeps the provider's penalty, REJECT_CLAIM waives it and
    COMPROMISE applies the supplied fine and compensation. The deposit
    refund and order status follow in the same transaction.
    """
    resolution = engine.resolve(
        parse_uuid(violation_id, "violation_id"),
        actor,
        body.resolution_type,
        body.customer_fine_cents,
        body.provider_compensation_cents,
        body.reason,
    )
    background_tasks.add_task(notifier.deliver_all, outbox.drain())
    return resolution_response(resolution)
