"""Provider and customer endpoints for filing and negotiating violations"""

import uuid
from typing import Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError as SchemaValidationError

from rental_disputes.api.dependencies import (
    get_actor,
    get_dispute_workflow,
    get_notification_client,
    get_outbox,
    get_violation_ledger,
)
from rental_disputes.api.v1.schemas import (
    CreateViolationsRequest,
    EscalationRequest,
    ProviderReplyRequest,
    ResubmitViolationRequest,
    ViolationListResponse,
    ViolationResponse,
)
from rental_disputes.api.v1.serializers import violation_response
from rental_disputes.domain.exceptions import ValidationError
from rental_disputes.domain.models import Actor, EvidenceFile, ViolationPatch, ViolationSpec
from rental_disputes.infrastructure.clients.notifications import NotificationClient
from rental_disputes.services.dispute_workflow import DisputeWorkflow
from rental_disputes.services.outbox import NotificationOutbox
from rental_disputes.services.violation_ledger import ViolationLedger, describe

router = APIRouter()


def parse_uuid(value: str, field: str) -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field} format")


async def read_uploads(files: Optional[List[UploadFile]]) -> List[EvidenceFile]:
    return [
        EvidenceFile(
            filename=f.filename or "",
            content_type=f.content_type or "application/octet-stream",
            content=await f.read(),
        )
        for f in files or []
    ]


def build_specs(request: CreateViolationsRequest, uploads: List[EvidenceFile]) -> List[ViolationSpec]:
    """Attach each uploaded file to the violation that names it"""
    by_name: Dict[str, EvidenceFile] = {f.filename: f for f in uploads}
    specs = []
    for item in request.violations:
        missing = [name for name in item.evidence_filenames if name not in by_name]
        if missing:
            raise ValidationError(
                f"Evidence files not uploaded: {', '.join(missing)}",
                entity=item.order_item_id,
                field="evidence",
            )
        specs.append(
            ViolationSpec(
                order_item_id=parse_uuid(item.order_item_id, "order_item_id"),
                violation_type=item.violation_type,
                description=item.description,
                damage_percentage=item.damage_percentage,
                penalty_percentage=item.penalty_percentage,
                penalty_cents=item.penalty_cents,
                evidence=[by_name[name] for name in item.evidence_filenames],
            )
        )
    return specs


@router.post("/orders/{order_id}/violations", response_model=ViolationListResponse, status_code=201)
async def create_violations(
    order_id: str,
    background_tasks: BackgroundTasks,
    payload: str = Form(..., description="JSON CreateViolationsRequest"),
    files: Optional[List[UploadFile]] = File(None),
    actor: Actor = Depends(get_actor),
    ledger: ViolationLedger = Depends(get_violation_ledger),
    outbox: NotificationOutbox = Depends(get_outbox),
    notifier: NotificationClient = Depends(get_notification_client),
):
    """
    File violations for returned items of an order (provider only).

    Flow:
    1. Parse the JSON payload and pair evidence files with their violation
    2. Validate and persist the whole batch atomically
    3. Schedule the customer notification after commit
    """
    try:
        request = CreateViolationsRequest.model_validate_json(payload)
    except SchemaValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    specs = build_specs(request, await read_uploads(files))
    created = await ledger.create_violations(parse_uuid(order_id, "order_id"), actor, specs)
    background_tasks.add_task(notifier.deliver_all, outbox.drain())

    return ViolationListResponse(violations=[violation_response(describe(v)) for v in created])


@router.get("/orders/{order_id}/violations", response_model=ViolationListResponse)
def list_order_violations(
    order_id: str,
    actor: Actor = Depends(get_actor),
    ledger: ViolationLedger = Depends(get_violation_ledger),
):
    details = ledger.list_order_violations(parse_uuid(order_id, "order_id"), actor)
    return ViolationListResponse(violations=[violation_response(d) for d in details])


@router.get("/violations", response_model=ViolationListResponse)
def list_my_violations(
    actor: Actor = Depends(get_actor),
    ledger: ViolationLedger = Depends(get_violation_ledger),
):
    """Violations where the caller is the provider or the customer"""
    return ViolationListResponse(violations=[violation_response(d) for d in ledger.list_for_actor(actor)])


@router.get("/violations/{violation_id}", response_model=ViolationResponse)
def get_violation(
    violation_id: str,
    actor: Actor = Depends(get_actor),
    ledger: ViolationLedger = Depends(get_violation_ledger),
):
    return violation_response(ledger.get_violation(parse_uuid(violation_id, "violation_id"), actor))


@router.put("/violations/{violation_id}", response_model=ViolationResponse)
def resubmit_violation(
    violation_id: str,
    body: ResubmitViolationRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    ledger: ViolationLedger = Depends(get_violation_ledger),
    outbox: NotificationOutbox = Depends(get_outbox),
    notifier: NotificationClient = Depends(get_notification_client),
):
    """Provider revises a claim the customer rejected"""
    violation = ledger.resubmit_violation(
        parse_uuid(violation_id, "violation_id"),
        actor,
        ViolationPatch(
            description=body.description,
            penalty_percentage=body.penalty_percentage,
            penalty_cents=body.penalty_cents,
        ),
    )
    background_tasks.add_task(notifier.deliver_all, outbox.drain())
    return violation_response(describe(violation))


@router.post("/violations/{violation_id}/response", response_model=ViolationResponse)
async def respond_to_violation(
    violation_id: str,
    background_tasks: BackgroundTasks,
    accept: bool = Form(...),
    notes: Optional[str] = Form(None),
    files: Optional[List[UploadFile]] = File(None),
    actor: Actor = Depends(get_actor),
    workflow: DisputeWorkflow = Depends(get_dispute_workflow),
    outbox: NotificationOutbox = Depends(get_outbox),
    notifier: NotificationClient = Depends(get_notification_client),
):
    """Customer accepts or rejects a pending claim"""
    violation = await workflow.customer_respond(
        parse_uuid(violation_id, "violation_id"),
        actor,
        accept,
        notes=notes,
        evidence=await read_uploads(files),
    )
    background_tasks.add_task(notifier.deliver_all, outbox.drain())
    return violation_response(describe(violation))


@router.post("/violations/{violation_id}/provider-reply", response_model=ViolationResponse)
def provider_reply(
    violation_id: str,
    body: ProviderReplyRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    workflow: DisputeWorkflow = Depends(get_dispute_workflow),
    outbox: NotificationOutbox = Depends(get_outbox),
    notifier: NotificationClient = Depends(get_notification_client),
):
    violation = workflow.provider_reply(parse_uuid(violation_id, "violation_id"), actor, body.response)
    background_tasks.add_task(notifier.deliver_all, outbox.drain())
    return violation_response(describe(violation))


@router.post("/violations/{violation_id}/escalation", response_model=ViolationResponse)
def escalate_violation(
    violation_id: str,
    body: EscalationRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    workflow: DisputeWorkflow = Depends(get_dispute_workflow),
    outbox: NotificationOutbox = Depends(get_outbox),
    notifier: NotificationClient = Depends(get_notification_client),
):
    """Attach an escalation reason for the admin reviewing a rejected claim"""
    violation = workflow.escalate(parse_uuid(violation_id, "violation_id"), actor, body.reason)
    background_tasks.add_task(notifier.deliver_all, outbox.drain())
    return violation_response(describe(violation))
