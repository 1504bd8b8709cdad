"""Deposit refund endpoints for operators and customers"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends

from rental_disputes.api.dependencies import (
    get_actor,
    get_notification_client,
    get_outbox,
    get_refund_reconciler,
)
from rental_disputes.api.v1.schemas import (
    PayoutRequest,
    PendingCountResponse,
    RefundListResponse,
    RefundResponse,
)
from rental_disputes.api.v1.serializers import refund_response
from rental_disputes.api.v1.violations import parse_uuid
from rental_disputes.domain.models import Actor, RefundStatus
from rental_disputes.infrastructure.clients.notifications import NotificationClient
from rental_disputes.services.outbox import NotificationOutbox
from rental_disputes.services.refund_reconciler import DepositRefundReconciler

router = APIRouter()


@router.get("/admin/refunds", response_model=RefundListResponse)
def list_refunds(
    status: Optional[RefundStatus] = None,
    actor: Actor = Depends(get_actor),
    reconciler: DepositRefundReconciler = Depends(get_refund_reconciler),
):
    return RefundListResponse(refunds=[refund_response(r) for r in reconciler.list_refunds(actor, status)])


@router.get("/admin/refunds/pending-count", response_model=PendingCountResponse)
def pending_refund_count(
    actor: Actor = Depends(get_actor),
    reconciler: DepositRefundReconciler = Depends(get_refund_reconciler),
):
    """Number of refunds awaiting an operator decision"""
    return PendingCountResponse(pending=reconciler.pending_count(actor))


@router.get("/admin/refunds/{refund_id}", response_model=RefundResponse)
def get_refund(
    refund_id: str,
    actor: Actor = Depends(get_actor),
    reconciler: DepositRefundReconciler = Depends(get_refund_reconciler),
):
    return refund_response(reconciler.get_refund(parse_uuid(refund_id, "refund_id"), actor))


@router.post("/admin/refunds/{refund_id}/payout", response_model=RefundResponse)
async def process_payout(
    refund_id: str,
    body: PayoutRequest,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    reconciler: DepositRefundReconciler = Depends(get_refund_reconciler),
    outbox: NotificationOutbox = Depends(get_outbox),
    notifier: NotificationClient = Depends(get_notification_client),
):
    """Approve (pay out) or reject an initiated refund"""
    refund = await reconciler.process_payout(
        parse_uuid(refund_id, "refund_id"),
        actor,
        body.approve,
        bank_account_id=parse_uuid(body.bank_account_id, "bank_account_id") if body.bank_account_id else None,
        external_transaction_id=body.external_transaction_id,
        notes=body.notes,
    )
    background_tasks.add_task(notifier.deliver_all, outbox.drain())
    return refund_response(refund)


@router.post("/admin/refunds/{refund_id}/reopen", response_model=RefundResponse)
def reopen_refund(
    refund_id: str,
    actor: Actor = Depends(get_actor),
    reconciler: DepositRefundReconciler = Depends(get_refund_reconciler),
):
    return refund_response(reconciler.reopen(parse_uuid(refund_id, "refund_id"), actor))


@router.get("/customers/{customer_id}/refunds", response_model=RefundListResponse)
def customer_refunds(
    customer_id: str,
    actor: Actor = Depends(get_actor),
    reconciler: DepositRefundReconciler = Depends(get_refund_reconciler),
):
    refunds = reconciler.customer_refunds(parse_uuid(customer_id, "customer_id"), actor)
    return RefundListResponse(refunds=[refund_response(r) for r in refunds])
