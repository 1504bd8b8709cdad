"""Dependency injection for FastAPI endpoints"""

import uuid

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from rental_disputes.domain.models import Actor, ActorRole
from rental_disputes.infrastructure.clients.bank_accounts import BankAccountRegistry
from rental_disputes.infrastructure.clients.evidence_store import EvidenceStoreClient
from rental_disputes.infrastructure.clients.notifications import NotificationClient
from rental_disputes.infrastructure.database.session import get_db
from rental_disputes.services.admin_resolution import AdminResolutionEngine
from rental_disputes.services.dispute_workflow import DisputeWorkflow
from rental_disputes.services.outbox import NotificationOutbox
from rental_disputes.services.refund_reconciler import DepositRefundReconciler
from rental_disputes.services.violation_ledger import ViolationLedger


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_actor(
    x_user_id: str = Header(..., description="Authenticated user id set by the gateway"),
    x_user_role: str = Header(..., description="provider | customer | admin"),
) -> Actor:
    """Caller identity asserted by the upstream auth gateway"""
    try:
        return Actor(user_id=uuid.UUID(x_user_id), role=ActorRole(x_user_role.lower()))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid X-User-Id or X-User-Role header")


def get_evidence_store() -> EvidenceStoreClient:
    """Provide evidence store client instance"""
    return EvidenceStoreClient()


def get_notification_client() -> NotificationClient:
    """Provide notification sink client instance"""
    return NotificationClient()


def get_bank_account_registry() -> BankAccountRegistry:
    """Provide bank account registry client instance"""
    return BankAccountRegistry()


def get_outbox() -> NotificationOutbox:
    """Fresh notification queue per request"""
    return NotificationOutbox()


def get_violation_ledger(
    db: Session = Depends(get_db),
    evidence_store: EvidenceStoreClient = Depends(get_evidence_store),
    outbox: NotificationOutbox = Depends(get_outbox),
) -> ViolationLedger:
    return ViolationLedger(db, evidence_store, outbox)


def get_refund_reconciler(
    db: Session = Depends(get_db),
    outbox: NotificationOutbox = Depends(get_outbox),
    bank_accounts: BankAccountRegistry = Depends(get_bank_account_registry),
) -> DepositRefundReconciler:
    return DepositRefundReconciler(db, outbox, bank_accounts=bank_accounts)


def get_dispute_workflow(
    db: Session = Depends(get_db),
    evidence_store: EvidenceStoreClient = Depends(get_evidence_store),
    outbox: NotificationOutbox = Depends(get_outbox),
) -> DisputeWorkflow:
    return DisputeWorkflow(db, evidence_store, outbox)


def get_resolution_engine(
    db: Session = Depends(get_db),
    outbox: NotificationOutbox = Depends(get_outbox),
) -> AdminResolutionEngine:
    return AdminResolutionEngine(db, outbox)
