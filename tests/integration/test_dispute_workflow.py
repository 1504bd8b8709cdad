"""Tests for customer responses, provider replies and escalations"""

import pytest
from rental_disputes.domain.exceptions import InvalidStateError, StorageError, UnauthorizedError, ValidationError
from rental_disputes.domain.models import (
    EvidenceFile,
    NotificationCategory,
    OrderStatus,
    RefundStatus,
    ViolationStatus,
)
from rental_disputes.infrastructure.database.repositories import DepositRefundRepository


async def test_customer_accepts_claim(workflow, pending_violation, order, customer, provider, outbox, db):
    """Test acceptance settles the claim: $100 deposit - $40 penalty = $60 refund, order returned"""
    violation = await workflow.customer_respond(pending_violation.id, customer, accept=True)

    assert violation.status == ViolationStatus.CUSTOMER_ACCEPTED.value
    assert violation.customer_response_at is not None
    assert order.status == OrderStatus.RETURNED.value

    refund = DepositRefundRepository(db).get_by_order(order.id)
    assert refund.original_deposit_cents == 10000
    assert refund.total_penalty_cents == 4000
    assert refund.refund_cents == 6000
    assert refund.status == RefundStatus.INITIATED.value
    assert refund.customer_id == customer.user_id

    notifications = outbox.drain()
    dispute = [n for n in notifications if n.category == NotificationCategory.DISPUTE]
    returned = [n for n in notifications if n.category == NotificationCategory.ORDER]
    assert [n.user_id for n in dispute] == [provider.user_id]
    assert {n.user_id for n in returned} == {provider.user_id, customer.user_id}


async def test_customer_rejects_with_counter_evidence(workflow, pending_violation, order, customer, provider, evidence_store, outbox, db):
    """Test rejection stores notes and customer evidence without touching the refund"""
    video = EvidenceFile("pickup.mp4", "video/mp4", b"\x00\x00\x00\x18ftyp")

    violation = await workflow.customer_respond(
        pending_violation.id,
        customer,
        accept=False,
        notes="The scratch is visible in my pickup video",
        evidence=[video],
    )

    assert violation.status == ViolationStatus.CUSTOMER_REJECTED.value
    assert violation.customer_notes == "The scratch is visible in my pickup video"
    customer_images = [img for img in violation.images if img.uploaded_by == "CUSTOMER"]
    assert [img.file_type for img in customer_images] == ["video"]
    assert order.status == OrderStatus.RETURNED_WITH_ISSUE.value
    assert DepositRefundRepository(db).get_by_order(order.id) is None

    [notification] = outbox.drain()
    assert notification.user_id == provider.user_id


async def test_reject_requires_notes(workflow, pending_violation, customer):
    with pytest.raises(ValidationError) as exc:
        await workflow.customer_respond(pending_violation.id, customer, accept=False, notes="  ")
    assert exc.value.field == "notes"


async def test_accept_with_evidence_rejected(workflow, pending_violation, customer, photo):
    with pytest.raises(ValidationError):
        await workflow.customer_respond(pending_violation.id, customer, accept=True, evidence=[photo])


async def test_only_order_customer_responds(workflow, pending_violation, provider, admin):
    with pytest.raises(UnauthorizedError):
        await workflow.customer_respond(pending_violation.id, provider, accept=True)
    with pytest.raises(UnauthorizedError):
        await workflow.customer_respond(pending_violation.id, admin, accept=True)


async def test_respond_twice(workflow, pending_violation, customer):
    """Test an accepted claim is terminal"""
    await workflow.customer_respond(pending_violation.id, customer, accept=True)

    with pytest.raises(InvalidStateError):
        await workflow.customer_respond(pending_violation.id, customer, accept=False, notes="Changed my mind")


async def test_rejection_upload_failure_rolls_back(workflow, pending_violation, customer, photo, evidence_store, db):
    evidence_store.upload.side_effect = ["https://evidence.test/a.jpg", StorageError("store down")]
    second = EvidenceFile("closeup.png", "image/png", b"\x89PNG")

    with pytest.raises(StorageError):
        await workflow.customer_respond(
            pending_violation.id, customer, accept=False, notes="Not my fault", evidence=[photo, second]
        )

    evidence_store.delete.assert_awaited_once_with("https://evidence.test/a.jpg")
    db.refresh(pending_violation)
    assert pending_violation.status == ViolationStatus.PENDING.value


def test_provider_reply(workflow, rejected_violation, provider, customer, outbox):
    violation = workflow.provider_reply(rejected_violation.id, provider, "Photos from checkout show no scratch")

    assert violation.provider_response_to_customer == "Photos from checkout show no scratch"
    assert violation.provider_response_at is not None
    assert violation.status == ViolationStatus.CUSTOMER_REJECTED.value
    [notification] = outbox.drain()
    assert notification.user_id == customer.user_id


def test_provider_reply_requires_rejection(workflow, pending_violation, provider):
    with pytest.raises(InvalidStateError):
        workflow.provider_reply(pending_violation.id, provider, "Nothing to reply to yet")


def test_customer_escalates(workflow, rejected_violation, customer, provider, outbox):
    """Test escalation annotates the claim for the admin without changing its status"""
    violation = workflow.escalate(rejected_violation.id, customer, "Provider ignores my pickup video")

    assert violation.customer_escalation_reason == "Provider ignores my pickup video"
    assert violation.provider_escalation_reason is None
    assert violation.status == ViolationStatus.CUSTOMER_REJECTED.value
    [notification] = outbox.drain()
    assert notification.user_id == provider.user_id


def test_provider_escalates(workflow, rejected_violation, provider, customer, outbox):
    violation = workflow.escalate(rejected_violation.id, provider, "Customer refuses a fair penalty")

    assert violation.provider_escalation_reason == "Customer refuses a fair penalty"
    [notification] = outbox.drain()
    assert notification.user_id == customer.user_id


def test_escalate_short_reason(workflow, rejected_violation, customer):
    with pytest.raises(ValidationError):
        workflow.escalate(rejected_violation.id, customer, "unfair")


def test_escalate_pending_claim(workflow, pending_violation, customer, stranger):
    with pytest.raises(InvalidStateError):
        workflow.escalate(pending_violation.id, customer, "I want an admin to look at this")
    with pytest.raises(UnauthorizedError):
        workflow.escalate(pending_violation.id, stranger, "I want an admin to look at this")
