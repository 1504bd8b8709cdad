"""Tests for filing, resubmitting and reading violations"""

import uuid
from unittest.mock import patch
import pytest
from rental_disputes.domain.exceptions import (
    InvalidStateError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from rental_disputes.domain.models import (
    EvidenceFile,
    NotificationCategory,
    OrderStatus,
    ViolationPatch,
    ViolationStatus,
)
from rental_disputes.infrastructure.database.models import RentalViolation
from rental_disputes.infrastructure.database.repositories import ViolationRepository


async def test_create_violation_success(ledger, order, provider, customer, rental_item, make_spec, evidence_store, outbox, db):
    """Test filing a claim persists it, uploads evidence and flags the order"""
    [violation] = await ledger.create_violations(order.id, provider, [make_spec(rental_item)])

    assert violation.status == ViolationStatus.PENDING.value
    assert violation.penalty_cents == 4000
    assert order.status == OrderStatus.RETURNED_WITH_ISSUE.value
    assert [img.url for img in violation.images] == ["https://evidence.test/scratch.jpg"]
    assert violation.images[0].uploaded_by == "PROVIDER"
    assert violation.images[0].file_type == "image"
    evidence_store.upload.assert_awaited_once()

    [notification] = outbox.drain()
    assert notification.user_id == customer.user_id
    assert notification.category == NotificationCategory.ORDER
    assert notification.message.startswith("Violation Report: 1 item")


async def test_penalty_above_deposit_rejected(ledger, order, provider, rental_item, make_spec, evidence_store, outbox, db):
    """Test a $150 penalty on a $100 deposit fails atomically with nothing written"""
    with pytest.raises(ValidationError) as exc:
        await ledger.create_violations(order.id, provider, [make_spec(rental_item, penalty_cents=15000)])

    assert exc.value.field == "penalty_cents"
    assert db.query(RentalViolation).count() == 0
    assert order.status == OrderStatus.RETURNING.value
    evidence_store.upload.assert_not_awaited()
    assert outbox.drain() == []


async def test_batch_is_all_or_nothing(ledger, two_item_order, provider, make_spec, db):
    """Test one invalid claim blocks the whole batch"""
    items = {i.product_name: i for i in two_item_order.items}
    tent, bag = items["Tent"], items["Sleeping bag"]
    with pytest.raises(ValidationError):
        await ledger.create_violations(
            two_item_order.id,
            provider,
            [make_spec(tent, penalty_cents=3000), make_spec(bag, penalty_cents=6000)],
        )

    assert db.query(RentalViolation).count() == 0


async def test_upload_failure_cleans_up(ledger, two_item_order, provider, make_spec, evidence_store, db):
    """Test files uploaded before a storage failure are deleted and nothing is persisted"""
    items = {i.product_name: i for i in two_item_order.items}
    tent, bag = items["Tent"], items["Sleeping bag"]
    evidence_store.upload.side_effect = ["https://evidence.test/first.jpg", StorageError("store down")]

    with pytest.raises(StorageError):
        await ledger.create_violations(
            two_item_order.id,
            provider,
            [make_spec(tent, penalty_cents=3000), make_spec(bag, penalty_cents=2000)],
        )

    evidence_store.delete.assert_awaited_once_with("https://evidence.test/first.jpg")
    assert db.query(RentalViolation).count() == 0
    assert two_item_order.status == OrderStatus.RETURNING.value


async def test_only_order_provider_can_file(ledger, order, stranger, customer, rental_item, make_spec):
    with pytest.raises(UnauthorizedError):
        await ledger.create_violations(order.id, stranger, [make_spec(rental_item)])
    with pytest.raises(UnauthorizedError):
        await ledger.create_violations(order.id, customer, [make_spec(rental_item)])


async def test_unknown_order(ledger, provider, rental_item, make_spec):
    with pytest.raises(NotFoundError):
        await ledger.create_violations(uuid.uuid4(), provider, [make_spec(rental_item)])


async def test_order_not_under_inspection(ledger, order, provider, rental_item, make_spec, db):
    """Test claims cannot be filed while the item is still rented out"""
    order.status = OrderStatus.IN_USE.value
    db.commit()

    with pytest.raises(InvalidStateError):
        await ledger.create_violations(order.id, provider, [make_spec(rental_item)])


async def test_item_from_another_order(ledger, order, two_item_order, provider, make_spec):
    with pytest.raises(ValidationError) as exc:
        await ledger.create_violations(order.id, provider, [make_spec(two_item_order.items[0])])
    assert exc.value.field == "order_item_id"


async def test_duplicate_item_in_batch(ledger, order, provider, rental_item, make_spec):
    with pytest.raises(ValidationError):
        await ledger.create_violations(order.id, provider, [make_spec(rental_item), make_spec(rental_item)])


async def test_second_report_for_same_item(ledger, order, provider, rental_item, make_spec, pending_violation):
    """Test an item can carry only one violation report"""
    with pytest.raises(InvalidStateError):
        await ledger.create_violations(order.id, provider, [make_spec(rental_item)])


async def test_evidence_required(ledger, order, provider, rental_item, make_spec):
    with pytest.raises(ValidationError) as exc:
        await ledger.create_violations(order.id, provider, [make_spec(rental_item, evidence=[])])
    assert exc.value.field == "evidence"


async def test_invalid_evidence_format(ledger, order, provider, rental_item, make_spec, evidence_store):
    pdf = EvidenceFile("report.pdf", "application/pdf", b"%PDF")
    with pytest.raises(ValidationError):
        await ledger.create_violations(order.id, provider, [make_spec(rental_item, evidence=[pdf])])
    evidence_store.upload.assert_not_awaited()


async def test_short_description(ledger, order, provider, rental_item, make_spec):
    with pytest.raises(ValidationError) as exc:
        await ledger.create_violations(order.id, provider, [make_spec(rental_item, description="bad")])
    assert exc.value.field == "description"


def test_resubmit_rejected_violation(ledger, rejected_violation, provider, customer, outbox):
    """Test the provider's revision reopens the claim and clears the previous round"""
    violation = ledger.resubmit_violation(
        rejected_violation.id,
        provider,
        ViolationPatch(description="Scratch measured at 3cm on the housing", penalty_cents=2500),
    )

    assert violation.status == ViolationStatus.PENDING.value
    assert violation.penalty_cents == 2500
    assert violation.penalty_percentage == 40.0
    assert violation.customer_notes is None
    assert violation.customer_response_at is None
    [notification] = outbox.drain()
    assert notification.user_id == customer.user_id


def test_resubmit_requires_rejection(ledger, pending_violation, provider):
    with pytest.raises(InvalidStateError):
        ledger.resubmit_violation(pending_violation.id, provider, ViolationPatch(penalty_cents=1000))


def test_resubmit_penalty_above_deposit(ledger, rejected_violation, provider, db):
    with pytest.raises(ValidationError):
        ledger.resubmit_violation(rejected_violation.id, provider, ViolationPatch(penalty_cents=10001))

    db.refresh(rejected_violation)
    assert rejected_violation.status == ViolationStatus.CUSTOMER_REJECTED.value
    assert rejected_violation.penalty_cents == 4000


def test_get_violation_visibility(ledger, pending_violation, provider, customer, admin, stranger):
    """Test parties of the order and admins can read a claim, others cannot"""
    for actor in (provider, customer, admin):
        detail = ledger.get_violation(pending_violation.id, actor)
        assert detail.deposit_cents == 10000
        assert detail.refund_cents == 6000

    with pytest.raises(UnauthorizedError):
        ledger.get_violation(pending_violation.id, stranger)


def test_list_for_actor(ledger, pending_violation, provider, customer, stranger, admin):
    assert [d.violation.id for d in ledger.list_for_actor(provider)] == [pending_violation.id]
    assert [d.violation.id for d in ledger.list_for_actor(customer)] == [pending_violation.id]
    assert ledger.list_for_actor(stranger) == []
    with pytest.raises(ValidationError):
        ledger.list_for_actor(admin)


def test_list_order_violations(ledger, order, pending_violation, customer):
    details = ledger.list_order_violations(order.id, customer)
    assert [d.violation.id for d in details] == [pending_violation.id]


async def test_second_report_for_item_rejected_by_database(ledger, order, provider, rental_item, make_spec, evidence_store, db):
    """Test the one-report-per-item rule holds even when the pre-check races"""
    await ledger.create_violations(order.id, provider, [make_spec(rental_item)])

    with patch.object(ViolationRepository, "exists_for_order_item", return_value=False):
        with pytest.raises(InvalidStateError):
            await ledger.create_violations(order.id, provider, [make_spec(rental_item, penalty_cents=1000)])

    assert db.query(RentalViolation).count() == 1
    assert db.query(RentalViolation).one().penalty_cents == 4000
    evidence_store.upload.assert_awaited_once()
    evidence_store.delete.assert_not_awaited()
