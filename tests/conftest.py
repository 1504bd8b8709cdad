"""Pytest fixtures for testing"""

import uuid
import pytest
from typing import Callable, Generator
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from rental_disputes.api.dependencies import (
    get_bank_account_registry,
    get_evidence_store,
    get_notification_client,
)
from rental_disputes.api.main import create_app
from rental_disputes.domain.models import (
    Actor,
    ActorRole,
    EvidenceFile,
    OrderStatus,
    TransactionType,
    ViolationSpec,
    ViolationType,
)
from rental_disputes.infrastructure.clients.bank_accounts import BankAccountRegistry
from rental_disputes.infrastructure.clients.evidence_store import EvidenceStoreClient
from rental_disputes.infrastructure.clients.notifications import NotificationClient
from rental_disputes.infrastructure.database.models import Base, RentalOrder, RentalOrderItem
from rental_disputes.infrastructure.database.session import get_db
from rental_disputes.services.admin_resolution import AdminResolutionEngine
from rental_disputes.services.dispute_workflow import DisputeWorkflow
from rental_disputes.services.outbox import NotificationOutbox
from rental_disputes.services.refund_reconciler import DepositRefundReconciler
from rental_disputes.services.violation_ledger import ViolationLedger


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

DEPOSIT_CENTS = 10000  # $100 deposit on the rented item


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def second_session(db: Session) -> Generator[Session, None, None]:
    """Independent session on the same database, standing in for a concurrent request"""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


# ------------------------------------------------------------
# Actors
# ------------------------------------------------------------


@pytest.fixture
def provider() -> Actor:
    return Actor(user_id=uuid.uuid4(), role=ActorRole.PROVIDER)


@pytest.fixture
def customer() -> Actor:
    return Actor(user_id=uuid.uuid4(), role=ActorRole.CUSTOMER)


@pytest.fixture
def admin() -> Actor:
    return Actor(user_id=uuid.uuid4(), role=ActorRole.ADMIN)


@pytest.fixture
def stranger() -> Actor:
    """Provider who does not own the order"""
    return Actor(user_id=uuid.uuid4(), role=ActorRole.PROVIDER)


@pytest.fixture
def auth_headers() -> Callable[[Actor], dict]:
    def headers(actor: Actor) -> dict:
        return {"X-User-Id": str(actor.user_id), "X-User-Role": actor.role.value}

    return headers


# ------------------------------------------------------------
# Seeded orders
# ------------------------------------------------------------


def seed_order(db: Session, provider: Actor, customer: Actor, items: list[RentalOrderItem]) -> RentalOrder:
    order = RentalOrder(
        customer_id=customer.user_id,
        provider_id=provider.user_id,
        status=OrderStatus.RETURNING.value,
        items=items,
    )
    db.add(order)
    db.commit()
    return order


@pytest.fixture
def order(db: Session, provider: Actor, customer: Actor) -> RentalOrder:
    """Returning order: one rented camera with a $100 deposit and a purchased accessory"""
    return seed_order(
        db,
        provider,
        customer,
        [
            RentalOrderItem(
                product_id=uuid.uuid4(),
                product_name="Camera",
                transaction_type=TransactionType.RENTAL.value,
                quantity=1,
                deposit_per_unit_cents=DEPOSIT_CENTS,
            ),
            RentalOrderItem(
                product_id=uuid.uuid4(),
                product_name="Lens cap",
                transaction_type=TransactionType.PURCHASE.value,
                quantity=1,
                deposit_per_unit_cents=5000,
            ),
        ],
    )


@pytest.fixture
def two_item_order(db: Session, provider: Actor, customer: Actor) -> RentalOrder:
    """Returning order with two rented items: $100 and 2 x $25 deposits"""
    return seed_order(
        db,
        provider,
        customer,
        [
            RentalOrderItem(
                product_id=uuid.uuid4(),
                product_name="Tent",
                transaction_type=TransactionType.RENTAL.value,
                quantity=1,
                deposit_per_unit_cents=DEPOSIT_CENTS,
            ),
            RentalOrderItem(
                product_id=uuid.uuid4(),
                product_name="Sleeping bag",
                transaction_type=TransactionType.RENTAL.value,
                quantity=2,
                deposit_per_unit_cents=2500,
            ),
        ],
    )


@pytest.fixture
def rental_item(order: RentalOrder) -> RentalOrderItem:
    return next(i for i in order.items if i.transaction_type == TransactionType.RENTAL.value)


@pytest.fixture
def photo() -> EvidenceFile:
    return EvidenceFile(filename="scratch.jpg", content_type="image/jpeg", content=b"\xff\xd8\xff" + b"0" * 64)


@pytest.fixture
def make_spec(photo: EvidenceFile) -> Callable[..., ViolationSpec]:
    def build(item: RentalOrderItem, penalty_cents: int = 4000, **overrides) -> ViolationSpec:
        values = dict(
            order_item_id=item.id,
            violation_type=ViolationType.DAMAGED,
            description="Deep scratch across the lens housing",
            penalty_percentage=40.0,
            penalty_cents=penalty_cents,
            damage_percentage=30.0,
            evidence=[photo],
        )
        values.update(overrides)
        return ViolationSpec(**values)

    return build


# ------------------------------------------------------------
# Collaborators and services
# ------------------------------------------------------------


@pytest.fixture
def evidence_store() -> AsyncMock:
    """Evidence store that hands back a deterministic URL per uploaded file"""
    store = AsyncMock(spec=EvidenceStoreClient)
    store.upload.side_effect = lambda content, filename, content_type, owner_id: f"https://evidence.test/{filename}"
    return store


@pytest.fixture
def bank_accounts() -> AsyncMock:
    registry = AsyncMock(spec=BankAccountRegistry)
    registry.exists.return_value = True
    return registry


@pytest.fixture
def notifier() -> AsyncMock:
    client = AsyncMock(spec=NotificationClient)
    client.deliver_all.return_value = 0
    return client


@pytest.fixture
def outbox() -> NotificationOutbox:
    return NotificationOutbox()


@pytest.fixture
def reconciler(db: Session, outbox: NotificationOutbox, bank_accounts: AsyncMock) -> DepositRefundReconciler:
    return DepositRefundReconciler(db, outbox, bank_accounts=bank_accounts)


@pytest.fixture
def ledger(db: Session, evidence_store: AsyncMock, outbox: NotificationOutbox) -> ViolationLedger:
    return ViolationLedger(db, evidence_store, outbox)


@pytest.fixture
def workflow(
    db: Session,
    evidence_store: AsyncMock,
    outbox: NotificationOutbox,
    reconciler: DepositRefundReconciler,
) -> DisputeWorkflow:
    return DisputeWorkflow(db, evidence_store, outbox, reconciler=reconciler)


@pytest.fixture
def resolution_engine(db: Session, outbox: NotificationOutbox, reconciler: DepositRefundReconciler) -> AdminResolutionEngine:
    return AdminResolutionEngine(db, outbox, reconciler=reconciler)


@pytest.fixture
def client(db: Session, evidence_store: AsyncMock, bank_accounts: AsyncMock, notifier: AsyncMock) -> TestClient:
    """Create FastAPI test client with test database and stubbed collaborators"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_evidence_store] = lambda: evidence_store
    app.dependency_overrides[get_bank_account_registry] = lambda: bank_accounts
    app.dependency_overrides[get_notification_client] = lambda: notifier
    return TestClient(app)


# ------------------------------------------------------------
# Violations in a given workflow state
# ------------------------------------------------------------


@pytest.fixture
async def pending_violation(ledger, order, provider, rental_item, make_spec, outbox):
    """$40 damage claim filed against the rented item"""
    [violation] = await ledger.create_violations(order.id, provider, [make_spec(rental_item)])
    outbox.drain()
    return violation


@pytest.fixture
async def rejected_violation(workflow, pending_violation, customer, outbox):
    await workflow.customer_respond(
        pending_violation.id,
        customer,
        accept=False,
        notes="The scratch was already there when I picked it up",
    )
    outbox.drain()
    return pending_violation
