"""Violation dispute state machine and per-command capability checks"""

import enum
import uuid
from typing import Dict, FrozenSet

from rental_disputes.domain.exceptions import InvalidStateError, UnauthorizedError
from rental_disputes.domain.models import Actor, ActorRole, ViolationStatus

# PENDING -> CUSTOMER_ACCEPTED (terminal, settled by the customer)
# PENDING -> CUSTOMER_REJECTED -> PENDING (provider resubmits) | RESOLVED (admin ruling)
TRANSITIONS: Dict[ViolationStatus, FrozenSet[ViolationStatus]] = {
    ViolationStatus.PENDING: frozenset({ViolationStatus.CUSTOMER_ACCEPTED, ViolationStatus.CUSTOMER_REJECTED}),
    ViolationStatus.CUSTOMER_REJECTED: frozenset({ViolationStatus.PENDING, ViolationStatus.RESOLVED}),
    ViolationStatus.CUSTOMER_ACCEPTED: frozenset(),
    ViolationStatus.RESOLVED: frozenset(),
}

SETTLED_STATUSES = frozenset({ViolationStatus.CUSTOMER_ACCEPTED, ViolationStatus.RESOLVED})


def can_transition(current: ViolationStatus, target: ViolationStatus) -> bool:
    return target in TRANSITIONS[current]


def ensure_transition(violation_id: uuid.UUID, current: ViolationStatus, target: ViolationStatus) -> None:
    """Raise InvalidStateError unless current -> target is a legal move"""
    if not can_transition(current, target):
        raise InvalidStateError(
            f"Violation {violation_id} cannot move from {current.value} to {target.value}",
            entity=str(violation_id),
            field="status",
        )


def ensure_status(violation_id: uuid.UUID, current: ViolationStatus, expected: ViolationStatus, action: str) -> None:
    """For annotations that require a status but do not change it"""
    if current != expected:
        raise InvalidStateError(
            f"Cannot {action} violation {violation_id} while it is {current.value}",
            entity=str(violation_id),
            field="status",
        )


def is_settled(status: ViolationStatus) -> bool:
    return status in SETTLED_STATUSES


class Capability(str, enum.Enum):
    FILE_VIOLATION = "file_violation"
    RESUBMIT_VIOLATION = "resubmit_violation"
    RESPOND_TO_VIOLATION = "respond_to_violation"
    REPLY_TO_CUSTOMER = "reply_to_customer"
    ESCALATE = "escalate"
    VIEW = "view"
    RESOLVE_DISPUTE = "resolve_dispute"
    PROCESS_REFUND = "process_refund"


class Party(str, enum.Enum):
    ORDER_PROVIDER = "order_provider"
    ORDER_CUSTOMER = "order_customer"
    ADMIN = "admin"


CAPABILITY_GRANTS: Dict[Capability, FrozenSet[Party]] = {
    Capability.FILE_VIOLATION: frozenset({Party.ORDER_PROVIDER}),
    Capability.RESUBMIT_VIOLATION: frozenset({Party.ORDER_PROVIDER}),
    Capability.RESPOND_TO_VIOLATION: frozenset({Party.ORDER_CUSTOMER}),
    Capability.REPLY_TO_CUSTOMER: frozenset({Party.ORDER_PROVIDER}),
    Capability.ESCALATE: frozenset({Party.ORDER_PROVIDER, Party.ORDER_CUSTOMER}),
    Capability.VIEW: frozenset({Party.ORDER_PROVIDER, Party.ORDER_CUSTOMER, Party.ADMIN}),
    Capability.RESOLVE_DISPUTE: frozenset({Party.ADMIN}),
    Capability.PROCESS_REFUND: frozenset({Party.ADMIN}),
}


def party_of(actor: Actor, provider_id: uuid.UUID | None, customer_id: uuid.UUID | None) -> Party | None:
    """Which side of the order (if any) the actor stands on"""
    if actor.role == ActorRole.ADMIN:
        return Party.ADMIN
    if actor.role == ActorRole.PROVIDER and actor.user_id == provider_id:
        return Party.ORDER_PROVIDER
    if actor.role == ActorRole.CUSTOMER and actor.user_id == customer_id:
        return Party.ORDER_CUSTOMER
    return None


def authorize(
    actor: Actor,
    capability: Capability,
    provider_id: uuid.UUID | None = None,
    customer_id: uuid.UUID | None = None,
    entity: str | None = None,
) -> Party:
    """Single capability check per command; returns the actor's party or raises UnauthorizedError"""
    party = party_of(actor, provider_id, customer_id)
    if party is None or party not in CAPABILITY_GRANTS[capability]:
        raise UnauthorizedError(
            f"User {actor.user_id} ({actor.role.value}) may not {capability.value} on {entity or 'this record'}",
            entity=entity,
        )
    return party
