"""Domain models - enums and pure Python dataclasses for the dispute workflow"""

import enum
import uuid
from dataclasses import dataclass, field
from typing import List, Optional


class ViolationType(str, enum.Enum):
    DAMAGED = "DAMAGED"
    LATE_RETURN = "LATE_RETURN"
    NOT_RETURNED = "NOT_RETURNED"


class ViolationStatus(str, enum.Enum):
    PENDING = "PENDING"
    CUSTOMER_ACCEPTED = "CUSTOMER_ACCEPTED"
    CUSTOMER_REJECTED = "CUSTOMER_REJECTED"
    RESOLVED = "RESOLVED"


class ResolutionType(str, enum.Enum):
    UPHOLD_CLAIM = "UPHOLD_CLAIM"
    REJECT_CLAIM = "REJECT_CLAIM"
    COMPROMISE = "COMPROMISE"


class ResolutionStatus(str, enum.Enum):
    PENDING = "PENDING"
    UNDER_REVIEW = "UNDER_REVIEW"
    COMPLETED = "COMPLETED"


class RefundStatus(str, enum.Enum):
    INITIATED = "initiated"
    COMPLETED = "completed"
    FAILED = "failed"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    IN_USE = "in_use"
    RETURNING = "returning"
    RETURNED_WITH_ISSUE = "returned_with_issue"
    RETURNED = "returned"
    CANCELLED = "cancelled"


class TransactionType(str, enum.Enum):
    RENTAL = "rental"
    PURCHASE = "purchase"


class ActorRole(str, enum.Enum):
    PROVIDER = "provider"
    CUSTOMER = "customer"
    ADMIN = "admin"


class EvidenceUploader(str, enum.Enum):
    PROVIDER = "PROVIDER"
    CUSTOMER = "CUSTOMER"


class NotificationCategory(str, enum.Enum):
    ORDER = "order"
    DISPUTE = "dispute"
    REFUND = "refund"


@dataclass
class Actor:
    """Caller of a command, as asserted by the upstream gateway"""

    user_id: uuid.UUID
    role: ActorRole


@dataclass
class EvidenceFile:
    """Uploaded evidence file handed over by the HTTP layer"""

    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class ViolationSpec:
    """One violation the provider files against an order item"""

    order_item_id: uuid.UUID
    violation_type: ViolationType
    description: str
    penalty_percentage: float
    penalty_cents: int
    damage_percentage: Optional[float] = None
    evidence: List[EvidenceFile] = field(default_factory=list)


@dataclass
class ViolationPatch:
    """Provider's revision after a customer rejection; None keeps the current value"""

    description: Optional[str] = None
    penalty_percentage: Optional[float] = None
    penalty_cents: Optional[int] = None


@dataclass
class ResolutionAmounts:
    """Monetary outcome of an admin ruling"""

    customer_fine_cents: int
    provider_compensation_cents: int
    violation_penalty_cents: int


@dataclass
class Notification:
    """Message queued for the notification sink; delivered after commit"""

    user_id: uuid.UUID
    message: str
    category: NotificationCategory
    related_order_id: Optional[uuid.UUID] = None
