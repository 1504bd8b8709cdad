"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from rental_disputes.domain.models import (
    RefundStatus,
    ResolutionStatus,
    ResolutionType,
    ViolationStatus,
    ViolationType,
)


class ViolationSpecRequest(BaseModel):
    """One violation inside POST /v1/orders/{order_id}/violations"""

    order_item_id: str = Field(..., description="Order item the claim is filed against")
    violation_type: ViolationType
    description: str
    damage_percentage: Optional[float] = None
    penalty_percentage: float
    penalty_cents: int
    evidence_filenames: List[str] = Field(default_factory=list, description="Names of uploaded files backing this claim")


class CreateViolationsRequest(BaseModel):
    """JSON `payload` form field of POST /v1/orders/{order_id}/violations"""

    violations: List[ViolationSpecRequest] = Field(..., min_length=1)


class ResubmitViolationRequest(BaseModel):
    """Request body for PUT /v1/violations/{violation_id}"""

    description: Optional[str] = None
    penalty_percentage: Optional[float] = None
    penalty_cents: Optional[int] = None


class ProviderReplyRequest(BaseModel):
    """Request body for POST /v1/violations/{violation_id}/provider-reply"""

    response: str = Field(..., min_length=1)


class EscalationRequest(BaseModel):
    """Request body for POST /v1/violations/{violation_id}/escalation"""

    reason: str


class ResolutionRequest(BaseModel):
    """Request body for POST /v1/admin/disputes/{violation_id}/resolution"""

    resolution_type: ResolutionType
    customer_fine_cents: int = Field(0, ge=0)
    provider_compensation_cents: int = Field(0, ge=0)
    reason: str


class PayoutRequest(BaseModel):
    """Request body for POST /v1/admin/refunds/{refund_id}/payout"""

    approve: bool
    bank_account_id: Optional[str] = None
    external_transaction_id: Optional[str] = None
    notes: Optional[str] = None


class EvidenceSchema(BaseModel):
    url: str
    uploaded_by: str
    file_type: str
    uploaded_at: datetime


class ViolationResponse(BaseModel):
    """Violation with the deposit and refund it implies for its item"""

    violation_id: str
    order_id: str
    order_item_id: str
    violation_type: ViolationType
    description: str
    damage_percentage: Optional[float] = None
    penalty_percentage: float
    penalty_cents: int
    deposit_cents: int
    refund_cents: int
    status: ViolationStatus
    customer_notes: Optional[str] = None
    customer_response_at: Optional[datetime] = None
    provider_response_to_customer: Optional[str] = None
    provider_response_at: Optional[datetime] = None
    provider_escalation_reason: Optional[str] = None
    customer_escalation_reason: Optional[str] = None
    provider_evidence: List[EvidenceSchema] = Field(default_factory=list)
    customer_evidence: List[EvidenceSchema] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None


class ViolationListResponse(BaseModel):
    violations: List[ViolationResponse]


class ResolutionResponse(BaseModel):
    resolution_id: str
    violation_id: str
    resolution_type: ResolutionType
    customer_fine_cents: int
    provider_compensation_cents: int
    reason: str
    resolution_status: ResolutionStatus
    processed_at: datetime
    processed_by_admin_id: str


class DisputeCaseResponse(BaseModel):
    violation: ViolationResponse
    resolution: Optional[ResolutionResponse] = None


class RefundResponse(BaseModel):
    refund_id: str
    order_id: str
    customer_id: str
    original_deposit_cents: int
    total_penalty_cents: int
    refund_cents: int
    status: RefundStatus
    refund_bank_account_id: Optional[str] = None
    notes: Optional[str] = None
    processed_by_admin_id: Optional[str] = None
    processed_at: Optional[datetime] = None
    external_transaction_id: Optional[str] = None
    created_at: datetime


class RefundListResponse(BaseModel):
    refunds: List[RefundResponse]


class PendingCountResponse(BaseModel):
    pending: int


class ErrorResponse(BaseModel):
    error: str
    detail: str
    entity: Optional[str] = None
    field: Optional[str] = None
