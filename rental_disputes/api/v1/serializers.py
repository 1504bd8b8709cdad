"""ORM -> response schema conversion shared by the v1 routers"""

from rental_disputes.api.v1.schemas import (
    DisputeCaseResponse,
    EvidenceSchema,
    RefundResponse,
    ResolutionResponse,
    ViolationResponse,
)
from rental_disputes.domain.models import EvidenceUploader
from rental_disputes.infrastructure.database.models import DepositRefund, IssueResolution
from rental_disputes.services.admin_resolution import DisputeCase
from rental_disputes.services.violation_ledger import ViolationDetail


def _str_or_none(value):
    return str(value) if value is not None else None


def violation_response(detail: ViolationDetail) -> ViolationResponse:
    v = detail.violation
    evidence = [
        (img.uploaded_by, EvidenceSchema(url=img.url, uploaded_by=img.uploaded_by, file_type=img.file_type, uploaded_at=img.uploaded_at))
        for img in v.images
    ]
    return ViolationResponse(
        violation_id=str(v.id),
        order_id=str(v.order_item.order_id),
        order_item_id=str(v.order_item_id),
        violation_type=v.violation_type,
        description=v.description,
        damage_percentage=v.damage_percentage,
        penalty_percentage=v.penalty_percentage,
        penalty_cents=v.penalty_cents,
        deposit_cents=detail.deposit_cents,
        refund_cents=detail.refund_cents,
        status=v.status,
        customer_notes=v.customer_notes,
        customer_response_at=v.customer_response_at,
        provider_response_to_customer=v.provider_response_to_customer,
        provider_response_at=v.provider_response_at,
        provider_escalation_reason=v.provider_escalation_reason,
        customer_escalation_reason=v.customer_escalation_reason,
        provider_evidence=[e for who, e in evidence if who == EvidenceUploader.PROVIDER.value],
        customer_evidence=[e for who, e in evidence if who == EvidenceUploader.CUSTOMER.value],
        created_at=v.created_at,
        updated_at=v.updated_at,
    )


def resolution_response(resolution: IssueResolution) -> ResolutionResponse:
    return ResolutionResponse(
        resolution_id=str(resolution.id),
        violation_id=str(resolution.violation_id),
        resolution_type=resolution.resolution_type,
        customer_fine_cents=resolution.customer_fine_cents,
        provider_compensation_cents=resolution.provider_compensation_cents,
        reason=resolution.reason,
        resolution_status=resolution.resolution_status,
        processed_at=resolution.processed_at,
        processed_by_admin_id=str(resolution.processed_by_admin_id),
    )


def dispute_case_response(case: DisputeCase) -> DisputeCaseResponse:
    return DisputeCaseResponse(
        violation=violation_response(case.detail),
        resolution=resolution_response(case.resolution) if case.resolution else None,
    )


def refund_response(refund: DepositRefund) -> RefundResponse:
    return RefundResponse(
        refund_id=str(refund.id),
        order_id=str(refund.order_id),
        customer_id=str(refund.customer_id),
        original_deposit_cents=refund.original_deposit_cents,
        total_penalty_cents=refund.total_penalty_cents,
        refund_cents=refund.refund_cents,
        status=refund.status,
        refund_bank_account_id=_str_or_none(refund.refund_bank_account_id),
        notes=refund.notes,
        processed_by_admin_id=_str_or_none(refund.processed_by_admin_id),
        processed_at=refund.processed_at,
        external_transaction_id=refund.external_transaction_id,
        created_at=refund.created_at,
    )
