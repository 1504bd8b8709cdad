"""Penalty, deposit and refund arithmetic - core money rules of the dispute workflow"""

from typing import Callable, Dict, Iterable

from rental_disputes.domain.exceptions import ValidationError
from rental_disputes.domain.models import ResolutionAmounts, ResolutionType


def item_deposit_cents(deposit_per_unit_cents: int, quantity: int) -> int:
    """Security deposit held for one order line"""
    return deposit_per_unit_cents * quantity


def validate_penalty(penalty_cents: int, deposit_cents: int, item_label: str) -> None:
    """
    Reject a provider-entered penalty outside [0, deposit].

    Used when a claim is filed or resubmitted: an excessive penalty is an
    input error and must never be clamped silently.
    """
    if penalty_cents < 0:
        raise ValidationError(
            f"Penalty must not be negative for item {item_label}",
            entity=item_label,
            field="penalty_cents",
        )
    if penalty_cents > deposit_cents:
        raise ValidationError(
            f"Penalty {penalty_cents} exceeds deposit {deposit_cents} for item {item_label}",
            entity=item_label,
            field="penalty_cents",
        )


def validate_percentage(value: float, field_name: str, item_label: str) -> None:
    """Percentages are expressed in [0, 100]"""
    if value < 0 or value > 100:
        raise ValidationError(
            f"{field_name} must be between 0 and 100 for item {item_label}",
            entity=item_label,
            field=field_name,
        )


def clamp_penalty(penalty_cents: int, deposit_cents: int) -> int:
    """Clamp an admin-derived penalty into [0, deposit] before it is written back to a violation"""
    return max(0, min(penalty_cents, deposit_cents))


def compute_refund_cents(original_deposit_cents: int, total_penalty_cents: int) -> int:
    """Refund = deposit - penalty, never negative"""
    return max(0, original_deposit_cents - total_penalty_cents)


# ------------------------------------------------------------
# Admin resolution policies
# ------------------------------------------------------------


def uphold_claim_amounts(current_penalty_cents: int, fine_cents: int, compensation_cents: int) -> ResolutionAmounts:
    """
    Provider's claim stands as filed.

    Admin-supplied amounts are ignored on this branch; both the customer
    fine and the provider compensation equal the violation's penalty.
    """
    return ResolutionAmounts(
        customer_fine_cents=current_penalty_cents,
        provider_compensation_cents=current_penalty_cents,
        violation_penalty_cents=current_penalty_cents,
    )


def reject_claim_amounts(current_penalty_cents: int, fine_cents: int, compensation_cents: int) -> ResolutionAmounts:
    """Claim voided: nothing is deducted and the customer keeps the whole deposit"""
    return ResolutionAmounts(
        customer_fine_cents=0,
        provider_compensation_cents=0,
        violation_penalty_cents=0,
    )


def compromise_amounts(current_penalty_cents: int, fine_cents: int, compensation_cents: int) -> ResolutionAmounts:
    """Admin amounts are used verbatim; the violation penalty becomes the fine"""
    return ResolutionAmounts(
        customer_fine_cents=fine_cents,
        provider_compensation_cents=compensation_cents,
        violation_penalty_cents=fine_cents,
    )


RESOLUTION_POLICIES: Dict[ResolutionType, Callable[[int, int, int], ResolutionAmounts]] = {
    ResolutionType.UPHOLD_CLAIM: uphold_claim_amounts,
    ResolutionType.REJECT_CLAIM: reject_claim_amounts,
    ResolutionType.COMPROMISE: compromise_amounts,
}


def resolution_amounts(
    resolution_type: ResolutionType,
    current_penalty_cents: int,
    fine_cents: int,
    compensation_cents: int,
) -> ResolutionAmounts:
    """Apply the policy registered for the resolution type"""
    if fine_cents < 0:
        raise ValidationError("Customer fine must not be negative", entity="resolution", field="customer_fine_cents")
    if compensation_cents < 0:
        raise ValidationError(
            "Provider compensation must not be negative",
            entity="resolution",
            field="provider_compensation_cents",
        )
    policy = RESOLUTION_POLICIES[resolution_type]
    return policy(current_penalty_cents, fine_cents, compensation_cents)


# ------------------------------------------------------------
# Deposit refund aggregation
# ------------------------------------------------------------


def overwrite_aggregation(event_penalty_cents: int, other_settled_penalties: Iterable[int]) -> int:
    """Latest settlement wins"""
    return event_penalty_cents


def sum_aggregation(event_penalty_cents: int, other_settled_penalties: Iterable[int]) -> int:
    """Total penalty across every settled violation of the order"""
    return event_penalty_cents + sum(other_settled_penalties)


AGGREGATION_STRATEGIES: Dict[str, Callable[[int, Iterable[int]], int]] = {
    "overwrite": overwrite_aggregation,
    "sum": sum_aggregation,
}


def aggregate_penalty(strategy: str, event_penalty_cents: int, other_settled_penalties: Iterable[int]) -> int:
    try:
        aggregate = AGGREGATION_STRATEGIES[strategy]
    except KeyError:
        raise ValueError(f"Unknown penalty aggregation strategy: {strategy}")
    return aggregate(event_penalty_cents, other_settled_penalties)
