"""Prometheus metrics for monitoring violations, disputes, refunds and collaborator health"""

from prometheus_client import Counter, Histogram

# Workflow metrics
violations_filed_counter = Counter(
    "rental_violations_filed_total",
    "Violations filed by providers",
    ["violation_type"],  # DAMAGED | LATE_RETURN | NOT_RETURNED
)

customer_response_counter = Counter(
    "rental_violation_customer_responses_total",
    "Customer responses to violations",
    ["outcome"],  # accepted | rejected
)

resolution_counter = Counter(
    "rental_dispute_resolutions_total",
    "Admin dispute rulings",
    ["resolution_type"],
)

refund_payout_counter = Counter(
    "rental_deposit_refund_payouts_total",
    "Processed deposit refund payouts",
    ["outcome"],  # completed | failed
)

# Collaborator metrics
notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
)

evidence_store_failure_counter = Counter(
    "evidence_store_failures_total",
    "Failed evidence store calls",
    ["operation"],  # upload | delete
)

evidence_upload_latency_histogram = Histogram(
    "evidence_upload_latency_seconds",
    "Evidence store upload response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_customer_response(accepted: bool) -> None:
    """Record whether the customer accepted or rejected a claim"""
    outcome = "accepted" if accepted else "rejected"
    customer_response_counter.labels(outcome=outcome).inc()
