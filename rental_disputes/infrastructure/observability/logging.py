"""Structured JSON logging for production observability"""

import logging
import sys
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from rental_disputes.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_violation_event(
    step: str,
    violation_id: uuid.UUID,
    order_id: uuid.UUID,
    status: str,
    actor_id: Optional[uuid.UUID] = None,
    penalty_cents: Optional[int] = None,
) -> None:
    """Log a violation lifecycle step (filed, resubmitted, accepted, rejected, ...)"""
    logging.info(
        "Violation %s",
        step,
        extra={
            "step": step,
            "violation_id": str(violation_id),
            "order_id": str(order_id),
            "violation_status": status,
            "actor_id": str(actor_id) if actor_id else None,
            "penalty_cents": penalty_cents,
        },
    )


def log_resolution(
    violation_id: uuid.UUID,
    admin_id: uuid.UUID,
    resolution_type: str,
    customer_fine_cents: int,
    provider_compensation_cents: int,
) -> None:
    """Log structured admin ruling for audit"""
    logging.info(
        "Dispute resolved",
        extra={
            "step": "dispute_resolved",
            "violation_id": str(violation_id),
            "admin_id": str(admin_id),
            "resolution_type": resolution_type,
            "customer_fine_cents": customer_fine_cents,
            "provider_compensation_cents": provider_compensation_cents,
        },
    )


def log_refund_event(step: str, refund_id: uuid.UUID, order_id: uuid.UUID, status: str, refund_cents: int) -> None:
    """Log deposit refund ledger changes"""
    logging.info(
        "Deposit refund %s",
        step,
        extra={
            "step": step,
            "refund_id": str(refund_id),
            "order_id": str(order_id),
            "refund_status": status,
            "refund_cents": refund_cents,
        },
    )


def log_http_request(
    request_id: str,
    method: str,
    endpoint: str,
    status: int,
    duration_seconds: float,
    user_id: Optional[str] = None,
    role: Optional[str] = None,
) -> None:
    """Access log line, one per handled request"""
    logging.info(
        "%s %s %s",
        method,
        endpoint,
        status,
        extra={
            "request_id": request_id,
            "http_method": method,
            "endpoint": endpoint,
            "http_status": status,
            "duration_ms": round(duration_seconds * 1000, 2),
            "user_id": user_id,
            "user_role": role,
        },
    )
