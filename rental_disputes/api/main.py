"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from rental_disputes.api.dependencies import get_request_id
from rental_disputes.api.middleware import RequestContextMiddleware
from rental_disputes.api.v1 import disputes, refunds, violations
from rental_disputes.config import settings
from rental_disputes.domain.exceptions import (
    CollaboratorError,
    DomainException,
    InvalidStateError,
    NotFoundError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from rental_disputes.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)

STATUS_BY_EXCEPTION = {
    UnauthorizedError: 403,
    NotFoundError: 404,
    InvalidStateError: 409,
    ValidationError: 422,
    StorageError: 502,
    CollaboratorError: 502,
}


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    """Map domain failures to 4xx/5xx with the offending entity and field"""
    status_code = STATUS_BY_EXCEPTION.get(type(exc), 400)
    log = logging.error if status_code >= 500 else logging.warning
    log(f"{exc.error_code}: {exc.message}", extra={"request_id": get_request_id(request)})
    return JSONResponse(
        status_code=status_code,
        content={
            "error": exc.error_code,
            "detail": exc.message,
            "entity": exc.entity,
            "field": exc.field,
        },
    )


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Rental Dispute Service",
        description="Rental violation, dispute resolution and deposit refund workflow",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_middleware(RequestContextMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(violations.router, prefix="/v1", tags=["violations"])
    app.include_router(disputes.router, prefix="/v1", tags=["disputes"])
    app.include_router(refunds.router, prefix="/v1", tags=["refunds"])

    return app


app = create_app()
