"""Per-request context: request ID, caller identity, latency metric and access log"""

import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from rental_disputes.infrastructure.observability.logging import log_http_request
from rental_disputes.infrastructure.observability.metrics import request_duration_histogram


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Tag every request with an ID and account for it once it completes.

    The histogram is labelled with the route template, not the raw path, so
    violation and refund IDs do not explode label cardinality.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - started
        route = request.scope.get("route")
        endpoint = getattr(route, "path", request.url.path)
        request_duration_histogram.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).observe(duration)
        log_http_request(
            request_id,
            request.method,
            endpoint,
            response.status_code,
            duration,
            user_id=request.headers.get("X-User-Id"),
            role=request.headers.get("X-User-Role"),
        )

        response.headers["X-Request-ID"] = request_id
        return response
