"""
Request/response logging middleware for tracking API interactions.
"""
import logging
import time
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from typing import Callable

from app.core.logging_config import request_id_context
from app.observability import metrics

logger = logging.getLogger(__name__)


def _route_template(request: Request) -> str:
    """Matched route path (e.g. /v1/attempts/{attempt_id}/submit) for metrics labels."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware to log incoming requests and outgoing responses.

    Logs:
    - Request method and path
    - Response status code and duration
    - Caller kind (student bearer token, admin token, or anonymous)

    Also records HTTP request metrics, labelled by route template so that
    attempt and test ids do not explode metric cardinality.
    """

    # Paths that are polled often and not worth an info line per request
    QUIET_PATHS = ("/health", "/ping", "/time")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """
        Process request and log details.

        Args:
            request: Incoming request
            call_next: Next middleware/endpoint in chain

        Returns:
            Response from the endpoint
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_context.set(request_id)

        start_time = time.perf_counter()

        # Never log credentials, only which kind were presented
        if request.headers.get("X-Admin-Token"):
            caller = "admin"
        elif request.headers.get("Authorization", "").startswith("Bearer "):
            caller = "student"
        else:
            caller = "anonymous"

        method = request.method
        path = str(request.url.path)
        client_host = request.client.host if request.client else "unknown"
        quiet = path.endswith(self.QUIET_PATHS)

        if not quiet:
            logger.debug(
                "Incoming request",
                extra={
                    "method": method,
                    "path": path,
                    "client_host": client_host,
                    "caller": caller,
                },
            )

        try:
            response = await call_next(request)
        finally:
            request_id_context.reset(token)

        duration = time.perf_counter() - start_time
        status_code = response.status_code

        response.headers["X-Request-ID"] = request_id

        metrics.record_http_request(
            method=method,
            path=_route_template(request),
            status_code=status_code,
            duration=duration,
        )

        extra_fields = {
            "method": method,
            "path": path,
            "status_code": status_code,
            "duration_ms": round(duration * 1000, 2),
            "client_host": client_host,
            "caller": caller,
        }

        if status_code >= 500:
            logger.error("Server error response", extra=extra_fields)
        elif status_code >= 400:
            logger.warning("Client error response", extra=extra_fields)
        elif not quiet:
            logger.info("Request completed", extra=extra_fields)

        return response
