"""
Request Middleware

Provides middleware for:
1. Correlation ID - Assigns a unique ID to each request for log tracing
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from lead_pipeline.shared.core.logging import set_correlation_id


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware that assigns a unique correlation ID to each request.

    - Generates a unique ID for each request (req-xxxxxxxx)
    - Accepts an incoming X-Request-ID header if provided
    - Echoes X-Request-ID on the response
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        incoming_id = request.headers.get("X-Request-ID")

        correlation_id = set_correlation_id(incoming_id)

        response = await call_next(request)

        response.headers["X-Request-ID"] = correlation_id

        return response
