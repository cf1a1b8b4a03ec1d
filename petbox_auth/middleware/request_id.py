"""
Correlation ID middleware

Generates a correlation id per request (or accepts an inbound
X-Correlation-ID / X-Request-ID) and exposes it on:
- request.state.correlation_id (for handlers and error responses)
- the X-Correlation-ID response header
"""
import uuid
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware to generate and propagate correlation ids"""

    async def dispatch(self, request: Request, call_next):
        correlation_id = (
            request.headers.get(CORRELATION_HEADER)
            or request.headers.get("X-Request-ID")
            or str(uuid.uuid4())
        )
        request.state.correlation_id = correlation_id

        logger.debug(f"Request {correlation_id}: {request.method} {request.url.path}")

        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response
