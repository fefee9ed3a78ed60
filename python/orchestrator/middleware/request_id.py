"""
Request ID Middleware for Correlation Tracking
Adds unique request IDs to every API call; the service invoker forwards the
id to collaborators so one graph execution can be traced across services.
"""
import logging
import time
import uuid
from contextvars import ContextVar
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Context variable to store request ID across async contexts
request_id_context: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add unique request IDs for correlation tracking.

    - Accepts an existing X-Request-ID header from clients
    - Adds request_id to response headers
    - Stores request_id in context for logging and outgoing calls
    """

    def __init__(self, app: ASGIApp, header_name: str = REQUEST_ID_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        token = request_id_context.set(request_id)
        request.state.request_id = request_id
        start_time = time.time()

        try:
            response = await call_next(request)
        finally:
            request_id_context.reset(token)

        response.headers[self.header_name] = request_id
        logger.info(
            "%s %s -> %s (%.2fms) [%s]",
            request.method,
            request.url.path,
            response.status_code,
            (time.time() - start_time) * 1000,
            request_id,
        )
        return response


def get_request_id() -> Optional[str]:
    """
    Get current request ID from context.

    Returns:
        Request ID string or None if not in request context
    """
    return request_id_context.get()
