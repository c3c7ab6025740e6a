"""
Web middleware for the W-9 relay.

- Request ID on every request (response header and log records)
- Request body size limit (a base64 PDF plus form data fits well under it)
"""

import logging
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from services.logging_config import request_id_var

logger = logging.getLogger(__name__)

# Maximum request body (10MB)
MAX_CONTENT_LENGTH = 10 * 1024 * 1024


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Inject request ID into all requests for tracing.

    An incoming X-Request-ID is kept; otherwise one is generated.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or f"REQ-{uuid.uuid4().hex[:16]}"
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers["X-Request-ID"] = request_id
        return response


class ContentLengthLimitMiddleware(BaseHTTPMiddleware):
    """Reject bodies that declare more than ``max_content_length`` bytes."""

    def __init__(self, app, max_content_length: int = MAX_CONTENT_LENGTH):
        super().__init__(app)
        self.max_content_length = max_content_length

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_content_length:
            logger.warning(f"Rejected request body of {content_length} bytes")
            return JSONResponse(status_code=413, content={"error": "Request body too large"})
        return await call_next(request)
