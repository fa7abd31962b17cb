"""
FastAPI Middleware - agentstream

Request logging middleware for the agentstream server.
"""

import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ...utils.logging import clear_request_context, get_logger, set_request_context

middleware_logger = get_logger('server.middleware')

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and tags it with a request id"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        set_request_context(request_id)

        middleware_logger.info(f"{request.method} {request.url.path}")

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id

            # For streamed runs this is time to first byte, not stream duration
            duration = time.time() - start_time
            if response.status_code >= 400:
                middleware_logger.warning(f"{response.status_code} - {duration:.3f}s")
            else:
                middleware_logger.info(f"{response.status_code} - {duration:.3f}s")
        finally:
            clear_request_context()

        return response
