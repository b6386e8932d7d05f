"""
Request tracing middleware

Request ID tracking and timing, bound into structlog's context so every log
line emitted while serving a request carries it.
"""
import uuid
import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
import structlog

logger = structlog.get_logger()


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request tracing with context propagation

    - Generates or extracts request ID
    - Adds X-Request-ID and X-Response-Time response headers
    - Logs completion at debug level (scrapes are frequent)
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path
        )

        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error("request_failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=round(duration_ms, 2)
            )
            structlog.contextvars.unbind_contextvars("request_id", "method", "path")
            raise

        duration_ms = (time.time() - start_time) * 1000

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"

        logger.debug("request_completed",
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
            client_host=request.client.host if request.client else None
        )

        structlog.contextvars.unbind_contextvars("request_id", "method", "path")

        return response
