"""Request logging middleware for the audit query API.

Assigns each request an id (taken from X-Request-ID when present),
binds it into the structlog context so audit failures logged while
serving the request carry it, and logs request start and completion.
"""

import time
import uuid
from typing import Any

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint


logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that tags requests with an id and logs them."""

    def __init__(
        self,
        app: Any,
        exclude_paths: list[str] | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application
            exclude_paths: Paths that are served without logging
        """
        super().__init__(app)
        self.exclude_paths = exclude_paths or ["/docs", "/redoc", "/openapi.json"]

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process the request and log details.

        Args:
            request: The incoming request
            call_next: The next middleware/handler

        Returns:
            The response with the X-Request-ID header set
        """
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id

        if any(request.url.path.startswith(path) for path in self.exclude_paths):
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.perf_counter()

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            query=str(request.url.query) or None,
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "request_failed",
                method=request.method,
                path=request.url.path,
                duration_ms=round(duration_ms, 2),
                error=str(exc),
            )
            raise
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        duration_ms = (time.perf_counter() - start_time) * 1000
        completion_data: dict[str, Any] = {
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
            "request_id": request_id,
        }

        if response.status_code >= 500:
            logger.error("request_completed", **completion_data)
        elif response.status_code >= 400:
            logger.warning("request_completed", **completion_data)
        else:
            logger.info("request_completed", **completion_data)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
