"""FastAPI middleware utilities for request tracing and logging"""
import uuid
from typing import Callable
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
import time

from .logging import set_correlation_id, get_logger

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation ID to requests for tracing"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        response.headers[CORRELATION_HEADER] = correlation_id

        logger.info(
            f"{request.method} {request.url.path} completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time": round(process_time, 4),
            }
        )

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for incoming request logging.

    Only request metadata is logged; bodies carry user prompts and stay out
    of the logs.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        logger.info(
            f"Incoming {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent"),
            }
        )

        return await call_next(request)


def add_middleware(app: FastAPI) -> None:
    """Add standard middleware to FastAPI app"""
    # Starlette runs the last-added middleware first, so correlation is added last
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationMiddleware)

    logger.info("Standard middleware added to FastAPI app")
