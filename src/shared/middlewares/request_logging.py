"""Request logging and slow-request detection."""

import logging
import time
import uuid

import structlog
from fastapi import Request

logger = logging.getLogger(__name__)

SLOW_REQUEST_THRESHOLD_MS = 500
REQUEST_ID_HEADER = "X-Request-ID"


async def request_logging_middleware(request: Request, call_next):
    """Log method, path, status and duration of every request.

    The request id (taken from ``X-Request-ID`` or generated) is bound to the
    structlog context for the duration of the request and echoed back.
    Requests slower than ``SLOW_REQUEST_THRESHOLD_MS`` are logged at WARNING.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    started = time.perf_counter()
    try:
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.exception(f"{request.method} {request.url.path} failed after {elapsed_ms:.1f}ms")
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        message = f"{request.method} {request.url.path} -> {response.status_code} in {elapsed_ms:.1f}ms"
        if elapsed_ms > SLOW_REQUEST_THRESHOLD_MS:
            logger.warning(f"Slow request: {message}")
        else:
            logger.info(message)
    finally:
        structlog.contextvars.unbind_contextvars("request_id")

    response.headers[REQUEST_ID_HEADER] = request_id
    return response
