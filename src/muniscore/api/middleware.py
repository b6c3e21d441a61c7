import logging
import time
from uuid import uuid4

from fastapi import Request

logger = logging.getLogger("muniscore.api")

REQUEST_ID_HEADER = "x-request-id"


async def add_request_id(request: Request, call_next):
    """Tags the request with the caller's id, or a fresh short one, and echoes it back."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid4().hex[:12]
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
        kind = "report" if request.url.path.startswith("/evaluation") else "operation"
        logger.info(
            f"muniscore {kind} {request.method} {request.url.path} -> {status_code} ({elapsed_ms} ms)",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "endpoint_kind": kind,
                "query": str(request.url.query),
                "status_code": status_code,
                "elapsed_ms": elapsed_ms,
            },
        )
