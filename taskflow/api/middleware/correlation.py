"""Correlation Middleware - One id per request for logs and the response"""
import re
import time
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from ...utils.logger import get_logger, set_correlation_id
from ...utils.idgen import generate_correlation_id

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-Id"

# Ids echoed back into headers and logs must be short, printable tokens
_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9._:\-]{1,64}$")


def resolve_correlation_id(candidate: Optional[str]) -> str:
    """Keep a caller-supplied id when it looks sane, otherwise mint one"""
    if candidate and _ACCEPTED_ID.match(candidate):
        return candidate
    return generate_correlation_id()


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Bind a correlation id to the request
    
    The id is stored on ``request.state``, placed in the logging context,
    returned in the response header and attached to a timing log line.
    """
    
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = resolve_correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.correlation_id = correlation_id
        set_correlation_id(correlation_id)
        
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        
        response.headers[CORRELATION_HEADER] = correlation_id
        logger.debug(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f} ms)",
            extra={"action": f"{request.method} {request.url.path}", "status": response.status_code}
        )
        return response
