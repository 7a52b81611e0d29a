"""Request middleware and exception handlers for the workflow API"""
from .correlation import CORRELATION_HEADER, CorrelationIdMiddleware, resolve_correlation_id
from .error_handlers import TRANSITION_ERROR_STATUS, register_error_handlers, transition_error_response

__all__ = [
    "CORRELATION_HEADER",
    "CorrelationIdMiddleware",
    "resolve_correlation_id",
    "TRANSITION_ERROR_STATUS",
    "register_error_handlers",
    "transition_error_response",
]
