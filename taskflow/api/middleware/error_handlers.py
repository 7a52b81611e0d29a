"""
Error Handlers

Translate exceptions escaping a route into HTTP responses:

    TransitionError   -> {"success": false, "message", "error_code": <kind>}
                         404 / 400 / 500 by kind, same body as the
                         transition endpoint's refusals
    DomainError       -> {"error": {"code", "message", "details"}} with the
                         error's own status (409 CONCURRENCY_CONFLICT for
                         ConcurrencyError); details are dropped on 5xx
    Request schema    -> 400 VALIDATION_ERROR
    Anything else     -> 500 INTERNAL_ERROR, logged with its traceback
"""
from typing import Dict

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .correlation import CORRELATION_HEADER
from ...domain.enums import TransitionErrorKind
from ...domain.errors import DomainError, TransitionError
from ...utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)

TRANSITION_ERROR_STATUS: Dict[TransitionErrorKind, int] = {
    TransitionErrorKind.NOT_FOUND_OR_ACCESS_DENIED: status.HTTP_404_NOT_FOUND,
    TransitionErrorKind.INVALID_TRANSITION: status.HTTP_400_BAD_REQUEST,
    TransitionErrorKind.CONDITIONS_NOT_MET: status.HTTP_400_BAD_REQUEST,
    TransitionErrorKind.TARGET_STATE_NOT_FOUND: status.HTTP_400_BAD_REQUEST,
    TransitionErrorKind.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

INTERNAL_ERROR_MESSAGE = "An unexpected error occurred"


def _headers() -> Dict[str, str]:
    return {CORRELATION_HEADER: get_correlation_id() or ""}


def transition_error_response(kind: TransitionErrorKind, message: str) -> JSONResponse:
    """Response for a refused transition"""
    if kind == TransitionErrorKind.INTERNAL_ERROR and not message:
        message = INTERNAL_ERROR_MESSAGE
    return JSONResponse(
        status_code=TRANSITION_ERROR_STATUS[kind],
        content={"success": False, "message": message, "error_code": kind.value},
        headers=_headers()
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if isinstance(exc, TransitionError):
        logger.info(
            f"Transition refused on {request.url.path}: {exc.message}",
            extra={"error_kind": exc.kind.value}
        )
        message = exc.message if exc.kind != TransitionErrorKind.INTERNAL_ERROR else INTERNAL_ERROR_MESSAGE
        return transition_error_response(exc.kind, message)
    
    body = exc.to_dict()
    if exc.http_status >= 500:
        logger.error(
            f"Domain error on {request.url.path}: {exc.error_code} - {exc.message}",
            extra={"error_kind": exc.error_code}
        )
        body["error"].pop("details", None)
    else:
        logger.warning(
            f"Domain error on {request.url.path}: {exc.error_code} - {exc.message}",
            extra={"error_kind": exc.error_code}
        )
    
    return JSONResponse(status_code=exc.http_status, content=body, headers=_headers())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    logger.warning(
        f"Request validation failed on {request.method} {request.url.path}: {len(errors)} error(s)",
        extra={"error_kind": "VALIDATION_ERROR"}
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {"errors": jsonable_encoder(errors)}
            }
        },
        headers=_headers()
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=True,
        extra={"error_kind": TransitionErrorKind.INTERNAL_ERROR.value}
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": {"code": "INTERNAL_ERROR", "message": INTERNAL_ERROR_MESSAGE}},
        headers=_headers()
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
