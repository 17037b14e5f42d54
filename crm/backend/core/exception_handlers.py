"""
Exception Handlers.

Turn exceptions raised by endpoints into the standard error envelope:
``{"success": false, "data": null, "error": {"code", "message"}}``.

Usage:
    app = FastAPI()
    register_exception_handlers(app)
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from crm.backend.core.exceptions import (
    ApplicationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DatabaseError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from crm.backend.core.logging import get_logger
from crm.backend.schemas.base import ErrorDetail, ErrorResponse, ResponseMetadata

logger = get_logger(__name__)

EXCEPTION_STATUS_MAP: dict[type[ApplicationError], int] = {
    NotFoundError: 404,
    ValidationError: 400,
    AuthenticationError: 401,
    AuthorizationError: 403,
    ConflictError: 409,
    ExternalServiceError: 502,
    DatabaseError: 503,
}


def status_for(exc: ApplicationError) -> int:
    """HTTP status of ``exc``, looked up along its class hierarchy."""
    for cls in type(exc).__mro__:
        if cls in EXCEPTION_STATUS_MAP:
            return EXCEPTION_STATUS_MAP[cls]
    return 500


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or request.headers.get("x-request-id")


def _context(request: Request, **extra: Any) -> dict[str, Any]:
    return {"path": request.url.path, "method": request.method, "request_id": _request_id(request), **extra}


def _error_response(request: Request, status_code: int, detail: ErrorDetail) -> JSONResponse:
    body = ErrorResponse(error=detail, metadata=ResponseMetadata(request_id=_request_id(request)))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


async def application_error_handler(request: Request, exc: ApplicationError) -> JSONResponse:
    status_code = status_for(exc)
    context = _context(request, code=exc.code, message=exc.message, status=status_code)
    if status_code >= 500:
        logger.error("Server error", extra=context)
    else:
        logger.warning("Client error", extra=context)

    detail = ErrorDetail(code=exc.code, message=exc.message)
    if exc.details:
        detail.details = exc.details
    return _error_response(request, status_code, detail)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed request bodies or query strings (422)."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in err.get("loc", [])),
            "message": err.get("msg", "Validation error"),
            "type": err.get("type", "unknown"),
        }
        for err in exc.errors()
    ]
    logger.warning("Request validation failed", extra=_context(request, error_count=len(errors)))
    return _error_response(request, 422, ErrorDetail(
        code="VAL_REQUEST_INVALID",
        message="Requête invalide",
        details={"validation_errors": errors},
    ))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Anything else is a 500.

    The exception text is only returned when features.api_detailed_errors
    is enabled.
    """
    from crm.backend.core.config import get_app_config

    logger.exception("Unhandled exception", extra=_context(request, exception_type=type(exc).__name__))

    message = "Une erreur inattendue est survenue"
    if get_app_config().features.api_detailed_errors:
        message = f"{type(exc).__name__}: {exc}"
    return _error_response(request, 500, ErrorDetail(code="SYS_INTERNAL_ERROR", message=message))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApplicationError, application_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
