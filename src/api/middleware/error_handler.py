"""Global exception handlers for the FastAPI application.

Every error leaves the API as an ``ErrorResponse`` body rendered with
``ORJSONResponse``:

- ``InvoiceNotifyError`` subclasses map to 400/401/404 (500 otherwise)
- request validation failures (including ``read: false`` on the PATCH
  endpoint) map to 422 with per-field messages
- Starlette ``HTTPException`` keeps its status code
- anything else is a 500 whose details are hidden in production
"""

import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from loguru import logger
from starlette.exceptions import HTTPException

from src.api.middleware.request_context import generate_request_id, get_correlation_id
from src.api.schemas.errors import ErrorResponse, ServiceInfo
from src.api.utils.responses import ORJSONResponse
from src.core.config import Settings, get_settings
from src.core.exceptions import (
    ErrorCode,
    InvoiceNotifyError,
    NotFoundError,
    Severity,
    UnauthorizedError,
    ValidationError,
)

STATUS_BY_ERROR: tuple[tuple[type[InvoiceNotifyError], int], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (UnauthorizedError, status.HTTP_401_UNAUTHORIZED),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
)


def get_service_info(settings: Settings) -> ServiceInfo:
    """Create ServiceInfo from application settings."""
    return ServiceInfo(
        name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )


def _error_response(status_code: int, error_response: ErrorResponse) -> Response:
    return ORJSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json"),
    )


async def app_error_handler(request: Request, exc: Exception) -> Response:
    """Handle InvoiceNotifyError exceptions.

    Args:
        request: The FastAPI request that caused the exception
        exc: The InvoiceNotifyError exception to handle

    Returns:
        Response: ORJSONResponse with error details

    Raises:
        TypeError: If exc is not an InvoiceNotifyError instance
    """
    if not isinstance(exc, InvoiceNotifyError):
        raise TypeError(f"Expected InvoiceNotifyError, got {type(exc).__name__}")

    settings = get_settings()
    status_code = next(
        (code for error_type, code in STATUS_BY_ERROR if isinstance(exc, error_type)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )

    log = logger.warning if exc.is_expected else logger.error
    log(
        "Handling {}: {}",
        type(exc).__name__,
        exc.message,
        error_code=exc.error_code,
        request_method=request.method,
        request_path=request.url.path,
    )

    debug_info = None
    if settings.environment == "development":
        debug_info = {
            "error_context": exc.context,
            "exception_type": type(exc).__name__,
        }
        if exc.cause:
            debug_info["cause"] = {
                "type": type(exc.cause).__name__,
                "message": str(exc.cause),
            }

    return _error_response(
        status_code,
        ErrorResponse(
            error_code=exc.error_code,
            message=exc.message,
            details=exc.context or None,
            correlation_id=get_correlation_id(),
            request_id=generate_request_id(),
            severity=exc.severity.value,
            service_info=get_service_info(settings),
            debug_info=debug_info,
        ),
    )


async def validation_error_handler(request: Request, exc: Exception) -> Response:
    """Handle FastAPI RequestValidationError exceptions.

    Raises:
        TypeError: If exc is not a RequestValidationError instance
    """
    if not isinstance(exc, RequestValidationError):
        raise TypeError(f"Expected RequestValidationError, got {type(exc).__name__}")

    field_errors: dict[str, list[str]] = {}
    for error in exc.errors():
        # ['body', 'read'] -> 'read'
        field_path = error.get("loc", ())
        field_name = ".".join(str(loc) for loc in field_path[1:]) or "root"
        field_errors.setdefault(field_name, []).append(
            error.get("msg", "Invalid value")
        )

    logger.warning(
        "Request validation failed",
        path=request.url.path,
        method=request.method,
        validation_errors=field_errors,
    )

    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorResponse(
            error_code=ErrorCode.VALIDATION_ERROR.value,
            message="Request validation failed",
            details={"validation_errors": field_errors},
            correlation_id=get_correlation_id(),
            request_id=generate_request_id(),
            severity=Severity.LOW.value,
            service_info=get_service_info(get_settings()),
        ),
    )


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle Starlette HTTPException.

    Raises:
        TypeError: If exc is not an HTTPException instance
    """
    if not isinstance(exc, HTTPException):
        raise TypeError(f"Expected HTTPException, got {type(exc).__name__}")

    error_code, severity = {
        status.HTTP_400_BAD_REQUEST: (ErrorCode.VALIDATION_ERROR, Severity.LOW),
        status.HTTP_401_UNAUTHORIZED: (ErrorCode.UNAUTHORIZED, Severity.HIGH),
        status.HTTP_404_NOT_FOUND: (ErrorCode.NOT_FOUND, Severity.LOW),
    }.get(exc.status_code, (ErrorCode.INTERNAL_ERROR, Severity.MEDIUM))
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        severity = Severity.HIGH

    logger.warning(
        "HTTP exception",
        status=exc.status_code,
        method=request.method,
        path=request.url.path,
    )

    return _error_response(
        exc.status_code,
        ErrorResponse(
            error_code=error_code.value,
            message=str(exc.detail),
            correlation_id=get_correlation_id(),
            request_id=generate_request_id(),
            severity=severity.value,
            service_info=get_service_info(get_settings()),
        ),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> Response:
    """Handle any other exception with a safe 500 response."""
    settings = get_settings()

    logger.opt(exception=exc).error(
        "Unhandled exception: {}",
        type(exc).__name__,
        request_method=request.method,
        request_path=request.url.path,
    )

    if settings.environment == "production":
        message = "An internal server error occurred"
        details = None
        debug_info = None
    else:
        message = f"Internal server error: {type(exc).__name__}"
        details = {"error": str(exc), "type": type(exc).__name__}
        debug_info = {
            "stack_trace": traceback.format_tb(exc.__traceback__),
            "exception_type": type(exc).__name__,
        }

    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorResponse(
            error_code=ErrorCode.INTERNAL_ERROR.value,
            message=message,
            details=details,
            correlation_id=get_correlation_id(),
            request_id=generate_request_id(),
            severity=Severity.CRITICAL.value,
            service_info=get_service_info(settings),
            debug_info=debug_info,
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(InvoiceNotifyError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
