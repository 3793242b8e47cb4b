"""
Global error handling middleware.

WHAT: Translate exceptions to appropriate HTTP responses
WHY: Consistent error responses with proper status codes
HOW: FastAPI exception handlers for business and data service exceptions
"""

from datetime import datetime

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..dataservice.types import (
    DataServiceTimeoutError,
    DataServiceUnavailableError,
    DataServiceResponseError,
)
from ..utils.exceptions import (
    BusinessException,
    AuthRequiredError,
    NotFoundError,
    LoadError,
    SendError,
    SubscriptionError,
    OfferNotAllowedError,
    ValidationException,
)
from ..utils.logger import get_logger

logger = get_logger(__name__)


def _error_body(error: str, message: str, details=None) -> dict:
    return {
        "error": error,
        "message": message,
        "details": details,
        "timestamp": datetime.now().isoformat()
    }


async def data_service_timeout_handler(request: Request, exc: DataServiceTimeoutError):
    """
    Handle DataServiceTimeoutError.

    WHAT: Backend request timed out
    WHY: Backend may be slow or the network is degraded
    HOW: Return 504 gateway timeout
    """
    logger.error(f"Data service timeout: {exc}")
    return JSONResponse(
        status_code=status.HTTP_504_GATEWAY_TIMEOUT,
        content=_error_body("DATA_SERVICE_TIMEOUT", str(exc), "Backend request timed out")
    )


async def data_service_unavailable_handler(request: Request, exc: DataServiceUnavailableError):
    """
    Handle DataServiceUnavailableError.

    WHAT: Backend is not reachable
    WHY: Network down or wrong SUPABASE_URL
    HOW: Return 503 service unavailable
    """
    logger.error(f"Data service unavailable: {exc}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=_error_body("DATA_SERVICE_UNAVAILABLE", str(exc), "Backend is not reachable. Check SUPABASE_URL.")
    )


async def data_service_response_handler(request: Request, exc: DataServiceResponseError):
    """
    Handle DataServiceResponseError.

    WHAT: Backend answered with an error status
    WHY: Row-level security refusal, missing row or server error
    HOW: 401 for permission errors, 404 for missing rows, 502 otherwise
    """
    if exc.is_permission_denied:
        status_code = status.HTTP_401_UNAUTHORIZED
    elif exc.is_not_found:
        status_code = status.HTTP_404_NOT_FOUND
    else:
        status_code = status.HTTP_502_BAD_GATEWAY

    logger.error(f"Data service response error: {exc}")
    return JSONResponse(
        status_code=status_code,
        content=_error_body(
            "DATA_SERVICE_ERROR",
            str(exc),
            {"status_code": exc.status_code, "code": exc.code}
        )
    )


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """
    Handle FastAPI RequestValidationError.

    WHAT: Request validation failed
    WHY: Invalid request payload
    HOW: Return 400 with field errors
    """
    logger.warning(f"Validation error: {exc.errors()}")

    # Clean up error details to be JSON serializable
    cleaned_errors = []
    for error in exc.errors():
        cleaned_error = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": error.get("input")
        }
        if "ctx" in error:
            cleaned_error["ctx"] = {
                k: str(v) if isinstance(v, Exception) else v
                for k, v in error["ctx"].items()
            }
        cleaned_errors.append(cleaned_error)

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body("VALIDATION_ERROR", "Request validation failed", cleaned_errors)
    )


async def business_exception_handler(request: Request, exc: BusinessException):
    """
    Handle BusinessException and its subclasses.

    WHAT: Domain error raised by a service or a negotiation screen
    WHY: Each error kind has its own retry semantics for the UI
    HOW: Map the exception type to a status code
    """
    status_code = status.HTTP_400_BAD_REQUEST

    if isinstance(exc, AuthRequiredError):
        status_code = status.HTTP_401_UNAUTHORIZED
    elif isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, LoadError):
        status_code = status.HTTP_404_NOT_FOUND if exc.not_found else status.HTTP_502_BAD_GATEWAY
    elif isinstance(exc, (SendError, SubscriptionError)):
        status_code = status.HTTP_502_BAD_GATEWAY
    elif isinstance(exc, OfferNotAllowedError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, ValidationException):
        status_code = status.HTTP_400_BAD_REQUEST

    logger.warning(f"Business exception: {exc.code} - {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, exc.details)
    )


def register_exception_handlers(app):
    """
    Register all exception handlers with FastAPI app.

    WHAT: Attach handlers to app
    WHY: Centralized error handling
    HOW: Use app.add_exception_handler

    Args:
        app: FastAPI application instance
    """
    # Data service exceptions
    app.add_exception_handler(DataServiceTimeoutError, data_service_timeout_handler)
    app.add_exception_handler(DataServiceUnavailableError, data_service_unavailable_handler)
    app.add_exception_handler(DataServiceResponseError, data_service_response_handler)

    # API exceptions
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(BusinessException, business_exception_handler)

    logger.info("Exception handlers registered")
