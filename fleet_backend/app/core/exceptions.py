"""
Custom exceptions and error handlers for consistent error responses.

Every failure leaves the API as a tagged body:
    {"success": false, "kind": ..., "error_code": ..., "message": ..., "details": {...}}

`kind` is one of ValidationError, ConflictError, NotFoundError, AuthError,
ForbiddenError, StateError or TransientError. Only TransientError is worth
retrying.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import OperationalError, InterfaceError
from typing import Any, Dict
from fleet_backend.app.core.observability import correlation_id_of

logger = logging.getLogger("fleet")


class AppException(Exception):
    """Base application exception."""

    kind = "InternalError"

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Malformed or missing input, including unknown status values."""

    kind = "ValidationError"

    def __init__(self, message: str, error_code: str = "ERR_VALIDATION", details: Dict[str, Any] = None):
        super().__init__(message, error_code, status.HTTP_400_BAD_REQUEST, details)


class ConflictError(AppException):
    """Uniqueness violation (email, employee number, registration, ...)."""

    kind = "ConflictError"

    def __init__(self, message: str, error_code: str = "ERR_CONFLICT", details: Dict[str, Any] = None):
        super().__init__(message, error_code, status.HTTP_409_CONFLICT, details)


class NotFoundError(AppException):
    """Raised when requested resource is not found."""

    kind = "NotFoundError"

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class AuthError(AppException):
    """
    Authentication failure.

    reason is one of: InvalidCredentials, Missing, Malformed, Expired,
    BadSignature, Stale, InactiveAccount.
    """

    kind = "AuthError"

    def __init__(self, message: str = "Authentication failed", reason: str = "InvalidCredentials"):
        self.reason = reason
        super().__init__(
            message=message,
            error_code=f"ERR_AUTH_{reason.upper()}",
            status_code=status.HTTP_401_UNAUTHORIZED,
            details={"reason": reason}
        )


class ForbiddenError(AppException):
    """Authenticated, but lacking the capability or department scope."""

    kind = "ForbiddenError"

    def __init__(self, message: str = "Insufficient permissions", reason: str = "MissingCapability", details: Dict[str, Any] = None):
        self.reason = reason
        super().__init__(
            message=message,
            error_code=f"ERR_FORBIDDEN_{reason.upper()}",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"reason": reason, **(details or {})}
        )


class StateError(AppException):
    """
    Illegal lifecycle transition.

    reason is one of: VehicleUnavailable, IllegalTransition, InsufficientFunds,
    AlreadyVerified.
    """

    kind = "StateError"

    def __init__(self, message: str, reason: str, details: Dict[str, Any] = None):
        self.reason = reason
        super().__init__(
            message=message,
            error_code=f"ERR_STATE_{reason.upper()}",
            status_code=status.HTTP_409_CONFLICT,
            details={"reason": reason, **(details or {})}
        )


class TransientError(AppException):
    """Persistence unavailable. The caller may retry the whole request."""

    kind = "TransientError"

    def __init__(self, message: str = "Service temporarily unavailable, please retry"):
        super().__init__(
            message=message,
            error_code="ERR_TRANSIENT",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


def _error_body(kind: str, error_code: str, message: str, details: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "success": False,
        "kind": kind,
        "error_code": error_code,
        "message": message,
        "details": details,
    }


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.kind, exc.error_code, exc.message, exc.details),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error kind and code
    kind_map = {
        400: ("ValidationError", "ERR_BAD_REQUEST"),
        401: ("AuthError", "ERR_UNAUTHORIZED"),
        403: ("ForbiddenError", "ERR_FORBIDDEN"),
        404: ("NotFoundError", "ERR_NOT_FOUND"),
        405: ("ValidationError", "ERR_METHOD_NOT_ALLOWED"),
        409: ("ConflictError", "ERR_CONFLICT"),
    }

    kind, error_code = kind_map.get(exc.status_code, ("InternalError", "ERR_UNKNOWN"))

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(kind, error_code, str(exc.detail), {}),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=_error_body(
            "ValidationError",
            "ERR_VALIDATION",
            "Validation error",
            {"errors": jsonable_encoder(exc.errors())},
        ),
    )


async def persistence_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for database connectivity failures (OperationalError, InterfaceError)."""
    logger.error(
        f"Persistence unavailable: {type(exc).__name__}",
        extra={"path": request.url.path, "correlation_id": correlation_id_of(request)},
    )
    transient = TransientError()
    return JSONResponse(
        status_code=transient.status_code,
        content=_error_body(transient.kind, transient.error_code, transient.message, {}),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"path": request.url.path, "correlation_id": correlation_id_of(request)},
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body("InternalError", "ERR_INTERNAL_SERVER", "An internal server error occurred", {}),
    )


PERSISTENCE_ERRORS = (OperationalError, InterfaceError)
