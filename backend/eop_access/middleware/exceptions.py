"""Access-layer error taxonomy and FastAPI exception handlers.

Every failure kind has a fixed user-facing message. Diagnostic detail
(including raw transport errors) goes to the logs, never to the client.
"""

import logging
import traceback
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AccessError(Exception):
    """Base exception for access-layer failures."""

    user_message: str = "Access could not be determined."
    retryable: bool = False

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "ACCESS_ERROR",
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)

    @property
    def details(self) -> dict | None:
        return None


class AuthenticationMissing(AccessError):
    """No authenticated identity. Caller must redirect to sign-in."""

    user_message = "Please sign in to continue."

    def __init__(self, message: str = "No authenticated identity"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTHENTICATION_MISSING",
        )


class ProfileResolutionFailed(AccessError):
    """Store reachable but the profile row is absent or malformed."""

    user_message = "Your account profile could not be loaded. Contact your administrator."

    def __init__(self, identity_id: str, reason: str = "profile not found"):
        self.identity_id = identity_id
        super().__init__(
            message=f"Profile resolution failed for {identity_id}: {reason}",
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="PROFILE_RESOLUTION_FAILED",
        )


class RoleAssignmentQueryFailed(AccessError):
    """Transport error while fetching role assignments."""

    user_message = "Your access could not be loaded right now. Please try again."
    retryable = True

    def __init__(self, identity_id: str, reason: str = "query failed"):
        self.identity_id = identity_id
        super().__init__(
            message=f"Role assignment query failed for {identity_id}: {reason}",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="ROLE_ASSIGNMENT_QUERY_FAILED",
        )


class InsufficientPermission(AccessError):
    """Raised by require_role() when the context lacks the required role."""

    user_message = "You do not have permission to perform this action."

    def __init__(self, required_role, location_id: str | None = None):
        self.required_role = required_role
        self.location_id = location_id
        role_value = getattr(required_role, "value", required_role)
        message = f"Insufficient permissions: requires {role_value}"
        if location_id is not None:
            message += f" for location {location_id}"
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="INSUFFICIENT_PERMISSION",
        )

    @property
    def details(self) -> dict:
        details = {"required_role": getattr(self.required_role, "value", self.required_role)}
        if self.location_id is not None:
            details["location_id"] = self.location_id
        return details


class UnknownLocation(AccessError):
    """Switch target is not a location the context can access."""

    user_message = "That location is not available to you."

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(
            message=f"Unknown or inaccessible location: {location_id}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="UNKNOWN_LOCATION",
        )


class InvalidSelection(AccessError):
    """Switch target is malformed or not allowed (e.g. aggregate view without org_admin+)."""

    user_message = "That selection is not allowed."

    def __init__(self, message: str = "Invalid location selection"):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_SELECTION",
        )


class ContextNotResolved(AccessError):
    """The authorization context was read before resolution completed."""

    user_message = "Your access is still loading."

    def __init__(self, message: str = "Authorization context read before resolution"):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_code="CONTEXT_NOT_RESOLVED",
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Create standardized error response.

    Format:
    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable error message",
            "details": {...}  // Optional additional details
        }
    }
    """
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


async def access_exception_handler(
    request: Request,
    exc: AccessError,
) -> JSONResponse:
    """Handle access-layer exceptions. The body carries the kind's user message."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Access error: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationMissing) else None
    response = create_error_response(
        status_code=exc.status_code,
        message=exc.user_message,
        error_code=exc.error_code,
        details=exc.details,
    )
    if headers:
        response.headers.update(headers)
    return response


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, ValidationError],
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "errors": exc.errors(),
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error(
        f"Unhandled exception on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "traceback": traceback.format_exc(),
        },
        exc_info=True,
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(AccessError, access_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
