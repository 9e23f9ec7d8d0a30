"""Exception handlers for the Adorable API.

Every error response has the shape ``{"error": message}``, with
``"details"`` when there is something more to say.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from adorable.services.git_service import GitError, NoGitHistoryError, UnknownRevisionError
from adorable.services.github_sync import GitHubSyncError
from adorable.services.github_webhook import (
    WebhookError,
    WebhookPayloadError,
    WebhookSignatureError,
)
from adorable.services.kit_service import (
    KitConflictError,
    KitNotFoundError,
    KitPermissionError,
    KitServiceError,
)
from adorable.services.project_fs import ProjectFsError
from adorable.services.project_service import (
    ProjectNotFoundError,
    ProjectPermissionError,
    ProjectServiceError,
)
from adorable.services.team_service import (
    AlreadyMemberError,
    InviteEmailMismatchError,
    InviteExpiredError,
    InviteNotFoundError,
    InviteRevokedError,
    InviteUsedError,
    MemberNotFoundError,
    OwnerProtectedError,
    OwnershipInvariantError,
    PermissionDeniedError,
    ResourceNotFoundError,
    SlugTakenError,
    TeamNotFoundError,
    TeamServiceError,
)

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base API error."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class BadRequestError(APIError):
    """Malformed or invalid request."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status_code=400, details=details)


class NotFoundError(APIError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str | None = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(message, status_code=404)


class UnauthorizedError(APIError):
    """Authentication required."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, status_code=401)


class ForbiddenError(APIError):
    """Access denied."""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message, status_code=403)


class ConflictError(APIError):
    """Resource conflict."""

    def __init__(self, message: str):
        super().__init__(message, status_code=409)


class UpstreamError(APIError):
    """A remote service (GitHub) failed."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, status_code=502, details=details)


# Looked up along the exception MRO, so a subclass entry wins over its base
SERVICE_ERROR_STATUS: dict[type[Exception], int] = {
    # Teams
    TeamNotFoundError: 404,
    MemberNotFoundError: 404,
    InviteNotFoundError: 404,
    ResourceNotFoundError: 404,
    PermissionDeniedError: 403,
    InviteEmailMismatchError: 403,
    InviteUsedError: 400,
    InviteExpiredError: 400,
    InviteRevokedError: 400,
    AlreadyMemberError: 400,
    OwnerProtectedError: 400,
    SlugTakenError: 409,
    OwnershipInvariantError: 409,
    TeamServiceError: 400,
    # Kits
    KitNotFoundError: 404,
    KitPermissionError: 403,
    KitConflictError: 400,
    KitServiceError: 400,
    # Projects
    ProjectNotFoundError: 404,
    ProjectPermissionError: 403,
    ProjectServiceError: 400,
    ProjectFsError: 400,
    # Git
    UnknownRevisionError: 404,
    NoGitHistoryError: 400,
    GitError: 500,
    # GitHub
    WebhookPayloadError: 400,
    WebhookSignatureError: 401,
    WebhookError: 400,
    GitHubSyncError: 502,
    # Plain validation failures raised by services
    ValueError: 400,
}

SERVICE_ERRORS = (
    TeamServiceError,
    KitServiceError,
    ProjectServiceError,
    ProjectFsError,
    GitError,
    WebhookError,
    GitHubSyncError,
)


def status_for(exc: Exception) -> int:
    """HTTP status for a service exception (500 when unmapped)."""
    for cls in type(exc).__mro__:
        if cls in SERVICE_ERROR_STATUS:
            return SERVICE_ERROR_STATUS[cls]
    return 500


def _error_body(message: str, details: Any = None) -> dict[str, Any]:
    body: dict[str, Any] = {"error": message}
    if details:
        body["details"] = details
    return body


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.message, exc.details),
    )


async def service_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle service-layer exceptions that reached the app."""
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}")
    message = str(exc) if status_code < 500 else "Internal server error"
    return JSONResponse(status_code=status_code, content=_error_body(message))


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Reshape HTTPException into the common error body."""
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    details = None if isinstance(exc.detail, str) else exc.detail
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(message, details),
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors as 400s."""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Validation error")
    return JSONResponse(
        status_code=400,
        content=_error_body(message, [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in errors
        ]),
    )


async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception("Unexpected error", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers."""
    app.add_exception_handler(APIError, api_error_handler)
    for error_cls in SERVICE_ERRORS:
        app.add_exception_handler(error_cls, service_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, generic_error_handler)


__all__ = [
    "APIError",
    "BadRequestError",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "ConflictError",
    "UpstreamError",
    "SERVICE_ERROR_STATUS",
    "status_for",
    "register_exception_handlers",
]
