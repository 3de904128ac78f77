"""
Structured exceptions and error responses for TeamInova.

Provides consistent error handling across the API with:
- Custom exception classes
- Structured error response format
- FastAPI exception handlers
"""

from typing import Any, Dict, Optional, List
from fastapi import Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from teaminova.error_reporting import ErrorCategory, ErrorSeverity


# =============================================================================
# Error Response Schema
# =============================================================================

class ErrorDetail(BaseModel):
    """Detail of a single error."""
    loc: Optional[List[str]] = None  # Location of error (e.g., ["body", "title"])
    msg: str
    type: str


class ErrorResponse(BaseModel):
    """Structured error response format."""
    error: str  # Error code (e.g., "not_found", "project_has_tasks")
    message: str  # Human-readable message
    details: Optional[List[ErrorDetail]] = None


# =============================================================================
# Custom Exceptions
# =============================================================================

class TeamInovaException(Exception):
    """Base exception for all TeamInova errors."""

    def __init__(
        self,
        message: str,
        error_code: str = "internal_error",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details
        super().__init__(message)


class NotFoundError(TeamInovaException):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            message=f"{resource} with ID {resource_id} not found",
            error_code="not_found",
            status_code=status.HTTP_404_NOT_FOUND,
        )
        self.resource = resource
        self.resource_id = resource_id


class ValidationError(TeamInovaException):
    """A required field is missing or malformed; nothing was sent to the store."""

    def __init__(self, message: str, details: Optional[List[Dict[str, Any]]] = None):
        super().__init__(
            message=message,
            error_code="validation_error",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
        )

    @classmethod
    def missing(cls, field: str) -> "ValidationError":
        return cls(
            f"{field.replace('_', ' ').capitalize()} is required",
            details=[{"loc": ["body", field], "msg": "field required", "type": "missing"}],
        )


class MissingReferenceError(TeamInovaException):
    """A row lacks a relational reference the view model cannot do without."""

    def __init__(self, entity: str, reference: str, entity_id: Optional[str] = None):
        super().__init__(
            message=f"{entity} {entity_id or ''} is missing its {reference} reference".replace("  ", " "),
            error_code="missing_reference",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=[{"loc": [entity, reference], "msg": "reference not set", "type": "missing_reference"}],
        )
        self.entity = entity
        self.reference = reference


class PermissionDeniedError(TeamInovaException):
    """The viewer is not allowed to perform this mutation."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message=message,
            error_code="permission_denied",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class ProjectHasTasksError(TeamInovaException):
    """A project with associated tasks cannot be deleted."""

    def __init__(self, project_id: str, task_count: int):
        super().__init__(
            message=(
                f"Cannot delete project. There are {task_count} task(s) associated with "
                "this project. Please delete the tasks first."
            ),
            error_code="project_has_tasks",
            status_code=status.HTTP_409_CONFLICT,
        )
        self.project_id = project_id
        self.task_count = task_count


class StoreError(TeamInovaException):
    """The record store rejected an operation."""

    def __init__(self, message: str, error_code: str = "store_error"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )


class StoreTimeoutError(StoreError):
    """A record store call did not finish within the configured timeout."""

    def __init__(self, operation: str, timeout: float):
        super().__init__(
            message=f"Store operation '{operation}' timed out after {timeout:g}s",
            error_code="store_timeout",
        )
        self.status_code = status.HTTP_504_GATEWAY_TIMEOUT
        self.operation = operation


class AuthProviderError(TeamInovaException):
    """The authentication collaborator rejected a request."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="auth_provider_error",
            status_code=status.HTTP_502_BAD_GATEWAY,
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def teaminova_exception_handler(request: Request, exc: TeamInovaException) -> JSONResponse:
    """Handle TeamInovaException and return structured response."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Report unexpected exceptions and answer with a generic recovery message."""
    reporter = getattr(request.app.state, "error_reporter", None)
    if reporter is not None:
        reporter.log_error(
            f"Unhandled exception on {request.method} {request.url.path}",
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.HIGH,
            exc=exc,
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "message": "Something went wrong. Please retry or reload the workspace.",
            "details": None,
        },
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(TeamInovaException, teaminova_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
