"""
OurPortfolio Backend — Custom Exception Hierarchy
==================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and routes; caught by global handlers.

Exception Hierarchy:
    OurPortfolioError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── UnauthorizedError        → 401 Unauthorized (no caller identity)
    ├── ForbiddenError           → 403 Forbidden (caller does not own it)
    ├── NotFoundError            → 404 Not Found
    ├── FileStorageError         → 500 Internal Server Error
    ├── DatabaseError            → 500 Internal Server Error
    └── IndexUnavailableError    → fatal at startup (503 if seen in a request)

The tech-stack index itself never raises for missing keywords or ids:
removing something that is not there is a no-op, not an error.
"""

from typing import Any, Dict, Optional


class OurPortfolioError(Exception):
    """
    Base exception for all OurPortfolio application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned for 5xx errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(OurPortfolioError):
    """
    Raised when client input fails a business rule.

    When:    Missing project list, unsupported image type, image too large.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class UnauthorizedError(OurPortfolioError):
    """
    Raised when a write endpoint is called without a caller identity.

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Authentication is required for this operation",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ForbiddenError(OurPortfolioError):
    """
    Raised when the caller is identified but does not own the resource.

    When:    Editing someone else's portfolio, attaching someone else's project.
    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"You do not have permission to modify this {resource}"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class NotFoundError(OurPortfolioError):
    """
    Raised when a requested resource does not exist.

    Why a custom exception:
        SQLAlchemy returns None for missing records (not an exception).
        We convert None → NotFoundError in the service layer.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class FileStorageError(OurPortfolioError):
    """
    Raised when image storage operations fail.

    When:    Disk full, permission denied, directory not writable, I/O error.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "File storage operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(OurPortfolioError):
    """
    Raised when database operations fail unexpectedly.

    Security Note:
        The message returned to the client is always generic.
        Detailed error info is logged server-side only.
    HTTP:    500 Internal Server Error
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class IndexUnavailableError(OurPortfolioError):
    """
    Raised when the tech-stack index cannot be built from the database.

    What:    The startup rebuild exhausted its retries.
    When:    Database unreachable while the application is starting.
    Effect:  Startup aborts. There is no degraded mode with an empty or
             partial index; operators must fix the database and restart.
    """

    def __init__(
        self,
        message: str = "Tech-stack index could not be built from the database",
        attempts: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if attempts is not None:
            ctx["attempts"] = attempts
        super().__init__(message=message, context=ctx)
        self.attempts = attempts
