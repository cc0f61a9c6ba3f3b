"""
CodeSync Backend — Custom Exception Hierarchy
===============================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages, without leaking internals.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and dependencies; caught by global handlers.

Exception Hierarchy:
    CodeSyncError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden (authenticated, not the owner)
    ├── NotFoundError            → 404 Not Found (also: hidden because private)
    ├── RateLimitExceededError   → 429 Too Many Requests
    ├── ImageHostError           → 503 Service Unavailable (retry later)
    └── DatabaseError            → 500 Internal Server Error
"""

from typing import Any, Dict, List, Optional


class CodeSyncError(Exception):
    """
    Base exception for all CodeSync application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client,
                  except for ValidationError where it carries field errors)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(CodeSyncError):
    """
    Raised when client input fails validation.

    When:    Schema failures, business rules (self-follow, username taken,
             parent comment on another snippet), bad uploads.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "Username is already taken",
            "details": {"field": "username"}
        }
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        errors: Optional[List[Dict[str, str]]] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        if errors:
            ctx["errors"] = errors
        super().__init__(message=message, context=ctx)
        self.field = field
        self.errors = errors or []


class AuthenticationError(CodeSyncError):
    """
    Raised when a request needs a signed-in user and has none (or a bad token).

    HTTP:    401 Unauthorized
    """

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(CodeSyncError):
    """
    Raised when an authenticated user tries to mutate something they don't own.

    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "Forbidden",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(CodeSyncError):
    """
    Raised when a requested resource does not exist or is not visible.

    HTTP:    404 Not Found

    A private snippet requested by anyone but its author raises this too,
    with the same message, so the response never reveals that it exists.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = message or f"{resource.capitalize()} not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ImageHostError(CodeSyncError):
    """
    Raised when the image host (Cloudinary) is unconfigured or keeps failing.

    When:    After tenacity retries are exhausted, or when credentials are missing.
    HTTP:    503 Service Unavailable
    """

    def __init__(
        self,
        message: str = "Image upload service is temporarily unavailable",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(CodeSyncError):
    """
    Raised when database operations fail unexpectedly.

    HTTP:    500 Internal Server Error

    The message returned to the client is always generic. Detailed error
    info (constraint name, statement) is logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(CodeSyncError):
    """
    Raised when a client exceeds the per-IP request rate limit.

    HTTP:    429 Too Many Requests
    """

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Rate limit exceeded. Please wait {retry_after} seconds before making more requests."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after
