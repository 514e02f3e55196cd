"""
ChampStep Backend — Custom Exception Hierarchy
================================================

What:  Defines application-specific exceptions for different error scenarios.
Why:   Custom exceptions enable targeted error handling with appropriate HTTP
       status codes and user-friendly messages.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch these and
       return structured JSON error responses with correct HTTP status codes.
Who:   Raised by services and auth dependencies; caught by global handlers.

Exception Hierarchy:
    ChampStepError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── AuthenticationError      → 401 Unauthorized
    ├── PermissionDeniedError    → 403 Forbidden
    ├── NotFoundError            → 404 Not Found
    ├── ConflictError            → 409 Conflict (business rule, not retried)
    ├── RateLimitExceededError   → 429 Too Many Requests
    └── DatabaseError            → 503 Service Unavailable (retryable)

Business errors (ValidationError, ConflictError, PermissionDeniedError)
propagate unmodified to the caller. Infrastructure failures are logged where
they happen and re-signaled as DatabaseError with a generic message.
"""

from typing import Any, Dict, Optional


class ChampStepError(Exception):
    """
    Base exception for all ChampStep application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client
                  unless the handler chooses to expose it as `details`)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(ChampStepError):
    """
    Raised when client input fails validation.

    When:    Blank nickname/name, unknown claim kind, bad query parameters.
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


class AuthenticationError(ChampStepError):
    """Missing, malformed, expired or wrongly-signed bearer token. HTTP 401."""

    def __init__(
        self,
        message: str = "Authentication is required",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class PermissionDeniedError(ChampStepError):
    """
    Raised when an authenticated actor may not perform an action.

    When:    Non-admin calling an admin route; an unverified user trying to
             recommend someone.
    HTTP:    403 Forbidden
    """

    def __init__(
        self,
        message: str = "You do not have permission to perform this action",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(ChampStepError):
    """
    Raised when a requested resource does not exist.

    SQLAlchemy returns None for missing records; services convert that into
    NotFoundError so routes never deal with None.
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


class ConflictError(ChampStepError):
    """
    Raised when a request collides with existing state.

    Examples:
        - a pending claim by the same user for the same identity already exists
        - the user already owns a verified profile of that kind
        - the claim request was already approved or rejected
        - the recommender already vouched for this claim
    HTTP:    409 Conflict. Never retried automatically.
    """

    def __init__(
        self,
        message: str = "The request conflicts with the current state",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class DatabaseError(ChampStepError):
    """
    Raised when the persistence layer fails unexpectedly.

    When:    Connection lost mid-query, database unavailable, deadlock.
    HTTP:    503 Service Unavailable, flagged retryable.

    The message returned to the client is always generic; the original
    error type is kept in `context` for the server-side log only. The caller
    is expected to let the user retry the whole operation.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(ChampStepError):
    """
    Raised when a client exceeds the per-IP request rate limit.
    HTTP:    429 Too Many Requests, with a Retry-After header.
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
