"""
Messagely Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for the different failure scenarios.
How:   Each exception carries a user-facing message, an optional context
       dict (logged, never returned), an HTTP status code and a
       machine-readable error code. The single MessagelyError handler
       registered in main.py turns any of them into a JSON response.
Who:   Raised by services, guards and middleware; caught by global handlers.

Exception Hierarchy:
    MessagelyError (base)              → 500
    ├── BadCredentialsError            → 400 Bad Request
    ├── UnauthorizedError              → 401 Unauthorized
    ├── InvalidTokenError              → 401 Unauthorized
    ├── NotFoundError                  → 404 Not Found
    ├── DuplicateUserError             → 409 Conflict
    ├── RequestValidationFailedError   → 422 Unprocessable Entity
    ├── RateLimitExceededError         → 429 Too Many Requests
    ├── HTTPStatusError                → framework status (404, 405, ...)
    └── DatabaseError                  → 500 Internal Server Error

Response body:
    {
        "error": "unauthorized",
        "status": 401,
        "message": "Unauthorized",
        "request_id": "a1b2c3d4"
    }
"""

from http import HTTPStatus
from typing import Any, Dict, List, Optional


class MessagelyError(Exception):
    """
    Base exception for all Messagely application errors.

    Attributes:
        message:     User-facing error description (safe to return in API response)
        context:     Additional debug info (logged but NOT returned to client)
        status_code: HTTP status the global handler responds with
        error_code:  Machine-readable error identifier
    """

    status_code: int = 500
    error_code: str = "internal_server_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class BadCredentialsError(MessagelyError):
    """
    Raised when a login attempt does not match a stored user/password.

    HTTP: 400 Bad Request. The message does not say which of the two
    was wrong, so usernames cannot be discovered through it.
    """

    status_code = 400
    error_code = "bad_credentials"

    def __init__(
        self,
        message: str = "Invalid username/password",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class UnauthorizedError(MessagelyError):
    """
    Raised by the route guards.

    When:    No identity on the request, identity is not the owner of the
             target resource, or identity is not a participant/recipient
             of a message.
    HTTP:    401 Unauthorized
    """

    status_code = 401
    error_code = "unauthorized"

    def __init__(
        self,
        message: str = "Unauthorized",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class InvalidTokenError(UnauthorizedError):
    """
    Raised by TokenService.verify() for a bad signature, malformed token,
    expired token or a payload without a username.

    The auth middleware swallows it (the request simply carries no
    identity), so clients normally see the guard's UnauthorizedError.
    """

    error_code = "invalid_token"

    def __init__(
        self,
        message: str = "Invalid token",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(MessagelyError):
    """
    Raised when a requested resource does not exist.

    When:    Unknown username on profile lookups / login timestamp update,
             unknown message id.
    HTTP:    404 Not Found

    SQLAlchemy returns None for missing records (not an exception); the
    service layer converts None into this error.
    """

    status_code = 404
    error_code = "not_found"

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"No such {resource}: {resource_id}"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DuplicateUserError(MessagelyError):
    """
    Raised when registering a username that is already taken.

    Detected from the users primary-key constraint (IntegrityError), so
    concurrent registrations of the same name cannot both succeed.
    HTTP: 409 Conflict
    """

    status_code = 409
    error_code = "duplicate_user"

    def __init__(
        self,
        username: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["username"] = username
        super().__init__(message=f"Username '{username}' is already taken", context=ctx)
        self.username = username


class DatabaseError(MessagelyError):
    """
    Raised when database operations fail unexpectedly.

    HTTP: 500 Internal Server Error

    Security Note:
        The message returned to the client is always generic.
        Detailed error info (SQL, constraint names) is logged server-side only.
    """

    status_code = 500
    error_code = "server_error"

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RateLimitExceededError(MessagelyError):
    """
    Raised when a client exceeds the per-IP limit on the auth endpoints.

    HTTP: 429 Too Many Requests, with a Retry-After header.
    """

    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        retry_after: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"Too many requests. Please wait {retry_after} seconds before retrying."
        )
        ctx = context or {}
        ctx["retry_after"] = retry_after
        super().__init__(message=message, context=ctx)
        self.retry_after = retry_after


class RequestValidationFailedError(MessagelyError):
    """
    Raised (by the handler in main.py) when a request body, query or path
    parameter fails schema validation.

    HTTP: 422 Unprocessable Entity. The message lists the offending field
    locations only. Submitted values are never echoed back, since the
    register body carries a plaintext password.
    """
    status_code = 422
    error_code = "validation_error"

    def __init__(
        self,
        fields: List[str],
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        ctx["fields"] = fields
        super().__init__(message="Invalid request: " + "; ".join(fields), context=ctx)
        self.fields = fields


class HTTPStatusError(MessagelyError):
    """
    Framework-level HTTP errors (unknown route, wrong method) re-raised in
    the Messagely error shape.

    HTTP: whatever status the framework chose; error code is the snake_case
    reason phrase, e.g. 404 → "not_found", 405 → "method_not_allowed".
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
        self.status_code = status_code
        try:
            phrase = HTTPStatus(status_code).phrase
        except ValueError:
            phrase = "http_error"
        self.error_code = phrase.lower().replace(" ", "_").replace("-", "_")
