"""
Bones Backend — Custom Exception Hierarchy
===========================================

What:  Defines application-specific exceptions for both sides of the wire.
Why:   Typed exceptions make the error taxonomy explicit: every failure a
       caller can see is one of the classes below, with a stable `kind`.
How:   Each exception class carries a message and optional context dict.
       Global exception handlers (registered in main.py) catch the service
       errors and return structured JSON error responses.
Who:   Service errors are raised by UserService/UserStore; client errors are
       raised by UsersApiClient and QueryClient.

Exception Hierarchy:
    BonesError (base)
    ├── ValidationError          → 400 Bad Request (client can fix)
    ├── DuplicateKeyError        → 409 Conflict (unique field already taken)
    ├── NotFoundError            → 404 Not Found
    ├── ApiError                 → client side: non-2xx response or transport failure
    ├── FetchFailed              → client side: a query's fetch failed
    └── MutationFailed           → client side: a mutation's write failed

Service errors (the first three) never mutate state and are not retryable:
the same input fails the same way. Client errors wrap whatever the
transport reported and are retryable by re-invoking the query or mutation.

Design Decision:
    We use a custom exception hierarchy instead of returning result objects
    because exceptions propagate naturally through the call stack and
    FastAPI's exception handlers intercept them cleanly. The `kind` string
    is what crosses the wire as the `error` field of the error descriptor.
"""

from typing import Any, Dict, Optional


class BonesError(Exception):
    """
    Base exception for all Bones application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info
    """

    kind = "internal_error"

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)

    def to_descriptor(self) -> Dict[str, Any]:
        """Error descriptor `{error, message, details}` as sent over the wire."""
        return {
            "error": self.kind,
            "message": self.message,
            "details": self.context or None,
        }


class ValidationError(BonesError):
    """
    Raised when client input fails validation.

    When:    Missing or blank required field, malformed email, field too long.
    HTTP:    400 Bad Request

    Example response:
        {
            "error": "validation_error",
            "message": "email must look like name@example.com",
            "details": {"field": "email"}
        }
    """

    kind = "validation_error"

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


class DuplicateKeyError(BonesError):
    """
    Raised when a write would violate a uniqueness constraint.

    When:    POST /api/users with an email already present in the collection
             (case-insensitive, whitespace-trimmed comparison).
    HTTP:    409 Conflict

    The collection is unchanged when this is raised; it is a rejected write,
    never a silent overwrite.
    """

    kind = "duplicate_key"

    def __init__(
        self,
        field: str = "key",
        value: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"A resource with this {field} already exists"
        if value:
            message = f"A resource with {field} '{value}' already exists"
        ctx = context or {}
        ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field
        self.value = value


class NotFoundError(BonesError):
    """
    Raised when a requested resource does not exist.

    When:    GET or DELETE /api/users/{id} with an unknown id, including a
             second DELETE of an id that was already removed.
    HTTP:    404 Not Found
    """

    kind = "not_found"

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
        self.resource = resource
        self.resource_id = resource_id


# ══════════════════════════════════════════════════════════════════════════
# Client-side errors
# ══════════════════════════════════════════════════════════════════════════


class ApiError(BonesError):
    """
    Raised by UsersApiClient when a call does not produce a 2xx response.

    What:    Either the server answered with an error descriptor, or the
             request never completed (status_code is None then).
    Why:     Carries the server's `kind` so callers can tell a duplicate email
             from a missing user without parsing messages.
    """

    def __init__(
        self,
        message: str = "The API request failed",
        status_code: Optional[int] = None,
        kind: str = "api_error",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if status_code is not None:
            ctx["status_code"] = status_code
        super().__init__(message=message, context=ctx)
        self.status_code = status_code
        self.kind = kind


class FetchFailed(BonesError):
    """
    Raised by QueryClient.query() when the fetch for a key failed.

    Every caller attached to the same in-flight fetch receives a FetchFailed
    wrapping the same cause. Retry by calling query() again.
    """

    kind = "fetch_failed"

    def __init__(self, key: Any, cause: BaseException):
        super().__init__(
            message=f"Fetching {key} failed: {cause}",
            context={"key": str(key), "cause": type(cause).__name__},
        )
        self.key = key
        self.cause = cause


class MutationFailed(BonesError):
    """
    Raised by QueryClient.mutate() when the underlying write failed.

    No cache entry was invalidated; optimistic edits were rolled back.
    """

    kind = "mutation_failed"

    def __init__(self, mutation: str, cause: BaseException):
        super().__init__(
            message=f"Mutation {mutation} failed: {cause}",
            context={"mutation": mutation, "cause": type(cause).__name__},
        )
        self.mutation = mutation
        self.cause = cause
