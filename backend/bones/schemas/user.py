"""
Bones Backend — Pydantic Request/Response Schemas
==================================================

What:  Pydantic models defining the API contract between client and backend.
Why:   Automatic serialization and OpenAPI doc generation; the client layer
       parses responses with the same models.
Who:   Used by route handlers, by UserService as its input record, and by
       UsersApiClient to decode responses.

Design Decision:
    UserCreate fields are Optional on purpose. Business validation (blank
    after trimming, email shape, lengths) belongs to UserService, which
    raises ValidationError → 400. If the fields were required here, a
    missing name would surface as FastAPI's 422 instead and the error
    taxonomy would depend on which layer noticed first.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class UserCreate(BaseModel):
    """Input record for Create(fields)."""
    name: Optional[str] = Field(default=None, description="Display name (required)")
    email: Optional[str] = Field(default=None, description="Email address (required, unique)")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class UserResponse(BaseModel):
    """
    What:  Full representation of a user.
    Who:   Returned by POST /api/users and GET /api/users/{id}; items of the list.
    """
    id: str = Field(description="Unique user identifier (UUID)")
    name: str = Field(description="Display name")
    email: str = Field(description="Email address as submitted (trimmed)")
    created_at: datetime = Field(description="When the user was created (UTC ISO 8601)")

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    """
    What:  Response wrapper for the list endpoint.
    Why:   Users are returned in insertion order; total_count is duplicated in
           the X-Total-Count header for clients that only read headers.
    """
    users: List[UserResponse] = Field(description="All users in insertion order")
    total_count: int = Field(description="Number of users in the collection")


# ══════════════════════════════════════════════════════════════════════════
# Error / Utility Response Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error descriptor for all API errors.

    Example:
        {
            "error": "duplicate_key",
            "message": "A resource with email 'ann@example.com' already exists",
            "details": {"field": "email"},
            "request_id": "a1b2c3d4"
        }
    """
    error: str = Field(description="Machine-readable error kind")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HelloResponse(BaseModel):
    """Greeting returned by GET /api/hello; the frontend's connectivity probe."""
    message: str
    version: str


class HealthResponse(BaseModel):
    """Health check response for monitoring and container probes."""
    status: str = Field(description="Overall service status")
    message: str = Field(description="Human-readable status line")
    version: str = Field(description="Application version")
    uptime_seconds: float = Field(description="Seconds since service started")
    users: int = Field(description="Current size of the user collection")
