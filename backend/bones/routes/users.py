"""
Bones Backend — User Route Handlers
====================================

What:  HTTP surface of the Resource Service.
       GET /api/users, POST /api/users, GET /api/users/{id}, DELETE /api/users/{id}
How:   Extracts parameters, delegates to UserService, returns JSON.
       Service exceptions are turned into error descriptors by the global
       handlers in main.py; no try/except here.

Caching Headers:
    - GET /api/users: no-cache (the client layer revalidates on its own terms)
    - Mutations: never cached
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from bones.schemas.user import (
    ErrorResponse,
    UserCreate,
    UserListResponse,
    UserResponse,
)
from bones.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Users"])


def get_user_service(request: Request) -> UserService:
    """
    FastAPI dependency returning the service owned by this app instance.

    Why app.state (not a module singleton): each create_app() call gets its
    own store, so tests and multiple apps never share a collection.
    """
    return request.app.state.user_service


@router.get(
    "/users",
    response_model=UserListResponse,
    summary="List users",
    description="Returns every user in insertion order.",
)
async def list_users(
    response: Response,
    service: UserService = Depends(get_user_service),
) -> UserListResponse:
    users = service.list_users()
    response.headers["X-Total-Count"] = str(len(users))
    response.headers["Cache-Control"] = "no-cache"
    return UserListResponse(
        users=[UserResponse.model_validate(user) for user in users],
        total_count=len(users),
    )


@router.post(
    "/users",
    status_code=201,
    response_model=UserResponse,
    responses={
        201: {"description": "User created", "model": UserResponse},
        400: {"description": "Missing or malformed field", "model": ErrorResponse},
        409: {"description": "Email already registered", "model": ErrorResponse},
    },
    summary="Create a user",
)
async def create_user(
    payload: UserCreate,
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    user = service.create_user(payload)
    return UserResponse.model_validate(user)


@router.get(
    "/users/{user_id}",
    response_model=UserResponse,
    responses={
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Get a single user by ID",
)
async def get_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
) -> UserResponse:
    return UserResponse.model_validate(service.get_user(user_id))


@router.delete(
    "/users/{user_id}",
    status_code=204,
    responses={
        204: {"description": "User deleted"},
        404: {"description": "User not found", "model": ErrorResponse},
    },
    summary="Delete a user",
    description="Deleting an id that does not exist (or no longer exists) returns 404.",
)
async def delete_user(
    user_id: str,
    service: UserService = Depends(get_user_service),
) -> Response:
    service.delete_user(user_id)
    return Response(status_code=204)
