"""
Bones Client — Users Data Layer
================================

What:  The users-specific wiring of the query cache: key names, the
       invalidation rules, and a small facade the UI calls.
Why:   Components ask for "the user list" or "delete this user"; they
       should not build keys or remember which keys a delete touches.

Invalidation Rules:
    users.create → users.list
    users.delete → users.list, users.get(id=<deleted id>)

    A single-user key is only affected by a write naming that id; the list
    key is affected by every create and delete.
"""

import logging
from typing import Any, Callable, List, Optional

from bones.client.api import UsersApiClient
from bones.client.cache import EntrySnapshot, QueryClient, QueryResult
from bones.client.keys import Affects, InvalidationRules, QueryKey
from bones.schemas.user import UserResponse

logger = logging.getLogger(__name__)

USERS_LIST = "users.list"
USERS_GET = "users.get"
CREATE_USER = "users.create"
DELETE_USER = "users.delete"

USER_INVALIDATION_RULES = InvalidationRules({
    CREATE_USER: (Affects.of(USERS_LIST),),
    DELETE_USER: (Affects.of(USERS_LIST), Affects.of(USERS_GET, id="id")),
})


def users_list_key() -> QueryKey:
    return QueryKey.of(USERS_LIST)


def user_key(user_id: str) -> QueryKey:
    return QueryKey.of(USERS_GET, id=user_id)


def create_users_query_client(api: UsersApiClient, **options: Any) -> QueryClient:
    """Build a QueryClient whose fetchers and mutators call `api`."""

    async def fetch_list(key: QueryKey) -> List[UserResponse]:
        return await api.list_users()

    async def fetch_user(key: QueryKey) -> UserResponse:
        return await api.get_user(key.param("id"))

    async def create(payload) -> UserResponse:
        return await api.create_user(payload.get("name"), payload.get("email"))

    async def delete(payload) -> str:
        await api.delete_user(payload["id"])
        return payload["id"]

    return QueryClient(
        fetchers={USERS_LIST: fetch_list, USERS_GET: fetch_user},
        mutators={CREATE_USER: create, DELETE_USER: delete},
        rules=USER_INVALIDATION_RULES,
        **options,
    )


def without_user(user_id: str) -> Callable[[QueryKey, Any], Any]:
    """Optimistic transform for a delete: drop the user from cached lists."""

    def transform(key: QueryKey, data: Any) -> Any:
        if key.operation == USERS_LIST:
            return [user for user in data if user.id != user_id]
        return data

    return transform


class UsersDataLayer:
    """
    What the UI talks to.

    Reads return QueryResult so callers can render a "refreshing" hint for
    stale data; writes raise MutationFailed with the ApiError as its cause.
    """

    def __init__(self, api: UsersApiClient, client: Optional[QueryClient] = None):
        self.api = api
        self.client = client or create_users_query_client(api)

    async def list_users(self) -> QueryResult:
        return await self.client.query(users_list_key())

    async def get_user(self, user_id: str) -> QueryResult:
        return await self.client.query(user_key(user_id))

    async def create_user(self, name: str, email: str) -> UserResponse:
        user = await self.client.mutate(CREATE_USER, {"name": name, "email": email})
        # the new record is already known; seed its detail entry
        self.client.set_query_data(user_key(user.id), user)
        return user

    async def delete_user(self, user_id: str, optimistic: bool = True) -> None:
        await self.client.mutate(
            DELETE_USER,
            {"id": user_id},
            optimistic=without_user(user_id) if optimistic else None,
        )

    def on_users_change(self, listener: Callable[[EntrySnapshot], None]) -> Callable[[], None]:
        return self.client.subscribe(users_list_key(), listener)

    async def aclose(self) -> None:
        await self.client.wait_idle()
        await self.api.aclose()
