"""
Bones Client — Users API Client
================================

What:  Async HTTP client for the users endpoints.
Why:   The query cache only knows "a coroutine that fetches" and "a
       coroutine that writes"; this module is where those coroutines meet
       the wire contract (JSON bodies and error descriptors).
How:   httpx.AsyncClient for transport, tenacity for retrying idempotent
       reads on transport failures (connection refused, timeouts).

Retry Policy:
    GET requests: up to retry_max_attempts with exponential backoff + jitter
    POST/DELETE:  never retried here. A POST that timed out may still have
                  created the user; retrying could hit DuplicateKey or, for
                  DELETE, NotFound for a write that actually succeeded.
    HTTP error responses (4xx/5xx) are answers, not transport failures,
    and are never retried.

Error Translation:
    Non-2xx responses become ApiError carrying the server's error kind
    ("validation_error", "duplicate_key", "not_found", ...), status code,
    message, details and request ID.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from bones.config import settings
from bones.exceptions import ApiError
from bones.schemas.user import HelloResponse, UserListResponse, UserResponse

logger = logging.getLogger(__name__)


class UsersApiClient:
    """
    Thin async wrapper over the users API.

    Usage:
        async with UsersApiClient("http://localhost:8080") as api:
            users = await api.list_users()

    Tests pass `transport=httpx.ASGITransport(app=app)` to talk to an
    in-process app without a server.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_attempts: Optional[int] = None,
        min_wait: Optional[float] = None,
        max_wait: Optional[float] = None,
    ):
        self.base_url = base_url or settings.api_base_url
        self.max_attempts = max_attempts or settings.retry_max_attempts
        self.min_wait = settings.retry_min_wait if min_wait is None else min_wait
        self.max_wait = settings.retry_max_wait if max_wait is None else max_wait
        if self.min_wait > self.max_wait:
            raise ValueError(
                f"retry min_wait ({self.min_wait}) must not exceed max_wait ({self.max_wait})"
            )

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or settings.client_timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "UsersApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Endpoints ─────────────────────────────────────────────────────────

    async def list_users(self) -> List[UserResponse]:
        response = await self._request("GET", "/api/users", idempotent=True)
        return UserListResponse.model_validate(response.json()).users

    async def get_user(self, user_id: str) -> UserResponse:
        response = await self._request("GET", f"/api/users/{user_id}", idempotent=True)
        return UserResponse.model_validate(response.json())

    async def create_user(self, name: Optional[str], email: Optional[str]) -> UserResponse:
        response = await self._request(
            "POST", "/api/users", json={"name": name, "email": email}
        )
        return UserResponse.model_validate(response.json())

    async def delete_user(self, user_id: str) -> None:
        await self._request("DELETE", f"/api/users/{user_id}")

    async def hello(self) -> HelloResponse:
        response = await self._request("GET", "/api/hello", idempotent=True)
        return HelloResponse.model_validate(response.json())

    # ── Transport ─────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        idempotent: bool = False,
    ) -> httpx.Response:
        request_id = str(uuid.uuid4())[:8]
        headers = {"X-Request-ID": request_id}
        attempts = self.max_attempts if idempotent else 1

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(attempts),
                wait=wait_exponential_jitter(
                    initial=self.min_wait,
                    max=self.max_wait,
                    jitter=self.min_wait,
                ),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    response = await self._client.request(
                        method, path, json=json, headers=headers
                    )
        except httpx.TransportError as e:
            logger.error("[%s] %s %s failed: %s", request_id, method, path, str(e))
            raise ApiError(
                message=f"Could not reach the API at {self.base_url}",
                kind="transport_error",
                context={"request_id": request_id, "error_type": type(e).__name__},
            ) from e

        if response.is_error:
            raise self._error_from(response, request_id)
        return response

    @staticmethod
    def _error_from(response: httpx.Response, request_id: str) -> ApiError:
        """Turn an error descriptor body into ApiError."""
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = body.get("message") or response.reason_phrase or "Request failed"
        return ApiError(
            message=message,
            status_code=response.status_code,
            kind=body.get("error", "api_error"),
            context={
                "details": body.get("details"),
                "request_id": body.get("request_id") or request_id,
            },
        )
