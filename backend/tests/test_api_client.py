"""
Bones Client — Users API Client Tests
======================================

What:  Tests for UsersApiClient against the real app and a mock transport.

What we test:
    ✅ Happy paths parse into response schemas
    ✅ Error descriptors become ApiError with the server's kind and status
    ✅ Transport failures on GET are retried, on POST/DELETE they are not
    ✅ Exhausted retries surface as ApiError(kind="transport_error")
"""

import httpx
import pytest

from bones.client.api import UsersApiClient
from bones.config import settings
from bones.exceptions import ApiError
from bones.main import create_app


def flaky_transport(failures, calls):
    """MockTransport that raises ConnectError `failures` times, then answers."""

    def handler(request):
        calls.append(request.method)
        if len(calls) <= failures:
            raise httpx.ConnectError("connection refused", request=request)
        if request.method == "GET":
            return httpx.Response(200, json={"users": [], "total_count": 0})
        return httpx.Response(
            201,
            json={
                "id": "1",
                "name": "Ann",
                "email": "ann@example.com",
                "created_at": "2024-01-01T00:00:00Z",
            },
        )

    return httpx.MockTransport(handler)


class TestApiClientAgainstApp:

    @pytest.mark.asyncio
    async def test_create_and_list(self, api_client):
        created = await api_client.create_user("Ann", "ann@example.com")
        users = await api_client.list_users()

        assert [u.id for u in users] == [created.id]
        assert (await api_client.get_user(created.id)).email == "ann@example.com"

    @pytest.mark.asyncio
    async def test_validation_error(self, api_client):
        with pytest.raises(ApiError) as exc_info:
            await api_client.create_user("Ann", None)

        assert exc_info.value.status_code == 400
        assert exc_info.value.kind == "validation_error"
        assert exc_info.value.context["details"] == {"field": "email"}
        assert exc_info.value.context["request_id"]

    @pytest.mark.asyncio
    async def test_duplicate_is_conflict(self, api_client):
        await api_client.create_user("Ann", "ann@example.com")

        with pytest.raises(ApiError) as exc_info:
            await api_client.create_user("Ann", "ANN@example.com ")

        assert exc_info.value.status_code == 409
        assert exc_info.value.kind == "duplicate_key"

    @pytest.mark.asyncio
    async def test_delete_unknown_is_not_found(self, api_client):
        with pytest.raises(ApiError) as exc_info:
            await api_client.delete_user("missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.kind == "not_found"

    @pytest.mark.asyncio
    async def test_hello(self, api_client):
        hello = await api_client.hello()
        assert hello.message == "Hello from Greact-Bones backend!"


class TestApiClientRetries:

    @pytest.mark.asyncio
    async def test_get_retried_after_transport_error(self):
        calls = []
        async with UsersApiClient(
            base_url="http://test",
            transport=flaky_transport(1, calls),
            max_attempts=3,
            min_wait=0,
            max_wait=0,
        ) as api:
            users = await api.list_users()

        assert users == []
        assert calls == ["GET", "GET"]

    @pytest.mark.asyncio
    async def test_post_not_retried(self):
        calls = []
        async with UsersApiClient(
            base_url="http://test",
            transport=flaky_transport(1, calls),
            max_attempts=3,
            min_wait=0,
            max_wait=0,
        ) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.create_user("Ann", "ann@example.com")

        assert exc_info.value.kind == "transport_error"
        assert exc_info.value.status_code is None
        assert calls == ["POST"]

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        calls = []
        async with UsersApiClient(
            base_url="http://test",
            transport=flaky_transport(10, calls),
            max_attempts=3,
            min_wait=0,
            max_wait=0,
        ) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.list_users()

        assert exc_info.value.kind == "transport_error"
        assert exc_info.value.context["error_type"] == "ConnectError"
        assert len(calls) == 3

    def test_min_wait_above_max_wait_rejected(self):
        with pytest.raises(ValueError):
            UsersApiClient(base_url="http://test", min_wait=2, max_wait=1)

    def test_inverted_retry_settings_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "retry_min_wait", 3.0)
        monkeypatch.setattr(settings, "retry_max_wait", 1.0)

        with pytest.raises(ValueError, match="must not exceed"):
            UsersApiClient(base_url="http://test")


class TestAppStartup:

    @pytest.mark.asyncio
    async def test_startup_ignores_client_retry_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "retry_min_wait", 3.0)
        monkeypatch.setattr(settings, "retry_max_wait", 1.0)
        app = create_app()

        async with app.router.lifespan_context(app):
            assert len(app.state.user_store) == 0
