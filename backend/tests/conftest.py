"""
Bones Backend — Test Configuration (conftest.py)
=================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Every test gets its own store, app and clients, so no state leaks
       between tests.

Fixture Hierarchy (all function-scoped):
    ├── user_store: Empty UserStore
    ├── user_service: UserService over user_store
    ├── app: FastAPI app serving user_store
    ├── test_client: HTTPX AsyncClient talking to app in-process
    ├── api_client: UsersApiClient talking to app in-process
    └── sample_user_data: Valid create payload
"""

import os

# Override settings for testing BEFORE any app imports
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["RETRY_MIN_WAIT"] = "0"
os.environ["RETRY_MAX_WAIT"] = "0"
os.environ["CACHE_ERROR_RETRY_DELAY"] = "0"
os.environ["CACHE_REFETCH_ON_INVALIDATE"] = "false"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from bones.client.api import UsersApiClient
from bones.main import create_app
from bones.services.user_service import UserService
from bones.store import UserStore


@pytest.fixture
def user_store():
    return UserStore()


@pytest.fixture
def user_service(user_store):
    return UserService(user_store)


@pytest.fixture
def app(user_store):
    return create_app(store=user_store)


@pytest.fixture
def sample_user_data():
    return {"name": "Ann", "email": "ann@example.com"}


@pytest_asyncio.fixture
async def test_client(app):
    """
    HTTPX AsyncClient configured to talk to our FastAPI app.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def api_client(app):
    """UsersApiClient routed to the in-process app (no network)."""
    client = UsersApiClient(
        base_url="http://test",
        transport=ASGITransport(app=app),
        max_attempts=1,
    )
    yield client
    await client.aclose()
