"""
Bones Client — Users Data Layer Tests
======================================

What:  End-to-end tests: UsersDataLayer → QueryClient → UsersApiClient →
       FastAPI app, all in-process over ASGITransport.

What we test:
    ✅ A create makes the cached list stale; the next reads revalidate it
    ✅ Optimistic delete hides the user immediately
    ✅ Failed writes surface as MutationFailed wrapping ApiError
    ✅ The Ann scenario through the cache
"""

import pytest
import pytest_asyncio

from bones.client.cache import EntryStatus
from bones.client.users import UsersDataLayer, user_key, users_list_key
from bones.exceptions import ApiError, FetchFailed, MutationFailed


@pytest_asyncio.fixture
async def data_layer(api_client):
    layer = UsersDataLayer(api_client)
    yield layer
    await layer.client.wait_idle()


class TestUsersDataLayer:

    @pytest.mark.asyncio
    async def test_empty_list_is_fresh(self, data_layer):
        result = await data_layer.list_users()

        assert result.data == []
        assert result.status is EntryStatus.FRESH

    @pytest.mark.asyncio
    async def test_create_marks_list_stale_then_revalidates(self, data_layer):
        await data_layer.list_users()

        user = await data_layer.create_user("Ann", "ann@example.com")

        stale = await data_layer.list_users()
        assert stale.status is EntryStatus.STALE
        assert stale.data == []

        await data_layer.client.wait_idle()
        fresh = await data_layer.list_users()
        assert fresh.status is EntryStatus.FRESH
        assert [u.id for u in fresh.data] == [user.id]

    @pytest.mark.asyncio
    async def test_created_user_is_cached_by_id(self, data_layer):
        user = await data_layer.create_user("Ann", "ann@example.com")

        entry = data_layer.client.get_entry(user_key(user.id))
        assert entry.status is EntryStatus.FRESH
        assert entry.data == user

    @pytest.mark.asyncio
    async def test_optimistic_delete(self, data_layer):
        ann = await data_layer.create_user("Ann", "ann@example.com")
        bob = await data_layer.create_user("Bob", "bob@example.com")
        await data_layer.list_users()
        await data_layer.client.wait_idle()

        seen = []
        data_layer.on_users_change(lambda snap: seen.append([u.id for u in snap.data]))
        await data_layer.delete_user(ann.id)

        # first notification is the optimistic edit, before the server answered
        assert seen[0] == [bob.id]
        assert data_layer.client.get_entry(users_list_key()).status is EntryStatus.STALE
        assert data_layer.client.get_entry(user_key(ann.id)).status is EntryStatus.STALE

    @pytest.mark.asyncio
    async def test_failed_create_leaves_list_untouched(self, data_layer):
        await data_layer.create_user("Ann", "ann@example.com")
        await data_layer.list_users()
        await data_layer.client.wait_idle()
        before = data_layer.client.get_entry(users_list_key())

        with pytest.raises(MutationFailed) as exc_info:
            await data_layer.create_user("Ann", "ANN@example.com")

        assert isinstance(exc_info.value.cause, ApiError)
        assert exc_info.value.cause.kind == "duplicate_key"
        after = data_layer.client.get_entry(users_list_key())
        assert after.status is before.status
        assert after.data == before.data

    @pytest.mark.asyncio
    async def test_get_unknown_user_fails(self, data_layer):
        with pytest.raises(FetchFailed) as exc_info:
            await data_layer.get_user("missing")

        assert exc_info.value.cause.kind == "not_found"

    @pytest.mark.asyncio
    async def test_ann_scenario(self, data_layer):
        ann = await data_layer.create_user("Ann", "ann@example.com")

        with pytest.raises(MutationFailed) as duplicate:
            await data_layer.create_user("Ann", "ANN@example.com ")
        assert duplicate.value.cause.status_code == 409

        await data_layer.delete_user(ann.id)
        with pytest.raises(MutationFailed) as missing:
            await data_layer.delete_user(ann.id)
        assert missing.value.cause.status_code == 404

        await data_layer.list_users()
        await data_layer.client.wait_idle()
        result = await data_layer.list_users()
        assert result.data == []
        assert result.status is EntryStatus.FRESH
