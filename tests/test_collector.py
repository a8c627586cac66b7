"""
Query collector tests.
"""

import pytest
import pytest_asyncio

from activestore import QueryCollector, collect

from .models import UserModel


@pytest_asyncio.fixture
async def users(connection):
    for key, name in (("u1", "Alice"), ("u2", "Bob"), ("u3", "Charlie")):
        await UserModel().hydrate({"id": key, "name": name, "email": f"{key}@t.com"}).save()


class TestCollector:
    @pytest.mark.asyncio
    async def test_items(self, users):
        items = await collect(UserModel().all()).items()

        assert [user.id for user in items] == ["u1", "u2", "u3"]

    @pytest.mark.asyncio
    async def test_count(self, users):
        assert await collect(UserModel().all()).count() == 3

    @pytest.mark.asyncio
    async def test_each_runs_sync_and_async_callbacks(self, users):
        seen = []

        async def remember(user):
            seen.append(user.id)

        collector = collect(UserModel().all())
        await collector.each(remember)
        await collector.each(lambda user: seen.append(user.name))

        assert seen == ["u1", "u2", "u3", "Alice", "Bob", "Charlie"]

    @pytest.mark.asyncio
    async def test_delete_removes_every_item(self, users):
        assert await collect(UserModel().all()).delete() is True

        assert await UserModel().all() == []

    @pytest.mark.asyncio
    async def test_delete_reports_partial_failure(self, users, connection):
        items = await UserModel().all()
        await connection.delete("users", "u2")

        async def pending():
            return items

        assert await collect(pending()).delete() is False
        assert await UserModel().all() == []

    @pytest.mark.asyncio
    async def test_items_as_resource(self, users):
        resources = await collect(UserModel().all()).items_as_resource()

        assert resources[0] == {"id": "u1", "name": "Alice", "email": "u1@t.com"}
        assert not isinstance(resources[0], UserModel)

    @pytest.mark.asyncio
    async def test_query_runs_once(self):
        runs = []

        async def query():
            runs.append(1)
            return ["a", "b"]

        collector = QueryCollector(query())

        assert await collector.count() == 2
        assert await collector.items() == ["a", "b"]
        assert runs == [1]
