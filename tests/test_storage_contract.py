"""
Storage connection contract tests.

Each test runs against the memory, key/value and SQL backends; all three
must agree on matching, ordering and pagination.
"""

import pytest

from activestore import (
    ConstraintError, CursorOptions, DatabaseConfig, Direction, Operator, SearchOptions, StoreNotFoundError,
)


async def seed_users(connection, *rows):
    for key, name in rows:
        await connection.set("users", key, {"id": key, "name": name, "email": f"{key}@t.com"})


class TestPointOperations:
    @pytest.mark.asyncio
    async def test_set_then_get(self, connection):
        record = {"id": "u1", "name": "alice"}

        assert await connection.set("users", "u1", record) == record
        assert await connection.get("users", "u1") == record

    @pytest.mark.asyncio
    async def test_get_absent_key(self, connection):
        assert await connection.get("users", "nope") is None

    @pytest.mark.asyncio
    async def test_keys_are_normalized(self, connection):
        await connection.set("users", " 42 ", {"id": 42, "name": "answer"})

        assert (await connection.get("users", 42))["name"] == "answer"
        assert (await connection.get("users", "42"))["name"] == "answer"

    @pytest.mark.asyncio
    async def test_set_replaces(self, connection):
        await connection.set("users", "u1", {"id": "u1", "name": "alice"})
        await connection.set("users", "u1", {"id": "u1", "name": "alicia"})

        assert (await connection.get("users", "u1"))["name"] == "alicia"
        assert await connection.where("users", "name", "alice") is None
        assert (await connection.where("users", "name", "alicia"))["id"] == "u1"

    @pytest.mark.asyncio
    async def test_delete_removes_record_and_index_entries(self, connection):
        await seed_users(connection, ("u1", "alice"))

        assert await connection.delete("users", "u1") is True
        assert await connection.get("users", "u1") is None
        assert await connection.where("users", "name", "alice") is None
        assert await connection.all("users", "name") == []

    @pytest.mark.asyncio
    async def test_delete_absent_key(self, connection):
        assert await connection.delete("users", "ghost") is False

    @pytest.mark.asyncio
    async def test_unknown_store(self, connection):
        with pytest.raises(StoreNotFoundError, match="Invalid store: nowhere"):
            await connection.get("nowhere", "u1")
        with pytest.raises(StoreNotFoundError):
            await connection.all("nowhere")


class TestWhere:
    @pytest.mark.asyncio
    async def test_equals_returns_first_match(self, connection):
        await seed_users(connection, ("u1", "alice"), ("u2", "alice"))

        assert (await connection.where("users", "name", "ALICE"))["id"] == "u1"

    @pytest.mark.asyncio
    async def test_equals_with_offset(self, connection):
        await seed_users(connection, ("u1", "alice"), ("u2", "alice"))

        found = await connection.where("users", "name", "alice", {"offset": 1})
        assert found["id"] == "u2"

    @pytest.mark.asyncio
    async def test_equals_without_match(self, connection):
        assert await connection.where("users", "name", "nobody") is None

    @pytest.mark.asyncio
    async def test_equals_many(self, connection):
        await seed_users(connection, ("u1", "alice"), ("u2", "bob"), ("u3", "alice"))

        found = await connection.where("users", "name", "alice", SearchOptions(operator=Operator.EQUALS_MANY))
        assert [record["id"] for record in found] == ["u1", "u3"]

    @pytest.mark.asyncio
    async def test_includes_scans_index_order(self, connection):
        await seed_users(connection, ("u1", "carol"), ("u2", "bob"), ("u3", "alice"))

        found = await connection.where("users", "name", "", {"operator": "includes"})
        assert [record["name"] for record in found] == ["alice", "bob", "carol"]

    @pytest.mark.asyncio
    async def test_not_equals_and_not_includes(self, connection):
        await seed_users(connection, ("u1", "alice"), ("u2", "alicia"), ("u3", "bob"))

        not_equal = await connection.where("users", "name", "alice", {"operator": "not_equals"})
        not_including = await connection.where("users", "name", "ali", {"operator": "not_includes"})

        assert [record["id"] for record in not_equal] == ["u2", "u3"]
        assert [record["id"] for record in not_including] == ["u3"]

    @pytest.mark.asyncio
    async def test_pagination_and_direction(self, connection):
        await seed_users(connection, ("u1", "a"), ("u2", "b"), ("u3", "c"), ("u4", "d"))

        page = await connection.where(
            "users", "name", "", SearchOptions(operator=Operator.INCLUDES, offset=1, limit=2, direction=Direction.DESC)
        )
        assert [record["name"] for record in page] == ["c", "b"]

    @pytest.mark.asyncio
    async def test_zero_limit_means_no_cap(self, connection):
        await seed_users(connection, ("u1", "a"), ("u2", "b"))

        found = await connection.where("users", "name", "", {"operator": "includes", "limit": 0})
        assert len(found) == 2

    @pytest.mark.asyncio
    async def test_equal_values_keep_write_order(self, connection):
        await seed_users(connection, ("u1", "same"), ("u2", "same"), ("u3", "same"))
        await connection.set("users", "u1", {"id": "u1", "name": "same", "email": "changed@t.com"})

        found = await connection.where("users", "name", "same", {"operator": "equals_many"})
        assert [record["id"] for record in found] == ["u2", "u3", "u1"]

    @pytest.mark.asyncio
    async def test_absent_index(self, connection):
        await seed_users(connection, ("u1", "alice"))

        assert await connection.where("users", "missing", "alice") is None
        assert await connection.where("users", "missing", "alice", {"operator": "includes"}) == []

    @pytest.mark.asyncio
    async def test_nested_index_path(self, connection):
        await connection.set("profiles", "p1", {"id": "p1", "address": {"city": "Oslo"}})
        await connection.set("profiles", "p2", {"id": "p2", "address": {"city": "Bergen"}})
        await connection.set("profiles", "p3", {"id": "p3"})

        assert (await connection.where("profiles", "city", "oslo"))["id"] == "p1"
        everything = await connection.where("profiles", "city", "", {"operator": "includes"})
        assert [record["id"] for record in everything] == ["p2", "p1"]

    @pytest.mark.asyncio
    async def test_boolean_and_numeric_values(self, connection):
        await connection.set("users", "u1", {"id": "u1", "name": True})
        await connection.set("users", "u2", {"id": "u2", "name": 7})

        assert (await connection.where("users", "name", "TRUE"))["id"] == "u1"
        assert (await connection.where("users", "name", 7))["id"] == "u2"


class TestAll:
    @pytest.mark.asyncio
    async def test_primary_order_is_first_insertion(self, connection):
        await seed_users(connection, ("u3", "c"), ("u1", "a"), ("u2", "b"))
        await connection.set("users", "u3", {"id": "u3", "name": "z"})

        assert [record["id"] for record in await connection.all("users")] == ["u3", "u1", "u2"]

    @pytest.mark.asyncio
    async def test_primary_order_descending(self, connection):
        await seed_users(connection, ("u1", "a"), ("u2", "b"), ("u3", "c"))

        found = await connection.all("users", None, CursorOptions(direction=Direction.DESC))
        assert [record["id"] for record in found] == ["u3", "u2", "u1"]

    @pytest.mark.asyncio
    async def test_index_order(self, connection):
        await seed_users(connection, ("u1", "c"), ("u2", "a"), ("u3", "b"))

        found = await connection.all("users", "name", {"limit": 2, "offset": 1})
        assert [record["name"] for record in found] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_absent_index(self, connection):
        await seed_users(connection, ("u1", "a"))

        assert await connection.all("users", "missing") == []

    @pytest.mark.asyncio
    async def test_deleted_records_leave_primary_order(self, connection):
        await seed_users(connection, ("u1", "a"), ("u2", "b"))
        await connection.delete("users", "u1")

        assert [record["id"] for record in await connection.all("users")] == ["u2"]


class TestUniqueIndex:
    @pytest.mark.asyncio
    async def test_collision_raises_and_writes_nothing(self, connection):
        await connection.set("accounts", "a1", {"id": "a1", "email": "x@t.com"})

        with pytest.raises(ConstraintError):
            await connection.set("accounts", "a2", {"id": "a2", "email": "x@t.com"})

        assert await connection.get("accounts", "a2") is None
        assert [record["id"] for record in await connection.all("accounts")] == ["a1"]

    @pytest.mark.asyncio
    async def test_same_key_may_rewrite_its_value(self, connection):
        await connection.set("accounts", "a1", {"id": "a1", "email": "x@t.com"})
        await connection.set("accounts", "a1", {"id": "a1", "email": "x@t.com", "name": "again"})

        assert (await connection.get("accounts", "a1"))["name"] == "again"

    @pytest.mark.asyncio
    async def test_value_is_free_after_delete(self, connection):
        await connection.set("accounts", "a1", {"id": "a1", "email": "x@t.com"})
        await connection.delete("accounts", "a1")

        await connection.set("accounts", "a2", {"id": "a2", "email": "x@t.com"})
        assert (await connection.where("accounts", "email", "x@t.com"))["id"] == "a2"


class TestReopen:
    """Reopening a database through the same plugin"""

    @staticmethod
    def declaration(*index_names):
        return DatabaseConfig.model_validate({
            "name": "reopened",
            "version": 1,
            "stores": [{"name": "users", "indexes": [{"name": name} for name in index_names]}],
        })

    @pytest.mark.asyncio
    async def test_new_index_is_built_from_existing_records(self, plugin):
        first = await plugin.setup(self.declaration("email"))
        await first.set("users", "u1", {"id": "u1", "email": "a@t.com", "name": "alice"})
        await first.set("users", "u2", {"id": "u2", "email": "b@t.com", "name": "alice"})
        await first.set("users", "u3", {"id": "u3", "email": "c@t.com"})

        second = await plugin.setup(self.declaration("email", "name"))

        assert (await second.where("users", "name", "ALICE"))["id"] == "u1"
        matches = await second.where("users", "name", "alice", {"operator": "equals_many"})
        assert [record["id"] for record in matches] == ["u1", "u2"]
        assert [record["id"] for record in await second.all("users", "name")] == ["u1", "u2"]
        await plugin.close()

    @pytest.mark.asyncio
    async def test_reopen_keeps_existing_indexes(self, plugin):
        first = await plugin.setup(self.declaration("email"))
        await first.set("users", "u1", {"id": "u1", "email": "a@t.com"})

        second = await plugin.setup(self.declaration("email"))
        await second.set("users", "u2", {"id": "u2", "email": "a@t.com"})

        matches = await second.where("users", "email", "a@t.com", {"operator": "equals_many"})
        assert [record["id"] for record in matches] == ["u1", "u2"]
        await plugin.close()
