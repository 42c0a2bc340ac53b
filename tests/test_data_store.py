"""
Tests for the in-memory backend: accounts, notifications and table queries.
"""

from datetime import date

import pytest

from hrms.core.errors import AuthError, StoreError
from hrms.core.rbac import Role
from hrms.repositories.data_store import InMemoryDatabase, InMemoryRemoteStore, seed_demo_data
from hrms.repositories.tables import Table, table_name


class TestAuth:
    @pytest.mark.asyncio
    async def test_sign_up_then_sign_in(self, store):
        created = await store.sign_up("Someone@Example.com", "secret1")
        await store.sign_out()

        identity = await store.sign_in_with_password("someone@example.com", "secret1")
        assert identity.id == created.id

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, store):
        with pytest.raises(AuthError, match="at least 6"):
            await store.sign_up("someone@example.com", "abc")

    @pytest.mark.asyncio
    async def test_notifications_follow_session(self, store):
        events = []
        subscription = store.on_session_change(events.append)

        await store.sign_up("someone@example.com", "secret1")
        await store.sign_out()
        subscription.unsubscribe()
        await store.sign_in_with_password("someone@example.com", "secret1")

        assert [e.event if e else None for e in events] == ["SIGNED_IN", None]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self, store):
        received = []

        def broken(_session):
            raise RuntimeError("boom")

        store.on_session_change(broken)
        store.on_session_change(received.append)
        await store.sign_up("someone@example.com", "secret1")

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_clients_hold_separate_sessions(self, database):
        first = InMemoryRemoteStore(database)
        second = InMemoryRemoteStore(database)
        await first.sign_up("someone@example.com", "secret1")

        assert await first.get_current_session() is not None
        assert await second.get_current_session() is None


class TestQueries:
    @pytest.mark.asyncio
    async def test_insert_returns_rows_only_when_selected(self, store):
        silent = await store.table("things").insert({"name": "a"}).execute()
        returned = await store.table("things").insert({"name": "b"}).select().single().execute()

        assert silent.data == []
        assert returned.data["name"] == "b"
        assert returned.data["id"]
        assert returned.data["created_at"]

    @pytest.mark.asyncio
    async def test_duplicate_id_rejected(self, store):
        await store.table("things").insert({"id": "x", "name": "a"}).execute()
        with pytest.raises(StoreError, match="duplicate key"):
            await store.table("things").insert({"id": "x", "name": "b"}).execute()

    @pytest.mark.asyncio
    async def test_filters_and_order(self, store):
        await store.table("things").insert(
            [
                {"name": "a", "day": date(2024, 1, 5), "kind": "x"},
                {"name": "b", "day": date(2024, 1, 1), "kind": "x"},
                {"name": "c", "day": date(2024, 2, 1), "kind": "y"},
                {"name": "d", "day": None, "kind": "x"},
            ]
        ).execute()

        result = await (
            store.table("things")
            .select("*")
            .eq("kind", "x")
            .gte("day", date(2024, 1, 1))
            .lte("day", "2024-01-31")
            .order("day", desc=True)
            .execute()
        )

        assert [r["name"] for r in result.data] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_count_head(self, store):
        await store.table("things").insert([{"kind": "x"}, {"kind": "x"}, {"kind": "y"}]).execute()
        result = await store.table("things").select("*", count="exact", head=True).eq("kind", "x").execute()

        assert result.count == 2
        assert result.data == []

    @pytest.mark.asyncio
    async def test_single_requires_one_row(self, store):
        with pytest.raises(StoreError):
            await store.table("things").select("*").single().execute()

    @pytest.mark.asyncio
    async def test_update_and_delete_need_filters(self, store):
        with pytest.raises(StoreError):
            await store.table("things").update({"name": "z"}).execute()
        with pytest.raises(StoreError):
            await store.table("things").delete().execute()

    @pytest.mark.asyncio
    async def test_update_touches_matching_rows(self, store):
        await store.table("things").insert([{"id": "1", "name": "a"}, {"id": "2", "name": "b"}]).execute()
        result = await store.table("things").update({"name": "z"}).eq("id", "2").select().execute()

        assert [r["name"] for r in result.data] == ["z"]
        rows = (await store.table("things").select("*").order("id").execute()).data
        assert [r["name"] for r in rows] == ["a", "z"]

    @pytest.mark.asyncio
    async def test_delete_with_select_returns_removed(self, store):
        await store.table("things").insert([{"id": "1"}, {"id": "2"}]).execute()
        result = await store.table("things").delete().eq("id", "1").select().execute()

        assert [r["id"] for r in result.data] == ["1"]
        assert len(store.database.rows("things")) == 1


class TestSeed:
    def test_seed_creates_accounts_with_profiles(self):
        database = InMemoryDatabase()
        seed_demo_data(database)

        profiles = database.rows(table_name(Table.PROFILES))
        roles = {row["email"]: row["role"] for row in profiles}
        assert roles["admin@hrms.example.com"] == Role.ADMIN.value
        assert roles["employee@hrms.example.com"] == Role.EMPLOYEE.value
        assert set(roles) == set(database.users)

    def test_seed_is_idempotent(self):
        database = InMemoryDatabase()
        seed_demo_data(database)
        seed_demo_data(database)

        assert len(database.rows(table_name(Table.PROFILES))) == 4
