import pytest

from conftest import add_account
from hrms.core.rbac import Role
from hrms.repositories.data_store import InMemoryRemoteStore
from hrms.services.session_registry import SessionRegistry


@pytest.fixture
def registry(database):
    async def store_factory():
        return InMemoryRemoteStore(database)

    return SessionRegistry(store_factory, failure_policy="default_role")


class TestSessionRegistry:
    @pytest.mark.asyncio
    async def test_get_reuses_manager_per_key(self, registry):
        first = await registry.get("a")
        again = await registry.get("a")
        other = await registry.get("b")

        assert first is again
        assert first is not other
        assert first.store is not other.store
        assert first.session.is_loading is False

    @pytest.mark.asyncio
    async def test_rekey_moves_manager(self, registry):
        manager = await registry.get("old")
        registry.rekey("old", "new")

        assert "old" not in registry
        assert await registry.get("new") is manager

    @pytest.mark.asyncio
    async def test_signed_in_state_does_not_leak(self, registry, database):
        add_account(database, "staff@example.com", "secret1", Role.EMPLOYEE)
        signed_in = await registry.get("a")
        await signed_in.sign_in("staff@example.com", "secret1")

        anonymous = await registry.get("b")
        assert signed_in.session.is_authenticated
        assert not anonymous.session.is_authenticated

    @pytest.mark.asyncio
    async def test_discard_and_close_all(self, registry):
        manager = await registry.get("a")
        await registry.get("b")

        await registry.discard("a")
        assert "a" not in registry
        assert manager.store._handlers == []

        await registry.discard("missing")
        await registry.close_all()
        assert len(registry) == 0

    def test_new_keys_are_unique(self):
        assert SessionRegistry.new_key() != SessionRegistry.new_key()


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestEviction:
    @pytest.mark.asyncio
    async def test_size_is_bounded_by_least_recent_use(self, database):
        async def store_factory():
            return InMemoryRemoteStore(database)

        registry = SessionRegistry(store_factory, max_sessions=3)
        first = await registry.get("k0")
        for i in range(1, 10):
            await registry.get("k0")
            await registry.get(f"k{i}")

        assert len(registry) == 3
        assert "k0" in registry
        assert "k1" not in registry
        assert await registry.get("k0") is first

    @pytest.mark.asyncio
    async def test_evicted_manager_is_closed(self, database):
        async def store_factory():
            return InMemoryRemoteStore(database)

        registry = SessionRegistry(store_factory, max_sessions=1)
        evicted = await registry.get("a")
        await registry.get("b")

        assert "a" not in registry
        assert evicted.store._handlers == []
        assert evicted._subscription is None

    @pytest.mark.asyncio
    async def test_idle_sessions_expire(self, database):
        async def store_factory():
            return InMemoryRemoteStore(database)

        clock = FakeClock()
        registry = SessionRegistry(store_factory, idle_timeout=60, clock=clock)
        await registry.get("stale")
        clock.now = 30
        await registry.get("active")
        clock.now = 75
        await registry.get("fresh")

        assert "stale" not in registry
        assert "active" in registry
        assert "fresh" in registry

    @pytest.mark.asyncio
    async def test_empty_registry_is_truthy(self, registry):
        assert len(registry) == 0
        assert registry

    def test_rejects_non_positive_capacity(self, registry):
        with pytest.raises(ValueError):
            SessionRegistry(registry.store_factory, max_sessions=0)
