import logging

from hrms.core.config import settings
from hrms.repositories.data_store import InMemoryDatabase, InMemoryRemoteStore, seed_demo_data
from hrms.repositories.remote_store import RemoteStore
from hrms.services.session_registry import SessionRegistry


logger = logging.getLogger(__name__)

database = InMemoryDatabase()
_seeded = False


async def store_factory() -> RemoteStore:
    global _seeded
    if settings.uses_supabase:
        from hrms.repositories.supabase_store import SupabaseRemoteStore

        return await SupabaseRemoteStore.create(settings.supabase_url, settings.supabase_anon_key)

    if settings.seed_users and not _seeded:
        seed_demo_data(database)
        _seeded = True
        logger.info("Seeded in-memory backend with demo accounts")
    return InMemoryRemoteStore(database)


def build_session_registry() -> SessionRegistry:
    return SessionRegistry(store_factory=store_factory, failure_policy=settings.profile_failure_policy)
