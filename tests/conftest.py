import os
import tempfile

import pytest
import pytest_asyncio

# Set env vars before any hrms module reads settings.
os.environ.setdefault("HRMS_DATA_DIR", tempfile.mkdtemp(prefix="hrms-tests-"))
os.environ.setdefault("HRMS_SEED_USERS", "false")
os.environ.setdefault("HRMS_SECRET_KEY", "test-secret-key")
os.environ.pop("SUPABASE_URL", None)
os.environ.pop("SUPABASE_ANON_KEY", None)

from hrms.core.rbac import Role  # noqa: E402
from hrms.repositories.data_store import InMemoryDatabase, InMemoryRemoteStore  # noqa: E402
from hrms.repositories.tables import Table, table_name  # noqa: E402
from hrms.services.session_manager import SessionManager  # noqa: E402


PROFILES = table_name(Table.PROFILES)


def add_account(database: InMemoryDatabase, email: str, password: str, role=None) -> str:
    """Register an account directly in the database, optionally with a profile row."""
    from hrms.core.security import hash_password

    user_id = f"user-{len(database.users) + 1}"
    database.users[email.lower()] = {
        "id": user_id,
        "email": email,
        "hashed_password": hash_password(password),
    }
    if role is not None:
        database.rows(PROFILES).append({"id": user_id, "email": email, "role": Role(role).value})
    return user_id


def profile_rows(database: InMemoryDatabase, user_id: str) -> list[dict]:
    return [row for row in database.rows(PROFILES) if row["id"] == user_id]


@pytest.fixture
def database() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def store(database) -> InMemoryRemoteStore:
    return InMemoryRemoteStore(database)


@pytest_asyncio.fixture
async def manager(store):
    session_manager = SessionManager(store)
    await session_manager.initialize()
    yield session_manager
    await session_manager.close()
