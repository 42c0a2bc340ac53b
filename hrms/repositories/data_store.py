from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from hrms.core.errors import AuthError, StoreError
from hrms.core.rbac import Role
from hrms.core.security import hash_password, verify_password
from hrms.models.auth import AuthSession, Identity
from hrms.repositories.remote_store import (
    QueryResult,
    SessionChangeHandler,
    TableQuery,
)
from hrms.repositories.tables import Table, table_name


logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class InMemoryDatabase:
    """Shared state behind every in-memory store client: accounts and tables.

    Emulates the hosted backend for local runs and tests. Rows are keyed by
    their ``id`` column, which must be unique per table.
    """

    def __init__(self, auto_confirm: bool = True) -> None:
        self.auto_confirm = auto_confirm
        self.users: dict[str, dict[str, Any]] = {}
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.password_resets: list[str] = []

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.setdefault(table, [])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _comparable(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def _matches(row: dict[str, Any], query: TableQuery) -> bool:
    for f in query.filters:
        actual = _comparable(row.get(f.column))
        expected = _comparable(f.value)
        if f.op == "eq":
            if actual != expected:
                return False
        elif actual is None:
            return False
        elif f.op == "gte" and not actual >= expected:
            return False
        elif f.op == "lte" and not actual <= expected:
            return False
    return True


def _sorted(rows: list[dict[str, Any]], order_by: list[tuple[str, bool]]) -> list[dict[str, Any]]:
    result = list(rows)
    for column, desc in reversed(order_by):
        present = [r for r in result if r.get(column) is not None]
        missing = [r for r in result if r.get(column) is None]
        present.sort(key=lambda r: _comparable(r[column]), reverse=desc)
        result = present + missing
    return result


class _HandlerSubscription:
    def __init__(self, handlers: list[SessionChangeHandler], handler: SessionChangeHandler) -> None:
        self._handlers = handlers
        self._handler = handler

    def unsubscribe(self) -> None:
        if self._handler in self._handlers:
            self._handlers.remove(self._handler)


class InMemoryRemoteStore:
    """One client of an ``InMemoryDatabase``, holding its own auth session."""

    def __init__(self, database: InMemoryDatabase) -> None:
        self.database = database
        self._session: Optional[AuthSession] = None
        self._handlers: list[SessionChangeHandler] = []

    def _emit(self, session: Optional[AuthSession]) -> None:
        for handler in list(self._handlers):
            try:
                handler(session)
            except Exception:
                logger.exception("Session change handler failed")

    def _start_session(self, identity: Identity, event: str) -> AuthSession:
        self._session = AuthSession(identity=identity, access_token=uuid4().hex, event=event)
        self._emit(self._session)
        return self._session

    async def get_current_session(self) -> Optional[AuthSession]:
        return self._session

    def on_session_change(self, handler: SessionChangeHandler) -> _HandlerSubscription:
        self._handlers.append(handler)
        return _HandlerSubscription(self._handlers, handler)

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        user = self.database.users.get(email.lower())
        if not user or not verify_password(password, user["hashed_password"]):
            raise AuthError("Invalid login credentials")
        identity = Identity(id=user["id"], email=user["email"])
        self._start_session(identity, "SIGNED_IN")
        return identity

    async def sign_up(self, email: str, password: str) -> Identity:
        key = email.lower()
        if key in self.database.users:
            raise AuthError("User already registered")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
        user = {"id": str(uuid4()), "email": email, "hashed_password": hash_password(password)}
        self.database.users[key] = user
        identity = Identity(id=user["id"], email=email)
        if self.database.auto_confirm:
            self._start_session(identity, "SIGNED_IN")
        return identity

    async def sign_out(self) -> None:
        self._session = None
        self._emit(None)

    async def reset_password_for_email(self, email: str) -> None:
        # Unknown addresses are accepted silently so the reply does not reveal which accounts exist.
        self.database.password_resets.append(email.lower())

    async def update_user(self, *, password: str) -> Identity:
        if self._session is None:
            raise AuthError("Auth session missing!")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password should be at least {MIN_PASSWORD_LENGTH} characters")
        identity = self._session.identity
        user = self.database.users.get(identity.email.lower())
        if not user:
            raise AuthError("User not found")
        user["hashed_password"] = hash_password(password)
        self._start_session(identity, "USER_UPDATED")
        return identity

    def table(self, name: str) -> TableQuery:
        return TableQuery(table=name, runner=self.run_query)

    async def run_query(self, query: TableQuery) -> QueryResult:
        rows = self.database.rows(query.table)

        if query.action == "select":
            matched = _sorted([r for r in rows if _matches(r, query)], query.order_by)
            count = len(matched) if query.count else None
            data: Any = [] if query.head else [dict(r) for r in matched]
        elif query.action == "insert":
            data = self._insert(rows, query.payload)
            count = None
        elif query.action == "update":
            if not query.filters:
                raise StoreError("UPDATE requires a WHERE clause")
            now = utcnow().isoformat()
            data = []
            for row in rows:
                if _matches(row, query):
                    row.update(query.payload)
                    row["updated_at"] = now
                    data.append(dict(row))
            count = None
        elif query.action == "delete":
            if not query.filters:
                raise StoreError("DELETE requires a WHERE clause")
            data = [dict(r) for r in rows if _matches(r, query)]
            rows[:] = [r for r in rows if not _matches(r, query)]
            count = None
        else:
            raise StoreError(f"Unsupported table action: {query.action}")

        if query.action != "select" and not query.returning:
            data = []

        if query.single_row:
            if not isinstance(data, list) or len(data) != 1:
                raise StoreError("JSON object requested, multiple (or no) rows returned")
            data = data[0]

        return QueryResult(data=data, count=count)

    @staticmethod
    def _insert(rows: list[dict[str, Any]], payload: list[dict[str, Any]]) -> list[dict[str, Any]]:
        existing = {r["id"] for r in rows}
        now = utcnow().isoformat()
        prepared: list[dict[str, Any]] = []
        for raw in payload:
            row = {"created_at": now, "updated_at": now, **raw}
            row.setdefault("id", str(uuid4()))
            if row["id"] in existing:
                raise StoreError(f"duplicate key value violates unique constraint (id={row['id']})")
            existing.add(row["id"])
            prepared.append(row)
        rows.extend(prepared)
        return [dict(r) for r in prepared]

    async def close(self) -> None:
        self._handlers.clear()


def seed_demo_data(database: InMemoryDatabase) -> None:
    """Populate accounts, profiles and a small org chart for local runs."""
    if database.users:
        return

    seed = [
        ("admin@hrms.example.com", "admin123", Role.ADMIN),
        ("hr@hrms.example.com", "hr1234", Role.HR),
        ("manager@hrms.example.com", "manager123", Role.MANAGER),
        ("employee@hrms.example.com", "employee123", Role.EMPLOYEE),
    ]
    now = utcnow()
    profiles = database.rows(table_name(Table.PROFILES))
    for email, password, role in seed:
        user_id = str(uuid4())
        database.users[email] = {
            "id": user_id,
            "email": email,
            "hashed_password": hash_password(password),
        }
        profiles.append({"id": user_id, "email": email, "role": role.value})

    departments = database.rows(table_name(Table.DEPARTMENTS))
    engineering = str(uuid4())
    people_ops = str(uuid4())
    departments.extend(
        [
            {
                "id": engineering,
                "name": "Engineering",
                "description": "Product and platform engineering",
                "manager_id": None,
                "created_at": now.isoformat(),
                "updated_at": now.isoformat(),
            },
            {
                "id": people_ops,
                "name": "People Operations",
                "description": "Hiring, onboarding and employee relations",
                "manager_id": None,
                "created_at": now.isoformat(),
                "updated_at": now.isoformat(),
            },
        ]
    )

    employees = database.rows(table_name(Table.EMPLOYEES))
    for first, last, dept, position, hired_days_ago, birthday_in_days, age in [
        ("Avery", "Jordan", people_ops, "HR Business Partner", 900, 12, 41),
        ("Jane", "Rivera", engineering, "Engineering Manager", 600, 45, 36),
        ("Alex", "Kim", engineering, "Software Engineer", 20, 3, 27),
    ]:
        birthday = (now + timedelta(days=birthday_in_days)).date()
        try:
            birth_date = birthday.replace(year=birthday.year - age)
        except ValueError:
            birth_date = date(birthday.year - age, 2, 28)
        employees.append(
            {
                "id": str(uuid4()),
                "first_name": first,
                "last_name": last,
                "email": f"{first.lower()}.{last.lower()}@hrms.example.com",
                "department_id": dept,
                "position": position,
                "hire_date": (now - timedelta(days=hired_days_ago)).date().isoformat(),
                "birth_date": birth_date.isoformat(),
                "status": "active",
                "created_at": now.isoformat(),
                "updated_at": now.isoformat(),
            }
        )
