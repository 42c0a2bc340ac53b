"""Contract for the hosted backend the portal persists through.

The store offers password authentication with session-change notifications
and CRUD over named tables. ``TableQuery`` records a single table operation
fluently; each backend interprets the recorded query in ``run_query``.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from hrms.models.auth import AuthSession, Identity


SessionChangeHandler = Callable[[Optional[AuthSession]], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None:
        ...


@dataclass
class QueryResult:
    data: Any = None
    count: Optional[int] = None


@dataclass(frozen=True)
class Filter:
    op: str
    column: str
    value: Any


@dataclass
class TableQuery:
    table: str
    runner: Callable[["TableQuery"], Awaitable[QueryResult]]
    action: str = "select"
    columns: str = "*"
    count: Optional[str] = None
    head: bool = False
    payload: Any = None
    returning: bool = False
    single_row: bool = False
    filters: list[Filter] = field(default_factory=list)
    order_by: list[tuple[str, bool]] = field(default_factory=list)

    def select(self, columns: str = "*", count: Optional[str] = None, head: bool = False) -> "TableQuery":
        # After a write, select() asks for the affected rows back.
        if self.action in {"insert", "update", "delete"}:
            self.returning = True
            return self
        self.action = "select"
        self.columns = columns
        self.count = count
        self.head = head
        return self

    def insert(self, rows: dict[str, Any] | list[dict[str, Any]]) -> "TableQuery":
        self.action = "insert"
        self.payload = rows if isinstance(rows, list) else [rows]
        return self

    def update(self, values: dict[str, Any]) -> "TableQuery":
        self.action = "update"
        self.payload = dict(values)
        return self

    def delete(self) -> "TableQuery":
        self.action = "delete"
        return self

    def eq(self, column: str, value: Any) -> "TableQuery":
        self.filters.append(Filter("eq", column, value))
        return self

    def gte(self, column: str, value: Any) -> "TableQuery":
        self.filters.append(Filter("gte", column, value))
        return self

    def lte(self, column: str, value: Any) -> "TableQuery":
        self.filters.append(Filter("lte", column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "TableQuery":
        self.order_by.append((column, desc))
        return self

    def single(self) -> "TableQuery":
        self.single_row = True
        return self

    async def execute(self) -> QueryResult:
        return await self.runner(self)


class RemoteStore(Protocol):
    """Authentication and table access offered by the hosted backend.

    Every auth method raises ``AuthError`` on rejection; ``TableQuery.execute``
    raises ``StoreError``.
    """

    async def get_current_session(self) -> Optional[AuthSession]:
        ...

    def on_session_change(self, handler: SessionChangeHandler) -> Subscription:
        ...

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        ...

    async def sign_up(self, email: str, password: str) -> Identity:
        ...

    async def sign_out(self) -> None:
        ...

    async def reset_password_for_email(self, email: str) -> None:
        ...

    async def update_user(self, *, password: str) -> Identity:
        ...

    def table(self, name: str) -> TableQuery:
        ...

    async def close(self) -> None:
        ...


StoreFactory = Callable[[], Awaitable[RemoteStore]]
