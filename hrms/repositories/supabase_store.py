"""Remote store backed by a hosted Supabase project.

Each instance wraps its own async client, so the auth session it holds belongs
to exactly one browser session. Supabase and PostgREST failures are translated
into ``AuthError`` and ``StoreError`` at this boundary.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

import httpx
from supabase import AsyncClient, PostgrestAPIError, acreate_client
from supabase import AuthError as SupabaseAuthError

from hrms.core.errors import AuthError, StoreError
from hrms.models.auth import AuthSession, Identity
from hrms.repositories.remote_store import (
    QueryResult,
    SessionChangeHandler,
    Subscription,
    TableQuery,
)


logger = logging.getLogger(__name__)


def _to_identity(user: Any) -> Identity:
    return Identity(id=str(user.id), email=user.email or "")


def _to_session(session: Any, event: str = "INITIAL_SESSION") -> Optional[AuthSession]:
    if session is None or session.user is None:
        return None
    return AuthSession(
        identity=_to_identity(session.user),
        access_token=session.access_token or "",
        event=event,
    )


def _wire(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


class SupabaseRemoteStore:
    def __init__(self, client: AsyncClient) -> None:
        self._client = client
        self._subscriptions: list[Subscription] = []

    @classmethod
    async def create(cls, url: str, key: str) -> "SupabaseRemoteStore":
        client = await acreate_client(url, key)
        return cls(client)

    async def get_current_session(self) -> Optional[AuthSession]:
        try:
            session = await self._client.auth.get_session()
        except SupabaseAuthError as exc:
            logger.warning("Could not read current session: %s", exc)
            return None
        return _to_session(session)

    def on_session_change(self, handler: SessionChangeHandler) -> Subscription:
        def callback(event: Any, session: Any) -> None:
            handler(_to_session(session, event=str(getattr(event, "value", event))))

        subscription = self._client.auth.on_auth_state_change(callback)
        self._subscriptions.append(subscription)
        return subscription

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        try:
            response = await self._client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except SupabaseAuthError as exc:
            raise AuthError(exc.message) from exc
        if response.user is None:
            raise AuthError("Sign-in returned no user")
        return _to_identity(response.user)

    async def sign_up(self, email: str, password: str) -> Identity:
        try:
            response = await self._client.auth.sign_up({"email": email, "password": password})
        except SupabaseAuthError as exc:
            raise AuthError(exc.message) from exc
        if response.user is None:
            raise AuthError("Sign-up returned no user")
        return _to_identity(response.user)

    async def sign_out(self) -> None:
        try:
            await self._client.auth.sign_out()
        except SupabaseAuthError as exc:
            raise AuthError(exc.message) from exc

    async def reset_password_for_email(self, email: str) -> None:
        try:
            await self._client.auth.reset_password_for_email(email)
        except SupabaseAuthError as exc:
            raise AuthError(exc.message) from exc

    async def update_user(self, *, password: str) -> Identity:
        try:
            response = await self._client.auth.update_user({"password": password})
        except SupabaseAuthError as exc:
            raise AuthError(exc.message) from exc
        return _to_identity(response.user)

    def table(self, name: str) -> TableQuery:
        return TableQuery(table=name, runner=self.run_query)

    async def run_query(self, query: TableQuery) -> QueryResult:
        builder: Any = self._client.table(query.table)
        if query.action == "select":
            builder = builder.select(query.columns, count=query.count, head=query.head or None)
        elif query.action == "insert":
            builder = builder.insert([{k: _wire(v) for k, v in row.items()} for row in query.payload])
        elif query.action == "update":
            builder = builder.update({k: _wire(v) for k, v in query.payload.items()})
        elif query.action == "delete":
            builder = builder.delete()
        else:
            raise StoreError(f"Unsupported table action: {query.action}")

        for f in query.filters:
            builder = getattr(builder, f.op)(f.column, _wire(f.value))
        for column, desc in query.order_by:
            builder = builder.order(column, desc=desc)

        try:
            response = await builder.execute()
        except PostgrestAPIError as exc:
            raise StoreError(exc.message or str(exc)) from exc
        except httpx.HTTPError as exc:
            raise StoreError(f"Remote store unreachable: {exc}") from exc

        data: Any = response.data if response.data is not None else []
        if query.action != "select" and not query.returning:
            data = []
        if query.single_row:
            if not isinstance(data, list) or len(data) != 1:
                raise StoreError("JSON object requested, multiple (or no) rows returned")
            data = data[0]
        return QueryResult(data=data, count=response.count)

    async def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
