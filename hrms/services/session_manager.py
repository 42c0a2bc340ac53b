from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Optional

from pydantic import ValidationError

from hrms.core.config import settings
from hrms.core.errors import AuthError, ProfileResolutionDegraded, StoreError
from hrms.core.rbac import DEFAULT_ROLE, Role
from hrms.models.auth import AuthSession, Identity, Profile, SessionState
from hrms.repositories.remote_store import RemoteStore, Subscription
from hrms.repositories.tables import Table, table_name


logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionState], None]

FAILURE_POLICY_DEFAULT_ROLE = "default_role"
FAILURE_POLICY_DENY = "deny"


class SessionManager:
    """Owns the authentication state of one browser session.

    The manager is the only writer of its ``SessionState``. Everything else
    reads ``session`` or registers a listener with ``subscribe``. Store
    session-change notifications are applied in arrival order; a profile
    resolution that finishes after a newer notification switched identity is
    dropped.
    """

    def __init__(
        self,
        store: RemoteStore,
        profiles_table: Optional[str] = None,
        failure_policy: str = settings.profile_failure_policy,
    ) -> None:
        if failure_policy not in {FAILURE_POLICY_DEFAULT_ROLE, FAILURE_POLICY_DENY}:
            raise ValueError(f"Unknown profile failure policy: {failure_policy}")
        self.store = store
        self.profiles_table = profiles_table or table_name(Table.PROFILES)
        self.failure_policy = failure_policy
        self._state = SessionState()
        self._listeners: list[SessionListener] = []
        self._latest_identity_id: Optional[str] = None
        self._events_received = 0
        self._profile_lock = asyncio.Lock()
        self._settled = asyncio.Event()
        self._tasks: set[asyncio.Task] = set()
        self._subscription: Optional[Subscription] = None

    @property
    def session(self) -> SessionState:
        return self._state

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: SessionState) -> None:
        self._state = state
        if state.is_loading:
            self._settled.clear()
        else:
            self._settled.set()
        for listener in list(self._listeners):
            listener(state)

    async def wait_until_ready(self, timeout: float) -> SessionState:
        try:
            await asyncio.wait_for(self._settled.wait(), timeout)
        except asyncio.TimeoutError:
            logger.warning("Session still loading after %.1fs", timeout)
        return self._state

    async def initialize(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = self.store.on_session_change(self._on_session_change)

        seen = self._events_received
        current = await self.store.get_current_session()
        if self._events_received != seen:
            # A notification arrived meanwhile and is newer than this snapshot.
            return
        if current is None:
            self._set_state(SessionState(is_loading=False))
            return
        self._latest_identity_id = current.identity.id
        await self._resolve_profile(current.identity)

    def _on_session_change(self, session: Optional[AuthSession]) -> None:
        self._events_received += 1
        if session is None:
            self._latest_identity_id = None
            self._set_state(SessionState(is_loading=False))
            return

        identity = session.identity
        self._latest_identity_id = identity.id
        current = self._state.identity
        if current is None or current.id != identity.id:
            self._set_state(SessionState(identity=identity, is_loading=True))

        task = asyncio.get_running_loop().create_task(self._resolve_profile(identity))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fetch_or_create_profile(self, identity: Identity, role: Role) -> Profile:
        """Return the profile row for ``identity``, inserting one with ``role`` if absent.

        Callers hold ``_profile_lock`` so a check and its insert never interleave
        with another resolution.
        """
        profiles = self.profiles_table
        try:
            result = await self.store.table(profiles).select("*").eq("id", identity.id).execute()
            rows = result.data or []
            if rows:
                row = rows[0]
                return Profile(id=identity.id, email=row.get("email") or identity.email, role=row["role"])

            created = await (
                self.store.table(profiles)
                .insert({"id": identity.id, "email": identity.email, "role": role.value})
                .select()
                .single()
                .execute()
            )
            logger.info("Created %s profile for %s", role.value, identity.id)
            return Profile(id=identity.id, email=created.data.get("email") or identity.email, role=created.data["role"])
        except (StoreError, ValidationError, KeyError) as exc:
            raise ProfileResolutionDegraded(f"Profile lookup failed for {identity.id}: {exc}") from exc

    async def _resolve_profile(self, identity: Identity) -> None:
        degraded = False
        try:
            async with self._profile_lock:
                profile: Optional[Profile] = await self._fetch_or_create_profile(identity, DEFAULT_ROLE)
        except ProfileResolutionDegraded as exc:
            logger.warning("%s; applying %s policy", exc, self.failure_policy)
            degraded = True
            if self.failure_policy == FAILURE_POLICY_DENY:
                profile = None
            else:
                profile = Profile(id=identity.id, email=identity.email, role=DEFAULT_ROLE)

        if self._latest_identity_id != identity.id:
            logger.info("Discarding stale profile resolution for %s", identity.id)
            return

        self._set_state(
            SessionState(identity=identity, profile=profile, is_loading=False, degraded=degraded)
        )

    def _publish_signed_in(self, identity: Identity, profile: Profile) -> None:
        # Only when the store reported this identity as the active session;
        # sign-ups awaiting email confirmation have none yet.
        if self._latest_identity_id == identity.id:
            self._set_state(SessionState(identity=identity, profile=profile, is_loading=False))

    async def sign_in(self, email: str, password: str) -> Identity:
        async with self._profile_lock:
            try:
                identity = await self.store.sign_in_with_password(email, password)
            except AuthError as exc:
                logger.warning("Sign-in rejected for %s: %s", email, exc)
                raise
            try:
                profile = await self._fetch_or_create_profile(identity, DEFAULT_ROLE)
            except ProfileResolutionDegraded as exc:
                raise AuthError("Signed in but the user profile could not be prepared") from exc
        self._publish_signed_in(identity, profile)
        logger.info("Signed in %s", identity.id)
        return identity

    async def sign_up(self, email: str, password: str, role: Role) -> Identity:
        role = Role(role)
        async with self._profile_lock:
            try:
                identity = await self.store.sign_up(email, password)
            except AuthError as exc:
                logger.warning("Sign-up rejected for %s: %s", email, exc)
                raise
            try:
                await (
                    self.store.table(self.profiles_table)
                    .insert({"id": identity.id, "email": email, "role": role.value})
                    .execute()
                )
            except StoreError as exc:
                logger.error("Profile insert failed for new account %s: %s", identity.id, exc)
                raise AuthError("Account created but the user profile could not be saved") from exc
        self._publish_signed_in(identity, Profile(id=identity.id, email=email, role=role))
        logger.info("Registered %s with role %s", identity.id, role.value)
        return identity

    async def sign_out(self) -> None:
        try:
            await self.store.sign_out()
        except AuthError as exc:
            logger.warning("Sign-out failed: %s", exc)
            raise
        self._latest_identity_id = None
        self._set_state(SessionState(is_loading=False))

    async def reset_password(self, email: str) -> None:
        try:
            await self.store.reset_password_for_email(email)
        except AuthError as exc:
            logger.warning("Password reset request failed for %s: %s", email, exc)
            raise

    async def update_password(self, new_password: str) -> None:
        try:
            await self.store.update_user(password=new_password)
        except AuthError as exc:
            logger.warning("Password update failed: %s", exc)
            raise

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        self._listeners.clear()
