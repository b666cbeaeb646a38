"""Session manager: login, logout, organization switching and restore.

All public coroutines resolve to a :class:`SessionResult`; lower-layer
errors never escape. Mutations of the in-memory session, the token slot and
the persisted records happen under one lock, and network calls that decide a
new session run outside it. A generation counter, bumped by every login,
restore and logout, lets a resolution that finishes after a newer operation
detect it is stale and drop its result.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

import structlog

from botrak_session.api.base import SessionApi
from botrak_session.api.token import TokenSlot
from botrak_session.errors import (
    BotrakSessionError,
    FailureKind,
    NetworkError,
    PlanInactive,
    SessionExpired,
    StorageCorrupt,
)
from botrak_session.models import ActiveOrganization, DashboardContext, Membership, User, same_org
from botrak_session.persistence.store import SessionStore
from botrak_session.plan import PlanValidator, ValidationOutcome
from botrak_session.roles import (
    CapabilitySet,
    MenuItem,
    Permissions,
    ScreenAccess,
    access_roles,
    build_menu,
    capabilities_to_screen_access,
    initial_route,
    permissions_for,
    resolve_effective_role,
    roles_to_capabilities,
)

log = structlog.get_logger(__name__)

_FORCE_LOGOUT_MESSAGES = {
    FailureKind.PLAN_INACTIVE: "None of your organizations has an active plan.",
    FailureKind.SESSION_EXPIRED: SessionExpired.default_message,
    FailureKind.NETWORK_ERROR: NetworkError.default_message,
}


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    RESOLVING = "resolving"
    AUTHENTICATED = "authenticated"
    LOGGING_OUT = "logging_out"


@dataclass(frozen=True)
class SessionSnapshot:
    """What the navigation layer receives on every state change."""

    state: SessionState
    context: DashboardContext | None = None
    reset_navigation: bool = False  # mount a fresh dashboard for the context


@dataclass(frozen=True)
class SessionResult:
    ok: bool
    state: SessionState
    failure: FailureKind | None = None
    message: str | None = None
    context: DashboardContext | None = None
    organizations: tuple[Membership, ...] = ()

    @property
    def notify(self) -> bool:
        """Whether the UI should show a transient notification."""
        return self.failure is not None and self.failure.notify


SessionListener = Callable[[SessionSnapshot], Any]


class SessionManager:
    """Owns the session lifecycle for one device.

    Usage::

        tokens = TokenSlot()
        api = BotrakClient(tokens)
        manager = SessionManager(api, SessionStore(InMemoryBackend()), tokens)
        result = await manager.restore()
        if not result.ok or manager.state is not SessionState.AUTHENTICATED:
            result = await manager.login(email, password)
    """

    def __init__(
        self,
        api: SessionApi,
        store: SessionStore,
        tokens: TokenSlot,
        validator: PlanValidator | None = None,
    ) -> None:
        self._api = api
        self._store = store
        self._tokens = tokens
        self._validator = validator or PlanValidator(api)
        self._lock = asyncio.Lock()
        self._generation = 0
        self._state = SessionState.UNAUTHENTICATED
        self._user: User | None = None
        self._active_org: ActiveOrganization | None = None
        self._listeners: list[SessionListener] = []

    # ------------------------------------------------------------------
    # Read-only view
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def active_org(self) -> ActiveOrganization | None:
        return self._active_org

    @property
    def is_authenticated(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    def capabilities(self) -> CapabilitySet:
        return roles_to_capabilities(access_roles(self._user))

    def screen_access(self) -> ScreenAccess:
        return capabilities_to_screen_access(self.capabilities())

    def menu(self) -> list[MenuItem]:
        return build_menu(access_roles(self._user))

    def initial_route(self) -> str:
        return initial_route(self.screen_access())

    def permissions(self) -> Permissions:
        org_role = self._active_org.role if self._active_org is not None else None
        return permissions_for(resolve_effective_role(self._user, org_role))

    def dashboard_context(self) -> DashboardContext | None:
        if not self.is_authenticated or self._user is None or self._active_org is None:
            return None
        return DashboardContext(
            organization_id=self._active_org.organization_id,
            organization_name=self._active_org.name or self._user.organization_name,
            role=resolve_effective_role(self._user, self._active_org.role),
        )

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a snapshot listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> SessionResult:
        async with self._lock:
            if self._user is not None:
                log.info("login_replacing_session", user_id=self._user.id)
                await self._clear_local()
            generation = self._next_generation()
            self._set_state(SessionState.AUTHENTICATING)

        try:
            payload = await self._api.login(email, password)
        except BotrakSessionError as exc:
            log.info("login_failed", failure=exc.kind.value)
            async with self._lock:
                if generation == self._generation:
                    self._tokens.clear()
                    self._set_state(SessionState.UNAUTHENTICATED)
                return self._failed(exc.kind, exc.message)

        user = User.from_payload(payload)
        async with self._lock:
            if generation != self._generation:
                return self._superseded(generation)
            self._tokens.set(user.token)
            self._set_state(SessionState.RESOLVING)

        log.info("login_succeeded", user_id=user.id, organization_id=user.organization_id)
        return await self._resolve(generation, user, user.organization_id)

    async def restore(self) -> SessionResult:
        """Resume a persisted session, re-validating its plan first.

        Only acts from ``UNAUTHENTICATED``; otherwise reports the current state.
        """
        async with self._lock:
            if self._state is not SessionState.UNAUTHENTICATED:
                log.debug("restore_skipped", state=self._state.value)
                return self._succeeded()
            generation = self._next_generation()
            try:
                user = await self._store.read_user()
                active = await self._store.read_active_org() if user is not None else None
            except StorageCorrupt as exc:
                log.warning("stored_session_corrupt", error=exc.message)
                await self._clear_local()
                self._set_state(SessionState.UNAUTHENTICATED)
                return self._failed(FailureKind.STORAGE_CORRUPT, exc.message)

            if user is None or not user.token:
                log.debug("no_session_to_restore", has_user=user is not None)
                self._set_state(SessionState.UNAUTHENTICATED)
                return SessionResult(ok=True, state=self._state)

            # the persisted active organization wins over the user's copy
            if active is not None and not same_org(active.organization_id, user.organization_id):
                user = user.with_organization(active.organization_id, active.role, active.name)

            self._tokens.set(user.token)
            self._set_state(SessionState.RESOLVING)

        log.info("session_restoring", user_id=user.id, organization_id=user.organization_id)
        return await self._resolve(generation, user, user.organization_id)

    async def switch_organization(self, membership: Membership) -> SessionResult:
        """Move the session to *membership*'s organization.

        Organizations without an active plan are rejected before anything
        changes.
        """
        async with self._lock:
            if not self.is_authenticated or self._user is None:
                return self._failed(FailureKind.SESSION_EXPIRED, "No active session")
            if not membership.plan_active:
                log.info("switch_rejected_inactive_plan", organization_id=membership.organization_id)
                return self._failed(FailureKind.PLAN_INACTIVE, PlanInactive.default_message)

            user = self._user.with_organization(
                membership.organization_id, membership.role, membership.organization_name
            )
            org = ActiveOrganization(
                organization_id=membership.organization_id,
                name=user.organization_name,
                role=resolve_effective_role(user, membership.role),
            )
            try:
                await self._store.save_session(user, org)
            except StorageCorrupt as exc:
                log.error("switch_persist_failed", error=exc.message)
                return self._failed(FailureKind.STORAGE_CORRUPT, exc.message)

            self._user = user
            self._active_org = org
            log.info("organization_switched", organization_id=org.organization_id, role=org.role)
            self._set_state(SessionState.AUTHENTICATED, reset_navigation=True)
            return self._succeeded("Organization switched successfully")

    async def logout(self) -> SessionResult:
        """Best-effort remote logout, then clear everything local.

        Overlapping calls are serialized; later ones find nothing to clear.
        If the stored records cannot be removed the result carries
        ``STORAGE_CORRUPT``, although the in-memory session is gone.
        """
        async with self._lock:
            self._next_generation()
            if (
                self._user is None
                and self._state is SessionState.UNAUTHENTICATED
                and not self._tokens
            ):
                log.debug("logout_noop")
                return SessionResult(ok=True, state=self._state)

            self._set_state(SessionState.LOGGING_OUT)
            if self._tokens:
                try:
                    await self._api.logout()
                except BotrakSessionError as exc:
                    log.info("remote_logout_failed", failure=exc.kind.value)

            failure = await self._clear_local()
            self._set_state(SessionState.UNAUTHENTICATED)
            if failure is not None:
                return self._failed(FailureKind.STORAGE_CORRUPT, failure.message)
            log.info("logged_out")
            return SessionResult(ok=True, state=self._state)

    async def list_organizations(self) -> SessionResult:
        """Memberships for the organization picker.

        Inactive-plan organizations are included; their ``plan_active`` is
        ``False`` and switching to them is refused.
        """
        if not self.is_authenticated:
            return self._failed(FailureKind.SESSION_EXPIRED, "No active session")
        generation = self._generation
        try:
            memberships = await self._api.my_organizations()
        except SessionExpired as exc:
            async with self._lock:
                if generation == self._generation:
                    self._next_generation()
                    await self._clear_local()
                    self._set_state(SessionState.UNAUTHENTICATED)
            return self._failed(exc.kind, exc.message)
        except BotrakSessionError as exc:
            return self._failed(exc.kind, exc.message)
        return SessionResult(
            ok=True,
            state=self._state,
            context=self.dashboard_context(),
            organizations=tuple(memberships),
        )

    async def request_password_reset(self, email: str) -> SessionResult:
        try:
            message = await self._api.forgot_password(email)
        except BotrakSessionError as exc:
            return self._failed(exc.kind, exc.message)
        return SessionResult(
            ok=True,
            state=self._state,
            message=message or "Password reset instructions sent to your email",
        )

    async def aclose(self) -> None:
        await self._store.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _resolve(self, generation: int, user: User, current_org_id: Any) -> SessionResult:
        outcome = await self._validator.validate(current_org_id, user)

        async with self._lock:
            if generation != self._generation:
                return self._superseded(generation)
            if not outcome.keeps_session:
                return await self._force_logout(outcome)

            updated = outcome.apply(user)
            org = outcome.active_org(user)
            try:
                await self._store.save_session(updated, org)
            except StorageCorrupt as exc:
                log.error("session_persist_failed", error=exc.message)
                await self._clear_local()
                self._set_state(SessionState.UNAUTHENTICATED)
                return self._failed(FailureKind.STORAGE_CORRUPT, exc.message)

            self._user = updated
            self._active_org = org
            log.info(
                "session_authenticated",
                user_id=updated.id,
                organization_id=org.organization_id,
                decision=outcome.decision.value,
            )
            self._set_state(SessionState.AUTHENTICATED, reset_navigation=True)
            return self._succeeded()

    async def _force_logout(self, outcome: ValidationOutcome) -> SessionResult:
        kind = outcome.reason or FailureKind.PLAN_INACTIVE
        log.info("session_force_logout", reason=kind.value)
        await self._clear_local()
        self._set_state(SessionState.UNAUTHENTICATED)
        return self._failed(kind, _FORCE_LOGOUT_MESSAGES.get(kind))

    async def _clear_local(self) -> StorageCorrupt | None:
        """Drop the in-memory session, the token and both persisted records.

        Returns the storage failure when the persisted records could not be
        removed; the in-memory session and token are dropped either way.
        """
        self._user = None
        self._active_org = None
        self._tokens.clear()
        try:
            await self._store.clear()
        except StorageCorrupt as exc:
            log.error("session_clear_failed", error=exc.message)
            return exc
        return None

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _set_state(self, state: SessionState, reset_navigation: bool = False) -> None:
        if state is self._state and not reset_navigation:
            return
        self._state = state
        snapshot = SessionSnapshot(state, self.dashboard_context(), reset_navigation)
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                log.warning("session_listener_failed", state=state.value, error=str(exc))

    def _succeeded(self, message: str | None = None) -> SessionResult:
        return SessionResult(
            ok=True, state=self._state, message=message, context=self.dashboard_context()
        )

    def _failed(self, kind: FailureKind, message: str | None = None) -> SessionResult:
        return SessionResult(ok=False, state=self._state, failure=kind, message=message)

    def _superseded(self, generation: int) -> SessionResult:
        log.info("stale_resolution_discarded", generation=generation, current=self._generation)
        return self._failed(FailureKind.SESSION_EXPIRED, "Session changed while signing in")
