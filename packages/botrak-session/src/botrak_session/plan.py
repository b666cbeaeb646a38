"""Plan validation: decide whether a session may keep its organization.

The backend is the source of truth for which organizations still have an
active subscription plan. Validation either keeps the current organization,
moves the session to the first organization with an active plan, or forces a
logout when none is left.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import structlog

from botrak_session.errors import FailureKind, NetworkError, SessionExpired
from botrak_session.models import ActiveOrganization, Membership, User, plan_is_active, same_org
from botrak_session.roles import resolve_effective_role

log = structlog.get_logger(__name__)

__all__ = [
    "OrganizationDirectory",
    "PlanDecision",
    "PlanValidator",
    "ValidationOutcome",
    "plan_is_active",
]


class OrganizationDirectory(Protocol):
    async def my_organizations(self) -> list[Membership]: ...


class PlanDecision(str, Enum):
    CONTINUE = "continue"
    SWITCH_TO = "switch_to"
    FORCE_LOGOUT = "force_logout"


@dataclass(frozen=True)
class ValidationOutcome:
    decision: PlanDecision
    membership: Membership | None = None
    organization_name: str | None = None  # CONTINUE only: set when the remote name changed
    reason: FailureKind | None = None  # FORCE_LOGOUT only

    @classmethod
    def force_logout(cls, reason: FailureKind) -> ValidationOutcome:
        return cls(PlanDecision.FORCE_LOGOUT, reason=reason)

    @property
    def keeps_session(self) -> bool:
        return self.decision is not PlanDecision.FORCE_LOGOUT

    def apply(self, user: User) -> User:
        """Return *user* updated for this outcome."""
        m = self.membership
        if m is None:
            raise ValueError(f"cannot apply {self.decision.value} to a user")
        if self.decision is PlanDecision.SWITCH_TO:
            return user.with_organization(m.organization_id, m.role, m.organization_name)
        # CONTINUE follows the membership role; only a changed name is carried over
        return user.with_organization(m.organization_id, m.role, self.organization_name)

    def active_org(self, user: User) -> ActiveOrganization:
        """The active-organization record matching ``apply(user)``."""
        updated = self.apply(user)
        m = self.membership
        assert m is not None
        return ActiveOrganization(
            organization_id=m.organization_id,
            name=updated.organization_name,
            role=resolve_effective_role(updated, m.role),
        )


class PlanValidator:
    """Validates a user's organization against the organization listing."""

    def __init__(self, directory: OrganizationDirectory) -> None:
        self._directory = directory

    async def validate(self, current_org_id: Any, user: User) -> ValidationOutcome:
        """Fetch memberships and decide; transport failures force a logout."""
        try:
            memberships = await self._directory.my_organizations()
        except SessionExpired:
            log.info("plan_validation_token_rejected", user_id=user.id)
            return ValidationOutcome.force_logout(FailureKind.SESSION_EXPIRED)
        except NetworkError as exc:
            log.warning("plan_validation_unavailable", user_id=user.id, error=exc.message)
            return ValidationOutcome.force_logout(FailureKind.NETWORK_ERROR)

        return self.resolve(current_org_id, user, memberships)

    def resolve(
        self, current_org_id: Any, user: User, memberships: list[Membership]
    ) -> ValidationOutcome:
        """Pure decision over an already-fetched membership list."""
        if not memberships:
            log.info("plan_validation_no_organizations", user_id=user.id)
            return ValidationOutcome.force_logout(FailureKind.PLAN_INACTIVE)

        current = next(
            (m for m in memberships if same_org(m.organization_id, current_org_id)), None
        )
        if current is not None and current.plan_active:
            renamed = (
                current.organization_name
                if current.organization_name and current.organization_name != user.organization_name
                else None
            )
            log.debug("plan_active", organization_id=current.organization_id, renamed=renamed is not None)
            return ValidationOutcome(PlanDecision.CONTINUE, membership=current, organization_name=renamed)

        fallback = next((m for m in memberships if m.plan_active), None)
        if fallback is not None:
            log.info(
                "plan_switch_selected",
                from_organization_id=current_org_id,
                to_organization_id=fallback.organization_id,
                current_found=current is not None,
            )
            return ValidationOutcome(PlanDecision.SWITCH_TO, membership=fallback)

        log.info("plan_validation_no_active_plan", user_id=user.id, organizations=len(memberships))
        return ValidationOutcome.force_logout(FailureKind.PLAN_INACTIVE)
