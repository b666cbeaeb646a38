"""Session domain models: user, organization membership, active organization."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from typing import Any

import structlog

log = structlog.get_logger(__name__)

_USER_FIELDS = (
    "id",
    "name",
    "email",
    "token",
    "role",
    "role_names",
    "organization_id",
    "organization_name",
)


def plan_is_active(value: Any) -> bool:
    """Canonical plan-activity rule: ``True`` or the number ``1``.

    Strings never count, not even ``"1"``.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return False


def same_org(a: Any, b: Any) -> bool:
    """Compare organization ids; the backend mixes ints and numeric strings."""
    if a is None or b is None:
        return False
    return str(a) == str(b)


def coerce_role_names(raw: Any) -> list[str]:
    """Normalize a persisted ``role_names`` value into a list.

    Legacy producers stored the list as a JSON string. Anything that does not
    decode to a list becomes an empty list.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            log.debug("role_names_unparsable", raw_length=len(raw))
            return []
    if not isinstance(raw, list):
        return []
    return list(raw)


@dataclass
class User:
    """The logged-in user and the organization the session operates under."""

    id: int | str | None = None
    name: str | None = None
    email: str | None = None
    token: str | None = None
    role: str | None = None
    role_names: list[str] = field(default_factory=list)
    organization_id: int | str | None = None
    organization_name: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)  # other backend fields, kept verbatim

    @classmethod
    def from_payload(cls, payload: dict[str, Any], token: str | None = None) -> User:
        """Build a User from a login response or a persisted record."""
        extra = {
            k: v
            for k, v in payload.items()
            if k not in _USER_FIELDS and k != "authentication_token"
        }
        if "organization_id" in payload:
            organization_id = payload["organization_id"]
        else:
            organization_id = payload.get("recent_organization_id")
        return cls(
            id=payload.get("id"),
            name=payload.get("name"),
            email=payload.get("email"),
            token=token or payload.get("token") or payload.get("authentication_token"),
            role=payload.get("role"),
            role_names=coerce_role_names(payload.get("role_names")),
            organization_id=organization_id,
            organization_name=payload.get("organization_name"),
            extra=extra,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = dict(self.extra)
        data.update(
            id=self.id,
            name=self.name,
            email=self.email,
            token=self.token,
            role=self.role,
            role_names=coerce_role_names(self.role_names),
            organization_id=self.organization_id,
            organization_name=self.organization_name,
        )
        return data

    def with_organization(
        self,
        organization_id: int | str,
        role: str | None = None,
        organization_name: str | None = None,
    ) -> User:
        """Return a copy moved to another organization.

        Missing role or name keep the current values.
        """
        return replace(
            self,
            organization_id=organization_id,
            role=role or self.role,
            organization_name=organization_name or self.organization_name,
            role_names=coerce_role_names(self.role_names),
            extra=dict(self.extra),
        )


@dataclass(frozen=True)
class Membership:
    """One organization the user belongs to, as listed by the backend."""

    organization_id: int | str
    organization_name: str | None = None
    role: str | None = None
    is_plan_active: Any = None  # raw backend value: bool or legacy 1/0

    @property
    def plan_active(self) -> bool:
        return plan_is_active(self.is_plan_active)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Membership:
        role_names = payload.get("role_names") or []
        role = (
            payload.get("role")
            or payload.get("role_name")
            or (role_names[0] if isinstance(role_names, list) and role_names else None)
        )
        return cls(
            organization_id=payload["organization_id"],
            organization_name=payload.get("organization_name") or payload.get("name"),
            role=role,
            is_plan_active=payload.get("is_plan_active"),
        )


@dataclass(frozen=True)
class ActiveOrganization:
    """The organization context persisted alongside the user."""

    organization_id: int | str
    name: str | None = None
    role: str | None = None

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> ActiveOrganization:
        return cls(
            organization_id=payload["organization_id"],
            name=payload.get("name") or payload.get("organization_name"),
            role=payload.get("role"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"organization_id": self.organization_id, "name": self.name, "role": self.role}


@dataclass(frozen=True)
class DashboardContext:
    """What the navigation layer needs to mount the dashboard."""

    organization_id: int | str
    organization_name: str | None
    role: str
