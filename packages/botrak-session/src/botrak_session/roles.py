"""Role resolution: role strings -> capabilities -> screen access -> menu.

Everything here is pure. The session layer recomputes these on every access
check instead of caching them.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Iterable

from botrak_session.models import User

DEFAULT_ROLE = "employee"


class Role(str, Enum):
    SUPER_ADMIN = "organization_super_admin"
    AUDIT_MEMBER = "audit_member"
    EMPLOYEE = "employee"
    ASSET_ASSIGNMENT = "asset_assignment"
    APPROVER = "approver"


@dataclass(frozen=True)
class CapabilitySet:
    is_organization_super_admin: bool = False
    is_audit_member: bool = False
    is_employee: bool = False
    is_assignee: bool = False
    is_approver: bool = False

    @property
    def any(self) -> bool:
        return any(asdict(self).values())


@dataclass(frozen=True)
class ScreenAccess:
    asset_check_in_out: bool = False
    audit: bool = False
    audit_report: bool = False
    reminder: bool = False
    asset_assignment: bool = False
    asset_approval: bool = False
    current_plan: bool = False
    invoice: bool = False

    def as_dict(self) -> dict[str, bool]:
        """Flags keyed by the screen names used by the navigation layer."""
        return {
            "AssetCheckInOutScreen": self.asset_check_in_out,
            "AuditScreen": self.audit,
            "AuditReportScreen": self.audit_report,
            "ReminderScreen": self.reminder,
            "AssetAssignmentScreen": self.asset_assignment,
            "AssetApprovalScreen": self.asset_approval,
            "CurrentPlanScreen": self.current_plan,
            "InvoiceScreen": self.invoice,
        }


@dataclass(frozen=True)
class MenuItem:
    id: str
    label: str
    icon: str
    route: str


@dataclass(frozen=True)
class Permissions:
    can_modify_asset: bool = False


CHECK_IN_OUT = MenuItem("check_in_out", "Check In/Out", "repeat", "CheckInOut")
AUDITS = MenuItem("audits", "Audits", "clipboard", "AuditList")
AUDIT_REPORTS = MenuItem("audit_reports", "Audit Reports", "file-text", "AuditReports")
REMINDERS = MenuItem("reminders", "Reminders", "bell", "Reminders")
APPROVALS = MenuItem("approvals", "Approvals", "check-circle", "Approvals")
ASSIGNMENT = MenuItem("assignment", "Asset Assignment", "user-plus", "AssetAssignment")
INVOICE = MenuItem("invoice", "Invoices", "dollar-sign", "Invoices")
PLAN = MenuItem("plan", "Current Plan", "shield", "CurrentPlan")
CHANGE_ORG = MenuItem("change_org", "Change Organization", "users", "MyOrganizations")

# Priority order of the side menu; each entry is driven by exactly one flag.
_MENU_ORDER: tuple[tuple[str, MenuItem], ...] = (
    ("asset_check_in_out", CHECK_IN_OUT),
    ("audit", AUDITS),
    ("audit_report", AUDIT_REPORTS),
    ("reminder", REMINDERS),
    ("asset_approval", APPROVALS),
    ("asset_assignment", ASSIGNMENT),
    ("invoice", INVOICE),
    ("current_plan", PLAN),
)


def normalize_roles(roles: str | Iterable[str] | None) -> list[str]:
    """Wrap a bare role into a list and trim/lowercase every element."""
    if roles is None or isinstance(roles, str):
        raw: list[object] = [roles]
    else:
        raw = list(roles)
    return [r.strip().lower() if isinstance(r, str) else "" for r in raw]


def roles_to_capabilities(roles: str | Iterable[str] | None) -> CapabilitySet:
    """Map role strings onto capabilities. Unknown roles are ignored."""
    names = set(normalize_roles(roles))
    return CapabilitySet(
        is_organization_super_admin=Role.SUPER_ADMIN.value in names,
        is_audit_member=Role.AUDIT_MEMBER.value in names,
        is_employee=Role.EMPLOYEE.value in names,
        is_assignee=Role.ASSET_ASSIGNMENT.value in names,
        is_approver=Role.APPROVER.value in names,
    )


def capabilities_to_screen_access(caps: CapabilitySet) -> ScreenAccess:
    admin = caps.is_organization_super_admin
    operator = admin or caps.is_employee
    return ScreenAccess(
        asset_check_in_out=operator,
        audit=caps.is_audit_member,
        audit_report=operator or caps.is_audit_member,
        reminder=operator,
        asset_assignment=caps.is_assignee or admin,
        asset_approval=caps.is_approver or admin,
        current_plan=admin,
        invoice=admin,
    )


def screen_access(roles: str | Iterable[str] | None) -> ScreenAccess:
    return capabilities_to_screen_access(roles_to_capabilities(roles))


def build_menu(roles: str | Iterable[str] | None) -> list[MenuItem]:
    """Side-menu entries for *roles*, always ending with Change Organization.

    When none of the roles is recognized the menu is built for an employee.
    """
    caps = roles_to_capabilities(roles)
    if not caps.any:
        caps = roles_to_capabilities(DEFAULT_ROLE)
    access = capabilities_to_screen_access(caps)

    items = [item for flag, item in _MENU_ORDER if getattr(access, flag)]
    items.append(CHANGE_ORG)
    return items


def resolve_effective_role(user: User | None, org_role: str | None = None) -> str:
    """The single role fallback chain.

    Organization role, then the first of ``role_names``, then the legacy
    ``role``, then ``employee``.
    """
    if org_role:
        return org_role
    if user is not None:
        if user.role_names and user.role_names[0]:
            return user.role_names[0]
        if user.role:
            return user.role
    return DEFAULT_ROLE


def access_roles(user: User | None) -> list[str]:
    """Roles used for screen and menu access checks."""
    if user is not None and user.role_names:
        return list(user.role_names)
    return [resolve_effective_role(user)]


def initial_route(access: ScreenAccess) -> str:
    """First dashboard screen: check-in/out, else audits, else check-in/out."""
    if access.asset_check_in_out:
        return CHECK_IN_OUT.route
    if access.audit:
        return AUDITS.route
    return CHECK_IN_OUT.route


def permissions_for(role: str | None) -> Permissions:
    """Asset-level permissions for a single role; only super admins modify assets."""
    normalized = normalize_roles(role)[0]
    return Permissions(can_modify_asset=normalized == Role.SUPER_ADMIN.value)
