"""Tests for plan validation."""

import pytest
from _helpers import FakeApi, membership

from botrak_session.errors import ApiError, FailureKind, NetworkError, SessionExpired
from botrak_session.models import Membership, User
from botrak_session.plan import PlanDecision, PlanValidator


def _user(org_id=1, name="Org 1") -> User:
    return User(id=1, token="t", role="employee", organization_id=org_id, organization_name=name)


async def _validate(memberships, current_org_id=1, user=None):
    api = FakeApi(organizations=memberships)
    return await PlanValidator(api).validate(current_org_id, user or _user(current_org_id))


@pytest.mark.asyncio
async def test_inactive_current_switches_to_first_active():
    outcome = await _validate([membership(1, active=False), membership(2, active=True)])
    assert outcome.decision is PlanDecision.SWITCH_TO
    assert outcome.membership is not None
    assert outcome.membership.organization_id == 2


@pytest.mark.asyncio
async def test_only_inactive_forces_logout():
    outcome = await _validate([membership(1, active=False)])
    assert outcome.decision is PlanDecision.FORCE_LOGOUT
    assert outcome.reason is FailureKind.PLAN_INACTIVE


@pytest.mark.asyncio
async def test_active_current_continues():
    outcome = await _validate([membership(1, active=True)])
    assert outcome.decision is PlanDecision.CONTINUE
    assert outcome.organization_name is None


@pytest.mark.asyncio
async def test_integer_one_counts_as_active():
    outcome = await _validate([membership(1, active=1)])
    assert outcome.decision is PlanDecision.CONTINUE


@pytest.mark.asyncio
async def test_string_one_is_not_active():
    outcome = await _validate([membership(1, active="1")])
    assert outcome.decision is PlanDecision.FORCE_LOGOUT


@pytest.mark.asyncio
async def test_missing_current_org_switches_in_backend_order():
    outcome = await _validate(
        [membership(5, active=0), membership(3, active=1), membership(4, active=True)],
        current_org_id=99,
    )
    assert outcome.decision is PlanDecision.SWITCH_TO
    assert outcome.membership.organization_id == 3


@pytest.mark.asyncio
async def test_org_ids_compare_across_int_and_string():
    outcome = await _validate([membership("1", active=True)], current_org_id=1)
    assert outcome.decision is PlanDecision.CONTINUE


@pytest.mark.asyncio
async def test_renamed_org_is_reported_on_continue():
    outcome = await _validate([membership(1, active=True, name="Acme Ltd")])
    assert outcome.organization_name == "Acme Ltd"
    assert outcome.apply(_user()).organization_name == "Acme Ltd"


@pytest.mark.asyncio
async def test_empty_listing_forces_logout():
    outcome = await _validate([])
    assert outcome.decision is PlanDecision.FORCE_LOGOUT


@pytest.mark.parametrize(
    "error, reason",
    [
        (SessionExpired(), FailureKind.SESSION_EXPIRED),
        (NetworkError(), FailureKind.NETWORK_ERROR),
        (ApiError("boom", 500), FailureKind.NETWORK_ERROR),
    ],
)
@pytest.mark.asyncio
async def test_listing_failures_force_logout(error, reason):
    api = FakeApi()
    api.organizations_error = error
    outcome = await PlanValidator(api).validate(1, _user())
    assert outcome.decision is PlanDecision.FORCE_LOGOUT
    assert outcome.reason is reason


def test_switch_outcome_updates_org_role_and_name():
    validator = PlanValidator(FakeApi())
    user = _user()
    outcome = validator.resolve(1, user, [membership(1, False), membership(2, True, role="approver", name="Beta")])
    updated = outcome.apply(user)
    assert (updated.organization_id, updated.role, updated.organization_name) == (2, "approver", "Beta")

    org = outcome.active_org(user)
    assert (org.organization_id, org.name, org.role) == (2, "Beta", "approver")
    assert user.organization_id == 1


def test_force_logout_outcome_cannot_be_applied():
    outcome = PlanValidator(FakeApi()).resolve(1, _user(), [])
    assert not outcome.keeps_session
    with pytest.raises(ValueError):
        outcome.apply(_user())


def test_continue_outcome_follows_membership_role():
    validator = PlanValidator(FakeApi())
    user = _user()
    outcome = validator.resolve(1, user, [membership(1, True, role="organization_super_admin")])
    assert outcome.decision is PlanDecision.CONTINUE
    assert outcome.apply(user).role == "organization_super_admin"
    assert outcome.active_org(user).role == "organization_super_admin"


def test_continue_outcome_keeps_role_when_membership_has_none():
    validator = PlanValidator(FakeApi())
    user = _user()
    outcome = validator.resolve(1, user, [Membership(organization_id=1, organization_name="Org 1", is_plan_active=True)])
    assert outcome.apply(user).role == "employee"
    assert outcome.active_org(user).role == "employee"
