"""Unit tests — access guards, evaluated through ``check()`` without HTTP."""

import pytest

from hrms.core import permissions as perms
from hrms.core.config import settings
from hrms.core.roles import TOP_ROLE
from hrms.core.permissions import (
    AccessDecision,
    AllPermissionsGuard,
    AnyPermissionGuard,
    MinimumRoleGuard,
    PermissionGuard,
    RequestContext,
    ResourcePermissionGuard,
    RoleAssignmentGuard,
)
from hrms.schemas.schemas import Principal
from hrms.services.role_service import RoleService

pytestmark = pytest.mark.unit


class RecordingService:
    """Grants a fixed permission set and records the order of checks."""

    def __init__(self, granted=(), role=None):
        self.granted = set(granted)
        self.role = role
        self.calls = []

    def validate_permission(self, user_id, permission):
        self.calls.append(permission)
        return permission in self.granted

    def validate_resource_access(self, user_id, resource, action, scope="own"):
        self.calls.append(f"{resource}.{action}")
        return f"{resource}.{action}" in self.granted

    def get_active_role(self, user_id):
        return self.role


class ExplodingService:
    def __getattr__(self, name):
        def _raise(*args, **kwargs):
            raise RuntimeError("role service down")
        return _raise


def principal_for(user, role=None) -> Principal:
    return Principal(id=user.id, email=user.email, role=role)


# ---- Authentication ----

def test_missing_principal_is_401(role_service):
    decision = PermissionGuard("profile.read").check(None, RequestContext(), role_service)
    assert decision.allowed is False
    assert decision.status_code == 401


def test_principal_without_id_is_401(role_service):
    decision = PermissionGuard("profile.read").check(
        Principal(id=""), RequestContext(), role_service
    )
    assert decision.status_code == 401


# ---- PermissionGuard ----

def test_permission_guard(role_service, make_user):
    employee = make_user(role="employee")
    guard = PermissionGuard("employee.delete")

    denied = guard.check(principal_for(employee), RequestContext(), role_service)
    assert denied.allowed is False
    assert denied.status_code == 403
    assert denied.reason == "Permission denied: employee.delete"

    allowed = PermissionGuard("profile.read").check(
        principal_for(employee), RequestContext(), role_service
    )
    assert allowed.allowed is True


def test_guard_failure_is_403():
    guard = PermissionGuard("profile.read")
    decision = guard.check(Principal(id="u1"), RequestContext(), ExplodingService())
    assert decision.allowed is False
    assert decision.status_code == 403
    assert decision.reason == "Permission validation failed"


# ---- Super-admin token fast path ----

def test_super_admin_token_skips_store(make_user):
    user = make_user()
    guard = PermissionGuard("payroll.manage", trust_token_super_admin=True)
    decision = guard.check(principal_for(user, TOP_ROLE), RequestContext(), ExplodingService())
    assert decision.allowed is True


def test_super_admin_token_distrusted(role_service, make_user):
    user = make_user(role="employee")
    guard = PermissionGuard("payroll.manage", trust_token_super_admin=False)
    decision = guard.check(principal_for(user, TOP_ROLE), RequestContext(), role_service)
    assert decision.allowed is False


def test_fast_path_follows_settings(role_service, make_user, monkeypatch):
    user = make_user(role="employee")
    guard = PermissionGuard("payroll.manage")

    monkeypatch.setattr(settings, "TRUST_TOKEN_SUPER_ADMIN", False)
    assert guard.check(principal_for(user, TOP_ROLE), RequestContext(), role_service).allowed is False

    monkeypatch.setattr(settings, "TRUST_TOKEN_SUPER_ADMIN", True)
    assert guard.check(principal_for(user, TOP_ROLE), RequestContext(), role_service).allowed is True


def test_persisted_super_admin_without_token_claim(role_service, make_user):
    admin = make_user(role=TOP_ROLE)
    guard = PermissionGuard("payroll.manage", trust_token_super_admin=False)
    assert guard.check(principal_for(admin), RequestContext(), role_service).allowed is True


# ---- Any / All ----

def test_any_permission_stops_at_first_grant():
    service = RecordingService(granted={"b"})
    decision = AnyPermissionGuard(["a", "b", "c"]).check(
        Principal(id="u1"), RequestContext(), service
    )
    assert decision.allowed is True
    assert service.calls == ["a", "b"]


def test_any_permission_denies_when_none_held():
    service = RecordingService()
    decision = AnyPermissionGuard(["a", "b"]).check(Principal(id="u1"), RequestContext(), service)
    assert decision.allowed is False
    assert decision.reason == "Insufficient permissions"


def test_all_permissions_names_first_missing():
    service = RecordingService(granted={"a"})
    decision = AllPermissionsGuard(["a", "b", "c"]).check(
        Principal(id="u1"), RequestContext(), service
    )
    assert decision.allowed is False
    assert decision.reason == "Permission denied: b"
    assert service.calls == ["a", "b"]


def test_all_permissions_granted():
    service = RecordingService(granted={"a", "b"})
    decision = AllPermissionsGuard(["a", "b"]).check(Principal(id="u1"), RequestContext(), service)
    assert decision.allowed is True


# ---- Resource guard ----

def test_self_access_bypass_by_path_id(role_service, make_user):
    employee = make_user(role="employee")
    guard = ResourcePermissionGuard("employee", "read", allow_self=True)

    own = RequestContext(path_params={"id": employee.id})
    other = RequestContext(path_params={"id": "someone-else"})

    assert guard.check(principal_for(employee), own, role_service).allowed is True
    assert guard.check(principal_for(employee), other, role_service).allowed is False


def test_self_access_requires_opt_in(role_service, make_user):
    employee = make_user(role="employee")
    guard = ResourcePermissionGuard("employee", "read")
    context = RequestContext(path_params={"user_id": employee.id})
    assert guard.check(principal_for(employee), context, role_service).allowed is False


def test_resource_guard_grants_by_permission(role_service, make_user):
    manager = make_user(role="manager")
    guard = ResourcePermissionGuard("employee", "read")
    context = RequestContext(path_params={"user_id": "someone-else"})
    assert guard.check(principal_for(manager), context, role_service).allowed is True


def test_resource_guard_any_versus_all():
    service = RecordingService(granted={"employee.read"})
    any_guard = ResourcePermissionGuard("employee", ["read", "update"])
    all_guard = ResourcePermissionGuard("employee", ["read", "update"], require_all=True)

    assert any_guard.check(Principal(id="u1"), RequestContext(), service).allowed is True
    denied = all_guard.check(Principal(id="u1"), RequestContext(), service)
    assert denied.allowed is False
    assert denied.reason == "Access denied to employee.read/update"


def test_resource_guard_needs_an_action():
    with pytest.raises(ValueError):
        ResourcePermissionGuard("employee", [])


# ---- Minimum role ----

def test_minimum_role_levels(role_service, make_user):
    guard = MinimumRoleGuard("manager")
    for role, expected in [
        ("employee", False),
        ("hr-staff", False),
        ("manager", True),
        ("hr-admin", True),
        (TOP_ROLE, True),
    ]:
        user = make_user(role=role)
        decision = guard.check(principal_for(user), RequestContext(), role_service)
        assert decision.allowed is expected, role


def test_minimum_role_prefers_persisted_role(role_service, make_user):
    employee = make_user(role="employee")
    guard = MinimumRoleGuard("hr-admin")
    decision = guard.check(principal_for(employee, "hr-admin"), RequestContext(), role_service)
    assert decision.allowed is False
    assert decision.reason == "Minimum role required: hr-admin"


def test_minimum_role_falls_back_to_token(role_service, make_user):
    user = make_user()
    guard = MinimumRoleGuard("manager")
    assert guard.check(principal_for(user, "hr-admin"), RequestContext(), role_service).allowed
    decision = guard.check(principal_for(user), RequestContext(), role_service)
    assert decision.allowed is False
    assert decision.reason == "No active role found"


def test_minimum_role_failure_reason():
    guard = MinimumRoleGuard("manager")
    decision = guard.check(Principal(id="u1"), RequestContext(), ExplodingService())
    assert decision.allowed is False
    assert decision.reason == "Role validation failed"


def test_unknown_minimum_role_rejected():
    with pytest.raises(ValueError):
        MinimumRoleGuard("janitor")


# ---- Role assignment guard ----

def test_assignment_guard_reads_body(role_service, make_user):
    hr_admin = make_user(role="hr-admin")
    guard = RoleAssignmentGuard()

    ok = RequestContext(body={"role_name": "manager"})
    too_high = RequestContext(body={"roleName": "hr-admin"})
    assert guard.check(principal_for(hr_admin), ok, role_service).allowed is True
    assert guard.check(principal_for(hr_admin), too_high, role_service).reason == (
        "Cannot assign role: hr-admin"
    )


def test_assignment_guard_without_target(role_service, make_user):
    hr_admin = make_user(role="hr-admin")
    decision = RoleAssignmentGuard().check(principal_for(hr_admin), RequestContext(), role_service)
    assert decision.allowed is False
    assert decision.reason == "Target role not specified"


def test_assignment_guard_fixed_target(role_service, make_user):
    manager = make_user(role="manager")
    decision = RoleAssignmentGuard("employee").check(
        principal_for(manager), RequestContext(), role_service
    )
    assert decision.allowed is False


# ---- RequestContext ----

def test_target_user_lookup_order():
    context = RequestContext(
        path_params={"id": "from-id"},
        body={"user_id": "from-body"},
        query={"userId": "from-query"},
    )
    assert context.target_user_id() == "from-id"

    context = RequestContext(
        path_params={"userId": "from-path", "id": "from-id"},
        body={"user_id": "from-body"},
    )
    assert context.target_user_id() == "from-path"

    assert RequestContext(body={"userId": "b"}, query={"userId": "q"}).target_user_id() == "b"
    assert RequestContext(query={"user_id": "q"}).target_user_id() == "q"
    assert RequestContext(body={"user_id": ""}).target_user_id() is None


def test_decision_helpers():
    assert AccessDecision.allow().allowed is True
    denied = AccessDecision.deny("nope", 401)
    assert (denied.allowed, denied.reason, denied.status_code) == (False, "nope", 401)


# ---- Programmatic helpers ----

def test_programmatic_helpers(role_service, make_user):
    manager = make_user(role="manager")
    assert perms.check_permission(role_service, manager.id, "employee.read") is True
    assert perms.check_resource_access(role_service, manager.id, "employee", "delete") is False
    assert perms.get_user_role(role_service, manager.id).role_name == "manager"


def test_programmatic_helpers_fail_closed():
    service = RoleService(None)
    assert perms.check_permission(service, "u1", "employee.read") is False
    assert perms.get_user_role(service, "u1") is None
