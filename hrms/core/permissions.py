"""Access guards for FastAPI routes.

Each guard is a callable class usable with ``Depends``. The decision itself
lives in ``check()``, which takes the principal, a snapshot of the request
and a ``RoleService`` and returns an ``AccessDecision``; ``__call__`` only
gathers those inputs and turns a denial into a 401/403.

Usage:
    @router.get("/users/{user_id}")
    async def get_user(
        user_id: str,
        principal: Principal = Depends(
            require_resource_permission("employee", "read", allow_self=True)
        ),
    ): ...

Guards fail closed: an exception raised while consulting the role service
becomes a 403, never a 500.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from fastapi import Depends, HTTPException, Request, status

from hrms.core.config import settings
from hrms.core.roles import TOP_ROLE, is_known_role, level_of
from hrms.core.security import get_current_principal
from hrms.schemas.schemas import Principal, RoleAssignmentOut
from hrms.services.role_service import RoleService, get_role_service

logger = logging.getLogger(__name__)

# Where the subject of a request is looked up for self-access, in order.
SELF_ACCESS_LOOKUP = (
    ("path_params", ("userId", "user_id")),
    ("path_params", ("id",)),
    ("body", ("userId", "user_id")),
    ("query", ("userId", "user_id")),
)


@dataclass
class AccessDecision:
    allowed: bool
    reason: str = ""
    status_code: int = status.HTTP_200_OK

    @classmethod
    def allow(cls, reason: str = "") -> "AccessDecision":
        return cls(True, reason, status.HTTP_200_OK)

    @classmethod
    def deny(cls, reason: str, status_code: int = status.HTTP_403_FORBIDDEN) -> "AccessDecision":
        return cls(False, reason, status_code)


@dataclass
class RequestContext:
    """The parts of a request guards may inspect."""
    path_params: Mapping[str, Any] = field(default_factory=dict)
    body: Mapping[str, Any] = field(default_factory=dict)
    query: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    async def from_request(cls, request: Request) -> "RequestContext":
        body: Mapping[str, Any] = {}
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            try:
                data = await request.json()
            except ValueError:
                data = None
            if isinstance(data, dict):
                body = data
        return cls(
            path_params=dict(request.path_params),
            body=body,
            query=dict(request.query_params),
        )

    def first_value(self, source: str, keys: Iterable[str]) -> Optional[str]:
        values = getattr(self, source)
        for key in keys:
            value = values.get(key)
            if value not in (None, ""):
                return str(value)
        return None

    def target_user_id(self) -> Optional[str]:
        """Subject of the request, taken from the first location that has one."""
        for source, keys in SELF_ACCESS_LOOKUP:
            value = self.first_value(source, keys)
            if value is not None:
                return value
        return None


class AccessGuard:
    """Base guard: authentication, super-admin fast path, fail-closed wrapper."""

    failure_reason = "Permission validation failed"

    def __init__(self, trust_token_super_admin: Optional[bool] = None):
        self._trust_token_super_admin = trust_token_super_admin

    @property
    def trust_token_super_admin(self) -> bool:
        if self._trust_token_super_admin is None:
            return settings.TRUST_TOKEN_SUPER_ADMIN
        return self._trust_token_super_admin

    def check(
        self,
        principal: Optional[Principal],
        context: RequestContext,
        service: RoleService,
    ) -> AccessDecision:
        if principal is None or not principal.id:
            return AccessDecision.deny("Authentication required", status.HTTP_401_UNAUTHORIZED)
        # Token claim only, the role store is not consulted.
        if self.trust_token_super_admin and principal.role == TOP_ROLE:
            return AccessDecision.allow("super-admin token")
        try:
            return self.evaluate(principal, context, service)
        except Exception:
            logger.exception("%s raised for user %s", type(self).__name__, principal.id)
            return AccessDecision.deny(self.failure_reason)

    def evaluate(
        self, principal: Principal, context: RequestContext, service: RoleService
    ) -> AccessDecision:
        raise NotImplementedError

    async def __call__(
        self,
        request: Request,
        principal: Principal = Depends(get_current_principal),
        service: RoleService = Depends(get_role_service),
    ) -> Principal:
        context = await RequestContext.from_request(request)
        decision = self.check(principal, context, service)
        if not decision.allowed:
            logger.info(
                "Access denied | user=%s path=%s reason=%s",
                principal.id, request.url.path, decision.reason,
            )
            headers = None
            if decision.status_code == status.HTTP_401_UNAUTHORIZED:
                headers = {"WWW-Authenticate": "Bearer"}
            raise HTTPException(
                status_code=decision.status_code,
                detail=decision.reason,
                headers=headers,
            )
        return principal


class PermissionGuard(AccessGuard):
    def __init__(self, permission: str, **kwargs):
        super().__init__(**kwargs)
        self.permission = permission

    def evaluate(self, principal, context, service) -> AccessDecision:
        if service.validate_permission(principal.id, self.permission):
            return AccessDecision.allow()
        return AccessDecision.deny(f"Permission denied: {self.permission}")


class AnyPermissionGuard(AccessGuard):
    """Allows on the first permission held, in the order given."""

    def __init__(self, permissions: Sequence[str], **kwargs):
        super().__init__(**kwargs)
        self.permissions = list(permissions)

    def evaluate(self, principal, context, service) -> AccessDecision:
        for permission in self.permissions:
            if service.validate_permission(principal.id, permission):
                return AccessDecision.allow()
        return AccessDecision.deny("Insufficient permissions")


class AllPermissionsGuard(AccessGuard):
    """Denies on the first permission missing, naming it."""

    def __init__(self, permissions: Sequence[str], **kwargs):
        super().__init__(**kwargs)
        self.permissions = list(permissions)

    def evaluate(self, principal, context, service) -> AccessDecision:
        for permission in self.permissions:
            if not service.validate_permission(principal.id, permission):
                return AccessDecision.deny(f"Permission denied: {permission}")
        return AccessDecision.allow()


class ResourcePermissionGuard(AccessGuard):
    """``resource.action[.scope]`` check with an optional self-access bypass.

    ``action`` may be a list; ``require_all`` then decides whether every
    action or any single one must be granted.
    """

    def __init__(
        self,
        resource: str,
        action: Union[str, Sequence[str]],
        scope: str = "any",
        allow_self: bool = False,
        require_all: bool = False,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.resource = resource
        self.actions: List[str] = [action] if isinstance(action, str) else list(action)
        if not self.actions:
            raise ValueError("ResourcePermissionGuard needs at least one action")
        self.scope = scope
        self.allow_self = allow_self
        self.require_all = require_all

    def evaluate(self, principal, context, service) -> AccessDecision:
        if self.allow_self and context.target_user_id() == principal.id:
            return AccessDecision.allow("self access")

        granted = (
            service.validate_resource_access(principal.id, self.resource, action, self.scope)
            for action in self.actions
        )
        allowed = all(granted) if self.require_all else any(granted)
        if allowed:
            return AccessDecision.allow()
        return AccessDecision.deny(
            f"Access denied to {self.resource}.{'/'.join(self.actions)}"
        )


class MinimumRoleGuard(AccessGuard):
    """Role level check against the persisted role, token claim as fallback."""

    failure_reason = "Role validation failed"

    def __init__(self, minimum_role: str, **kwargs):
        super().__init__(**kwargs)
        if not is_known_role(minimum_role):
            raise ValueError(f"Invalid minimum_role={minimum_role!r}")
        self.minimum_role = minimum_role

    def evaluate(self, principal, context, service) -> AccessDecision:
        active_role = service.get_active_role(principal.id)
        role_name = active_role.role_name if active_role else principal.role
        if not role_name:
            return AccessDecision.deny("No active role found")
        if role_name == TOP_ROLE:
            return AccessDecision.allow()
        if level_of(role_name) < level_of(self.minimum_role):
            return AccessDecision.deny(f"Minimum role required: {self.minimum_role}")
        return AccessDecision.allow()


class RoleAssignmentGuard(AccessGuard):
    """Allows when the caller may grant the target role."""

    failure_reason = "Role assignment validation failed"

    def __init__(self, target_role: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.target_role = target_role

    def evaluate(self, principal, context, service) -> AccessDecision:
        role_name = (
            self.target_role
            or context.first_value("body", ("roleName", "role_name"))
            or context.first_value("path_params", ("roleName", "role_name"))
        )
        if not role_name:
            return AccessDecision.deny("Target role not specified")
        if service.can_assign_role(principal.id, role_name):
            return AccessDecision.allow()
        return AccessDecision.deny(f"Cannot assign role: {role_name}")


# ---- Factories ----

def require_permission(permission: str) -> PermissionGuard:
    return PermissionGuard(permission)


def require_any_permission(permissions: Sequence[str]) -> AnyPermissionGuard:
    return AnyPermissionGuard(permissions)


def require_all_permissions(permissions: Sequence[str]) -> AllPermissionsGuard:
    return AllPermissionsGuard(permissions)


def require_resource_permission(
    resource: str,
    action: Union[str, Sequence[str]],
    scope: str = "any",
    allow_self: bool = False,
    require_all: bool = False,
) -> ResourcePermissionGuard:
    return ResourcePermissionGuard(
        resource, action, scope=scope, allow_self=allow_self, require_all=require_all
    )


def require_minimum_role(minimum_role: str) -> MinimumRoleGuard:
    return MinimumRoleGuard(minimum_role)


def require_role_assignment_permission(target_role: Optional[str] = None) -> RoleAssignmentGuard:
    return RoleAssignmentGuard(target_role)


# ---- Programmatic checks ----

def check_permission(service: RoleService, user_id: str, permission: str) -> bool:
    try:
        return service.validate_permission(user_id, permission)
    except Exception:
        logger.exception("Permission check raised for user %s", user_id)
        return False


def check_resource_access(
    service: RoleService, user_id: str, resource: str, action: str, scope: str = "any"
) -> bool:
    try:
        return service.validate_resource_access(user_id, resource, action, scope)
    except Exception:
        logger.exception("Resource check raised for user %s", user_id)
        return False


def get_user_role(service: RoleService, user_id: str) -> Optional[RoleAssignmentOut]:
    try:
        return service.get_active_role(user_id)
    except Exception:
        logger.exception("Role lookup raised for user %s", user_id)
        return None


# Convenience dependency instances
require_employee = require_minimum_role("employee")
require_hr_staff = require_minimum_role("hr-staff")
require_manager = require_minimum_role("manager")
require_hr_admin = require_minimum_role("hr-admin")
require_super_admin = require_minimum_role("super-admin")

can_read_employees = require_permission("employee.read")
can_create_employees = require_permission("employee.create")
can_update_employees = require_permission("employee.update")
can_delete_employees = require_permission("employee.delete")
can_manage_roles = require_permission("roles.manage")
can_assign_roles = require_permission("roles.assign")
