"""Static role catalog.

Roles are plain data: a name, a numeric authority level and a permission
set. Assignment authority is decided by comparing levels, so a role can be
inserted anywhere in the hierarchy by picking a level.

Permission strings are ``<resource>.<action>`` with an optional
``.<scope>`` suffix. ``*`` grants everything and is held only by the top role.
"""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

WILDCARD = "*"

TOP_ROLE = "super-admin"
DEFAULT_ROLE = "employee"

# Permissions checked by the role service itself
ASSIGN_PERMISSION = "roles.assign"
MANAGE_PERMISSION = "roles.manage"


@dataclass(frozen=True)
class RoleDefinition:
    """One row of the role catalog."""
    name: str
    level: int
    permissions: FrozenSet[str]
    description: str = ""

    @property
    def is_wildcard(self) -> bool:
        return WILDCARD in self.permissions

    def as_dict(self) -> dict:
        return {
            "level": self.level,
            "permissions": sorted(self.permissions),
            "description": self.description,
        }


_ROLES_DATA = [
    {
        "name": "super-admin",
        "level": 5,
        "description": "System administrator with full access",
        "permissions": [WILDCARD],
    },
    {
        "name": "hr-admin",
        "level": 4,
        "description": "HR administrator with full HR management access",
        "permissions": [
            "employee.create", "employee.read", "employee.update", "employee.delete",
            "recruitment.manage", "payroll.manage", "reports.generate",
            ASSIGN_PERMISSION, MANAGE_PERMISSION,
        ],
    },
    {
        "name": "manager",
        "level": 3,
        "description": "Department/team manager",
        "permissions": [
            "employee.read", "team.manage", "performance.manage",
            "leave.approve", "time.review", "tasks.create",
            "tasks.assign", "checkin.review",
        ],
    },
    {
        "name": "hr-staff",
        "level": 2,
        "description": "HR staff member",
        "permissions": [
            "employee.read", "recruitment.read", "recruitment.update",
            "onboarding.manage", "documents.manage",
        ],
    },
    {
        "name": "employee",
        "level": 1,
        "description": "Regular employee",
        "permissions": [
            "profile.read", "profile.update", "leave.request",
            "time.log", "documents.view", "checkin.create",
            "tasks.read", "tasks.update",
        ],
    },
]

ROLE_CATALOG: Dict[str, RoleDefinition] = {
    data["name"]: RoleDefinition(
        name=data["name"],
        level=data["level"],
        permissions=frozenset(data["permissions"]),
        description=data["description"],
    )
    for data in _ROLES_DATA
}


def get_role(role_name: Optional[str]) -> Optional[RoleDefinition]:
    if not role_name:
        return None
    return ROLE_CATALOG.get(role_name)


def is_known_role(role_name: Optional[str]) -> bool:
    return get_role(role_name) is not None


def level_of(role_name: Optional[str]) -> int:
    """Authority level of a role, 0 for unknown names."""
    role = get_role(role_name)
    return role.level if role else 0


def permissions_of(role_name: Optional[str]) -> FrozenSet[str]:
    """Permission set of a role, empty for unknown names."""
    role = get_role(role_name)
    return role.permissions if role else frozenset()


def all_role_names() -> List[str]:
    """Catalog order, which says nothing about authority."""
    return list(ROLE_CATALOG)


def role_hierarchy() -> Dict[str, dict]:
    return {name: role.as_dict() for name, role in ROLE_CATALOG.items()}
