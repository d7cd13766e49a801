"""Role service — authorization decisions and role assignment.

Every public method fails closed: checks answer ``False``, lookups answer
``None`` or ``[]`` and mutations answer a ``RoleAssignmentResult`` with
``success=False``. Nothing escapes to the caller as an exception.
"""

import logging
from typing import Dict, Iterable, List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from hrms.core.roles import (
    ASSIGN_PERMISSION,
    DEFAULT_ROLE,
    MANAGE_PERMISSION,
    TOP_ROLE,
    WILDCARD,
    all_role_names,
    is_known_role,
    level_of,
    permissions_of,
    role_hierarchy,
)
from hrms.db.session import get_db
from hrms.schemas.schemas import RoleAssignmentOut, RoleAssignmentResult
from hrms.services.role_store import RoleStore

logger = logging.getLogger(__name__)


class RoleService:
    """Authorization engine backed by a role store and the static catalog."""

    def __init__(self, store: RoleStore):
        self.store = store

    # ---- Catalog reads ----

    @staticmethod
    def get_role_hierarchy() -> Dict[str, dict]:
        return role_hierarchy()

    @staticmethod
    def get_available_roles() -> List[str]:
        return all_role_names()

    @staticmethod
    def get_role_permissions(role_name: str) -> List[str]:
        return sorted(permissions_of(role_name))

    @staticmethod
    def get_role_level(role_name: Optional[str]) -> int:
        return level_of(role_name)

    # ---- Store reads ----

    def get_active_role(self, user_id: str) -> Optional[RoleAssignmentOut]:
        try:
            return self.store.get_active_role(user_id)
        except Exception:
            logger.exception("Active role lookup raised for user %s", user_id)
            return None

    def get_user_roles(self, user_id: str) -> List[RoleAssignmentOut]:
        try:
            return self.store.list_roles(user_id)
        except Exception:
            logger.exception("Role listing raised for user %s", user_id)
            return []

    # ---- Checks ----

    def validate_permission(self, user_id: str, permission: str) -> bool:
        """True when the user's active role grants ``permission`` or ``*``."""
        try:
            role = self.get_active_role(user_id)
            if role is None:
                return False
            if WILDCARD in role.permissions:
                return True
            return permission in role.permissions
        except Exception:
            logger.exception("Permission check failed for user %s", user_id)
            return False

    def validate_resource_access(
        self, user_id: str, resource: str, action: str, scope: str = "own"
    ) -> bool:
        """Accept either ``resource.action`` or ``resource.action.scope``."""
        try:
            role = self.get_active_role(user_id)
            if role is None:
                return False
            if WILDCARD in role.permissions:
                return True
            permission = f"{resource}.{action}"
            scoped_permission = f"{permission}.{scope}"
            return permission in role.permissions or scoped_permission in role.permissions
        except Exception:
            logger.exception("Resource check failed for user %s", user_id)
            return False

    def can_assign_role(self, assigner_id: Optional[str], target_role: str) -> bool:
        """Whether ``assigner_id`` may grant ``target_role``.

        The top role is always assignable so that the first administrator can
        be created; callers exposing assignment publicly must guard it.
        A role can only grant roles strictly below its own level.
        """
        try:
            if target_role == TOP_ROLE:
                return True
            if not assigner_id:
                return False

            assigner_role = self.get_active_role(assigner_id)
            if assigner_role is None:
                return False
            if WILDCARD in assigner_role.permissions:
                return True
            if ASSIGN_PERMISSION not in assigner_role.permissions:
                return False

            assigner_level = level_of(assigner_role.role_name)
            target_level = level_of(target_role)
            if assigner_level == 0 or target_level == 0:
                return False
            return assigner_level > target_level
        except Exception:
            logger.exception("Assignment check failed for assigner %s", assigner_id)
            return False

    # ---- Mutations ----

    def assign_role(
        self, user_id: str, role_name: str, assigned_by: Optional[str]
    ) -> RoleAssignmentResult:
        """Replace the user's active role with ``role_name``."""
        if not is_known_role(role_name):
            return RoleAssignmentResult(success=False, message="Invalid role name")

        if not self.can_assign_role(assigned_by, role_name):
            logger.info(
                "Role assignment denied: %s -> %s by %s", user_id, role_name, assigned_by
            )
            return RoleAssignmentResult(
                success=False,
                message="Insufficient permissions to assign this role",
            )

        try:
            role = self.store.replace_active(
                user_id,
                role_name,
                sorted(permissions_of(role_name)),
                assigned_by=assigned_by,
            )
        except Exception:
            logger.exception("Failed to assign role %s to user %s", role_name, user_id)
            return RoleAssignmentResult(success=False, message="Failed to assign role")

        logger.info("Assigned role %s to user %s (by %s)", role_name, user_id, assigned_by)
        return RoleAssignmentResult(
            success=True,
            message=f"Role {role_name} assigned successfully",
            role=role,
        )

    def assign_default_role(self, user_id: str) -> RoleAssignmentResult:
        """Give a user the default role unless one is already active."""
        try:
            existing = self.get_active_role(user_id)
            if existing is not None:
                return RoleAssignmentResult(
                    success=True,
                    message="User already has an active role",
                    role=existing,
                )

            role = self.store.insert_assignment(
                user_id, DEFAULT_ROLE, sorted(permissions_of(DEFAULT_ROLE))
            )
        except Exception:
            logger.exception("Failed to assign default role to user %s", user_id)
            return RoleAssignmentResult(success=False, message="Failed to assign default role")

        return RoleAssignmentResult(
            success=True,
            message="Default employee role assigned successfully",
            role=role,
        )

    def deactivate_role(self, user_id: str, deactivated_by: str) -> RoleAssignmentResult:
        if not self.validate_permission(deactivated_by, MANAGE_PERMISSION):
            return RoleAssignmentResult(
                success=False,
                message="Insufficient permissions to deactivate role",
            )

        try:
            self.store.deactivate(user_id)
        except Exception:
            logger.exception("Failed to deactivate role of user %s", user_id)
            return RoleAssignmentResult(success=False, message="Failed to deactivate role")

        logger.info("Deactivated role of user %s (by %s)", user_id, deactivated_by)
        return RoleAssignmentResult(success=True, message="User role deactivated successfully")

    def update_user_permissions(
        self, user_id: str, permissions: Iterable[str], updated_by: str
    ) -> RoleAssignmentResult:
        """Override the permission snapshot of the user's active assignment."""
        if not self.validate_permission(updated_by, MANAGE_PERMISSION):
            return RoleAssignmentResult(
                success=False,
                message="Insufficient permissions to update user permissions",
            )

        try:
            role = self.store.update_permissions(user_id, list(permissions))
        except Exception:
            logger.exception("Failed to update permissions of user %s", user_id)
            return RoleAssignmentResult(
                success=False, message="Failed to update user permissions"
            )

        if role is None:
            return RoleAssignmentResult(success=False, message="User has no active role")

        return RoleAssignmentResult(
            success=True,
            message="User permissions updated successfully",
            role=role,
        )


def get_role_service(db: Session = Depends(get_db)) -> RoleService:
    """FastAPI dependency building a role service on the request session."""
    return RoleService(RoleStore(db))
