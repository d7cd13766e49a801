"""System service — first-run bootstrap and role distribution status."""

import logging
import secrets
import string
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from sqlalchemy.orm import Session

from hrms.core.config import settings
from hrms.core.exceptions import AuthorizationError, HRMSError, ResourceConflictError
from hrms.core.roles import TOP_ROLE
from hrms.services.auth_service import AuthService
from hrms.services.role_service import RoleService
from hrms.services.role_store import RoleStore

logger = logging.getLogger(__name__)

_PASSWORD_CLASSES = (
    string.ascii_uppercase,
    string.ascii_lowercase,
    string.digits,
    "!@#$%^&*",
)


def generate_secure_password(length: int = 16) -> str:
    """Random password with at least one character of each class."""
    alphabet = "".join(_PASSWORD_CLASSES)
    chars = [secrets.choice(group) for group in _PASSWORD_CLASSES]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


class SystemService:
    """Creates the first administrators and reports system readiness."""

    @staticmethod
    def needs_initialization(db: Session) -> bool:
        return not RoleStore(db).has_active_role(TOP_ROLE)

    @staticmethod
    def initialize_system(
        db: Session,
        email: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create the super admin account. Only allowed once.

        Raises:
            ResourceConflictError: If a super admin already exists.
        """
        if not SystemService.needs_initialization(db):
            raise ResourceConflictError("System already initialized with super admin")

        email = email or settings.SUPER_ADMIN_EMAIL
        password = password or settings.SUPER_ADMIN_PASSWORD or generate_secure_password()

        user = AuthService.create_user(
            db,
            email=email,
            password=password,
            full_name=settings.SUPER_ADMIN_NAME,
            employee_id="ADMIN001",
        )

        # Self-assigned: the top role needs no prior authority.
        result = RoleService(RoleStore(db)).assign_role(user.id, TOP_ROLE, user.id)
        if not result.success:
            raise HRMSError(f"Failed to assign super admin role: {result.message}")

        logger.warning("System initialized, super admin created: %s", email)
        return {
            "super_admin_created": True,
            "user_id": user.id,
            "email": user.email,
            "password": password,
        }

    @staticmethod
    def create_first_hr_admin(
        db: Session,
        email: str,
        full_name: str,
        password: str,
        created_by: str,
    ) -> Dict[str, Any]:
        """Create an HR admin account on behalf of the super admin."""
        roles = RoleService(RoleStore(db))
        creator_role = roles.get_active_role(created_by)
        if creator_role is None or creator_role.role_name != TOP_ROLE:
            raise AuthorizationError("Only super admin can create the first HR admin")

        user = AuthService.create_user(
            db,
            email=email,
            password=password,
            full_name=full_name,
            employee_id=f"HR{datetime.now(timezone.utc):%Y%m%d%H%M%S%f}",
            created_by=created_by,
        )
        result = roles.assign_role(user.id, "hr-admin", created_by)
        if not result.success:
            raise HRMSError(f"Failed to assign HR admin role: {result.message}")

        logger.info("HR admin %s created by %s", user.id, created_by)
        return {"user_id": user.id, "email": user.email, "role": result.role}

    @staticmethod
    def get_system_status(db: Session) -> Dict[str, Any]:
        distribution = RoleStore(db).count_active_by_role()
        needs_init = TOP_ROLE not in distribution
        return {
            "needs_initialization": needs_init,
            "total_users": sum(distribution.values()),
            "role_distribution": distribution,
            "system_ready": not needs_init,
        }


system_service = SystemService()
