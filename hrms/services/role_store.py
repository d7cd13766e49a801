"""Role store — persistence adapter for per-user role assignments.

Reads fail closed: when an active role cannot be proven (no row, several
rows, a database error) the store answers ``None``. Writes raise, and the
role service turns those failures into result values.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrms.core.roles import permissions_of
from hrms.models.user_role import UserRole
from hrms.schemas.schemas import RoleAssignmentOut

logger = logging.getLogger(__name__)


class RoleStore:
    """Reads and appends ``user_roles`` rows for a single DB session."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def to_record(row: UserRole) -> RoleAssignmentOut:
        """Convert a row, resolving an empty snapshot to the catalog's current set."""
        stored = row.permissions
        permissions = stored if stored else sorted(permissions_of(row.role_name))
        return RoleAssignmentOut(
            id=row.id,
            user_id=row.user_id,
            role_name=row.role_name,
            permissions=permissions,
            assigned_by=row.assigned_by,
            assigned_at=row.assigned_at,
            is_active=row.is_active,
        )

    def _active_query(self, user_id: str):
        return self.db.query(UserRole).filter(
            UserRole.user_id == user_id,
            UserRole.is_active.is_(True),
        )

    def _rollback(self) -> None:
        try:
            self.db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed")

    # ---- Reads ----

    def get_active_role(self, user_id: str) -> Optional[RoleAssignmentOut]:
        """Return the user's single active assignment, or None."""
        try:
            row = self._active_query(user_id).one_or_none()
            if row is None:
                return None
            return self.to_record(row)
        except (SQLAlchemyError, ValueError) as e:
            logger.warning("Active role lookup failed for user %s: %s", user_id, e)
            self._rollback()
            return None

    def list_roles(self, user_id: str) -> List[RoleAssignmentOut]:
        """Every assignment of the user, history included."""
        try:
            rows = (
                self.db.query(UserRole)
                .filter(UserRole.user_id == user_id)
                .order_by(UserRole.assigned_at.asc())
                .all()
            )
            return [self.to_record(r) for r in rows]
        except (SQLAlchemyError, ValueError) as e:
            logger.warning("Role listing failed for user %s: %s", user_id, e)
            self._rollback()
            return []

    def count_active_by_role(self) -> Dict[str, int]:
        rows = (
            self.db.query(UserRole.role_name, func.count(UserRole.id))
            .filter(UserRole.is_active.is_(True))
            .group_by(UserRole.role_name)
            .all()
        )
        return {name: count for name, count in rows}

    def has_active_role(self, role_name: str) -> bool:
        return (
            self.db.query(UserRole.id)
            .filter(UserRole.role_name == role_name, UserRole.is_active.is_(True))
            .first()
            is not None
        )

    # ---- Writes ----

    def insert_assignment(
        self,
        user_id: str,
        role_name: str,
        permissions: Iterable[str],
        assigned_by: Optional[str] = None,
        commit: bool = True,
    ) -> RoleAssignmentOut:
        """Append a new active assignment row."""
        row = UserRole(
            user_id=user_id,
            role_name=role_name,
            assigned_by=assigned_by,
            is_active=True,
        )
        row.permissions = permissions
        try:
            self.db.add(row)
            if commit:
                self.db.commit()
                self.db.refresh(row)
            else:
                self.db.flush()
        except SQLAlchemyError:
            self._rollback()
            raise
        return self.to_record(row)

    def deactivate(self, user_id: str, commit: bool = True) -> int:
        """Flip every active row of the user to inactive. Returns the row count."""
        try:
            count = self._active_query(user_id).update(
                {UserRole.is_active: False}, synchronize_session="fetch"
            )
            if commit:
                self.db.commit()
        except SQLAlchemyError:
            self._rollback()
            raise
        return count

    def replace_active(
        self,
        user_id: str,
        role_name: str,
        permissions: Iterable[str],
        assigned_by: Optional[str] = None,
    ) -> RoleAssignmentOut:
        """Deactivate the current role and append the new one in one transaction."""
        self.deactivate(user_id, commit=False)
        return self.insert_assignment(
            user_id, role_name, permissions, assigned_by=assigned_by, commit=True
        )

    def update_permissions(
        self, user_id: str, permissions: Iterable[str]
    ) -> Optional[RoleAssignmentOut]:
        """Overwrite the snapshot on the active row in place."""
        try:
            row = self._active_query(user_id).one_or_none()
            if row is None:
                return None
            row.permissions = permissions
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError:
            self._rollback()
            raise
        return self.to_record(row)
