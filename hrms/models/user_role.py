"""Role assignment model — one row per assignment event."""

import json
import uuid

from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, func
from hrms.db.base import Base


class UserRole(Base):
    """Role granted to a user.

    Rows are never deleted: a new assignment deactivates the previous row and
    appends a fresh active one, so the table doubles as the role history.
    """
    __tablename__ = "user_roles"
    __table_args__ = (
        Index("ix_user_roles_user_active", "user_id", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_name = Column(String(50), nullable=False, index=True)
    permissions_json = Column(Text, nullable=True)  # JSON list snapshot taken at assignment time
    assigned_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    assigned_at = Column(DateTime, server_default=func.now(), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    @property
    def permissions(self) -> list[str]:
        if not self.permissions_json:
            return []
        return list(json.loads(self.permissions_json))

    @permissions.setter
    def permissions(self, value) -> None:
        self.permissions_json = json.dumps(list(value or []))
