"""Models package — import all models so metadata.create_all can discover them."""

from hrms.models.user import User
from hrms.models.user_role import UserRole
from hrms.models.audit_log import AuditLog
from hrms.models.task import Task, TaskComment

__all__ = ["User", "UserRole", "AuditLog", "Task", "TaskComment"]
