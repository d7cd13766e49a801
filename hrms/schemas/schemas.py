"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import date, datetime

from hrms.models.task import TaskPriority, TaskStatus


# ---- Auth ----
class LoginRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=4)

class TokenResponse(BaseModel):
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    user: Optional[Dict[str, Any]] = None

class RefreshRequest(BaseModel):
    refresh_token: str

class RegisterRequest(BaseModel):
    email: str = Field(..., min_length=4)
    password: str = Field(..., min_length=8)
    full_name: str = Field(..., min_length=2, max_length=100)


class Principal(BaseModel):
    """Authenticated caller, built from a verified access token."""
    id: str
    email: str = ""
    role: Optional[str] = None


# ---- User ----
class UserOut(BaseModel):
    id: str
    email: str
    full_name: str
    employee_id: Optional[str] = None
    role: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserUpdateRequest(BaseModel):
    full_name: Optional[str] = Field(None, min_length=2, max_length=100)
    employee_id: Optional[str] = None
    is_active: Optional[bool] = None


# ---- Roles ----
class RoleAssignmentOut(BaseModel):
    """A role assignment with its effective permission set."""
    id: str
    user_id: str
    role_name: str
    permissions: List[str] = []
    assigned_by: Optional[str] = None
    assigned_at: Optional[datetime] = None
    is_active: bool = True

    class Config:
        from_attributes = True

class RoleAssignmentResult(BaseModel):
    """Outcome of a role mutation. Failures are values, never exceptions."""
    success: bool
    message: str
    role: Optional[RoleAssignmentOut] = None

class AssignRoleRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    role_name: str = Field(..., min_length=1)

class UpdatePermissionsRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    permissions: List[str]

class PermissionCheckOut(BaseModel):
    permission: str
    has_permission: bool


# ---- System ----
class SystemStatusOut(BaseModel):
    needs_initialization: bool
    total_users: int
    role_distribution: Dict[str, int]
    system_ready: bool

class SystemInitOut(BaseModel):
    super_admin_created: bool
    email: str
    password: str

class CreateHrAdminRequest(BaseModel):
    email: str = Field(..., min_length=4)
    full_name: str = Field(..., min_length=2, max_length=100)
    password: str = Field(..., min_length=8)


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[str] = None
    actor_email: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    old_value_json: Optional[str] = None
    new_value_json: Optional[str] = None
    request_id: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Tasks ----
class TaskCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    assigned_to: Optional[str] = None
    priority: TaskPriority = TaskPriority.medium
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(None, ge=0, le=1000)

class TaskUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    assigned_to: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(None, ge=0, le=1000)
    actual_hours: Optional[float] = Field(None, ge=0)

class TaskAssignRequest(BaseModel):
    assigned_to: str = Field(..., min_length=1)

class TaskStatusRequest(BaseModel):
    status: TaskStatus

class TaskCommentRequest(BaseModel):
    comment: str = Field(..., min_length=1, max_length=2000)

class TaskCommentOut(BaseModel):
    id: str
    task_id: str
    user_id: str
    comment: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class TaskOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    assigned_to: Optional[str] = None
    assigned_by: Optional[str] = None
    created_by: str
    updated_by: Optional[str] = None
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    completed_date: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    actual_hours: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class TaskStatisticsOut(BaseModel):
    total: int
    by_status: Dict[str, int]
    by_priority: Dict[str, int]
    overdue: int
    due_today: int


# ---- Common ----
class MessageResponse(BaseModel):
    message: str
    success: bool = True
