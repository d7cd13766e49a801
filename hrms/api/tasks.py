"""Tasks API router — managers hand out work, assignees report progress."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from hrms.core.exceptions import AuthorizationError
from hrms.core.permissions import (
    require_any_permission, require_permission, require_resource_permission,
)
from hrms.db.session import get_db
from hrms.models.task import TaskPriority, TaskStatus
from hrms.schemas.schemas import (
    MessageResponse, Principal, TaskAssignRequest, TaskCommentOut, TaskCommentRequest,
    TaskCreateRequest, TaskOut, TaskStatisticsOut, TaskStatusRequest, TaskUpdateRequest,
)
from hrms.services.audit_service import audit_service
from hrms.services.role_service import RoleService, get_role_service
from hrms.services.task_service import task_service

router = APIRouter(prefix="/tasks", tags=["tasks"])

can_create_tasks = require_any_permission(["tasks.create", "tasks.assign"])
can_list_tasks = require_any_permission(["tasks.read", "tasks.assign"])
can_see_statistics = require_any_permission(["tasks.read", "tasks.assign", "reports.generate"])
can_read_task = require_resource_permission("tasks", ["read", "assign"], allow_self=True)
can_update_task = require_resource_permission("tasks", ["update", "assign"], allow_self=True)
can_delete_tasks = require_any_permission(["tasks.delete", "tasks.assign"])
can_assign_tasks = require_permission("tasks.assign")


def _scope(principal: Principal, roles: RoleService) -> Optional[str]:
    """User id to restrict listings to, or None for callers who see every task."""
    return None if task_service.sees_all_tasks(principal.id, roles) else principal.id


def _page(result) -> dict:
    return {
        "tasks": [TaskOut.model_validate(t) for t in result["tasks"]],
        "total": result["total"],
        "page": result["page"],
    }


@router.post("/", response_model=TaskOut, status_code=201)
async def create_task(
    body: TaskCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_create_tasks),
    roles: RoleService = Depends(get_role_service),
):
    if body.assigned_to and body.assigned_to != principal.id:
        if not roles.validate_permission(principal.id, "tasks.assign"):
            raise AuthorizationError("Permission denied: tasks.assign")
    task = task_service.create_task(db, body, principal.id)
    audit_service.log_from_request(
        db, request,
        actor=principal,
        action="task.created",
        resource_type="task",
        resource_id=task.id,
        new_value={"title": task.title, "assigned_to": task.assigned_to},
    )
    return task


@router.get("/search")
async def search_tasks(
    assigned_to: Optional[str] = Query(None),
    created_by: Optional[str] = Query(None),
    status: Optional[TaskStatus] = Query(None),
    priority: Optional[TaskPriority] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    due_from: Optional[date] = Query(None),
    due_to: Optional[date] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_list_tasks),
    roles: RoleService = Depends(get_role_service),
):
    """Search tasks. Callers without tasks.assign only see their own."""
    result = task_service.search_tasks(
        db,
        visible_to=_scope(principal, roles),
        assigned_to=assigned_to,
        created_by=created_by,
        status=status,
        priority=priority,
        search=search,
        due_from=due_from,
        due_to=due_to,
        page=page,
        page_size=page_size,
    )
    return _page(result)


@router.get("/my-tasks")
async def get_my_tasks(
    status: Optional[TaskStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_permission("tasks.read")),
):
    result = task_service.search_tasks(
        db, assigned_to=principal.id, status=status, page=page, page_size=page_size,
    )
    return _page(result)


@router.get("/created-by-me")
async def get_tasks_created_by_me(
    status: Optional[TaskStatus] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_create_tasks),
):
    result = task_service.search_tasks(
        db, created_by=principal.id, status=status, page=page, page_size=page_size,
    )
    return _page(result)


@router.get("/overdue")
async def get_overdue_tasks(
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_list_tasks),
    roles: RoleService = Depends(get_role_service),
):
    tasks = task_service.overdue_tasks(db, visible_to=_scope(principal, roles))
    return {"tasks": [TaskOut.model_validate(t) for t in tasks]}


@router.get("/statistics", response_model=TaskStatisticsOut)
async def get_task_statistics(
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_see_statistics),
    roles: RoleService = Depends(get_role_service),
):
    """Counts by status and priority. Reporting roles see the whole organisation."""
    visible_to = _scope(principal, roles)
    if visible_to and roles.validate_permission(principal.id, "reports.generate"):
        visible_to = None
    return task_service.statistics(db, visible_to=visible_to)


@router.get("/{task_id}", response_model=TaskOut)
async def get_task(
    task_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_read_task),
    roles: RoleService = Depends(get_role_service),
):
    task = task_service.get_task(db, task_id)
    task_service.ensure_access(task, principal.id, roles)
    return task


@router.put("/{task_id}", response_model=TaskOut)
async def update_task(
    task_id: str,
    body: TaskUpdateRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_update_task),
    roles: RoleService = Depends(get_role_service),
):
    """Update a task. Reassigning it needs tasks.assign even for its assignee."""
    task = task_service.get_task(db, task_id)
    task_service.ensure_access(task, principal.id, roles)
    if "assigned_to" in body.model_fields_set and body.assigned_to != task.assigned_to:
        if not roles.validate_permission(principal.id, "tasks.assign"):
            raise AuthorizationError("Permission denied: tasks.assign")
    return task_service.update_task(db, task_id, body, principal.id)


@router.delete("/{task_id}", response_model=MessageResponse)
async def delete_task(
    task_id: str,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_delete_tasks),
):
    task_service.delete_task(db, task_id)
    audit_service.log_from_request(
        db, request,
        actor=principal,
        action="task.deleted",
        resource_type="task",
        resource_id=task_id,
    )
    return MessageResponse(message="Task deleted successfully")


@router.patch("/{task_id}/assign", response_model=TaskOut)
async def assign_task(
    task_id: str,
    body: TaskAssignRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_assign_tasks),
):
    previous = task_service.get_task(db, task_id).assigned_to
    task = task_service.assign_task(db, task_id, body.assigned_to, principal.id)
    audit_service.log_from_request(
        db, request,
        actor=principal,
        action="task.assigned",
        resource_type="task",
        resource_id=task_id,
        old_value={"assigned_to": previous} if previous else None,
        new_value={"assigned_to": task.assigned_to},
    )
    return task


@router.patch("/{task_id}/status", response_model=TaskOut)
async def update_task_status(
    task_id: str,
    body: TaskStatusRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_update_task),
    roles: RoleService = Depends(get_role_service),
):
    task = task_service.get_task(db, task_id)
    task_service.ensure_access(task, principal.id, roles)
    return task_service.update_status(db, task_id, body.status, principal.id)


@router.get("/{task_id}/comments")
async def list_task_comments(
    task_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_read_task),
    roles: RoleService = Depends(get_role_service),
):
    task = task_service.get_task(db, task_id)
    task_service.ensure_access(task, principal.id, roles)
    return {"comments": [TaskCommentOut.model_validate(c) for c in task.comments]}


@router.post("/{task_id}/comments", response_model=TaskCommentOut, status_code=201)
async def add_task_comment(
    task_id: str,
    body: TaskCommentRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_read_task),
    roles: RoleService = Depends(get_role_service),
):
    task = task_service.get_task(db, task_id)
    task_service.ensure_access(task, principal.id, roles)
    return task_service.add_comment(db, task_id, principal.id, body.comment)
