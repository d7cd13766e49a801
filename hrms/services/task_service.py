"""Task service — task lifecycle, assignment, search and statistics.

Route guards decide whether a caller may use task endpoints at all; this
service decides which task rows they may touch. Holders of ``tasks.assign``
see every task, everyone else only the tasks they created or were given.
"""

import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from hrms.core.exceptions import (
    AuthorizationError, ResourceConflictError, ResourceNotFoundError, ValidationError,
)
from hrms.models.task import OPEN_STATUSES, Task, TaskComment, TaskPriority, TaskStatus
from hrms.models.user import User
from hrms.schemas.schemas import TaskCreateRequest, TaskUpdateRequest
from hrms.services.role_service import RoleService

logger = logging.getLogger(__name__)

ASSIGN_TASKS = "tasks.assign"


def _today() -> date:
    return datetime.now(timezone.utc).date()


def _visible_to(user_id: str):
    return or_(
        Task.assigned_to == user_id,
        Task.created_by == user_id,
        Task.assigned_by == user_id,
    )


class TaskService:
    """Manages tasks handed out by managers to employees."""

    # ---- Row-level access ----

    @staticmethod
    def can_access(task: Task, user_id: str, roles: RoleService) -> bool:
        if user_id in (task.assigned_to, task.created_by, task.assigned_by):
            return True
        return roles.validate_permission(user_id, ASSIGN_TASKS)

    @staticmethod
    def ensure_access(task: Task, user_id: str, roles: RoleService) -> None:
        if not TaskService.can_access(task, user_id, roles):
            raise AuthorizationError("Access denied to this task")

    @staticmethod
    def sees_all_tasks(user_id: str, roles: RoleService) -> bool:
        return roles.validate_permission(user_id, ASSIGN_TASKS)

    # ---- Validation ----

    @staticmethod
    def _validate_dates(start_date: Optional[date], due_date: Optional[date]) -> None:
        if start_date and due_date and start_date > due_date:
            raise ValidationError("Start date cannot be after due date")

    @staticmethod
    def _validate_assignee(db: Session, assignee_id: str) -> None:
        user = db.query(User).filter(User.id == assignee_id).first()
        if not user or not user.is_active:
            raise ValidationError("Invalid assignee: user not found")

    # ---- CRUD ----

    @staticmethod
    def create_task(db: Session, data: TaskCreateRequest, created_by: str) -> Task:
        TaskService._validate_dates(data.start_date, data.due_date)
        if data.assigned_to:
            TaskService._validate_assignee(db, data.assigned_to)

        task = Task(
            title=data.title.strip(),
            description=data.description,
            priority=data.priority,
            status=TaskStatus.pending,
            assigned_to=data.assigned_to,
            assigned_by=created_by if data.assigned_to else None,
            created_by=created_by,
            start_date=data.start_date,
            due_date=data.due_date,
            estimated_hours=data.estimated_hours,
        )
        db.add(task)
        db.commit()
        db.refresh(task)
        logger.info("Task %s created by %s", task.id, created_by)
        return task

    @staticmethod
    def get_task(db: Session, task_id: str) -> Task:
        task = db.query(Task).filter(Task.id == task_id).first()
        if not task:
            raise ResourceNotFoundError("Task not found")
        return task

    @staticmethod
    def update_task(
        db: Session, task_id: str, data: TaskUpdateRequest, updated_by: str
    ) -> Task:
        """Apply the fields present in ``data``.

        Moving to ``completed`` stamps ``completed_date``; leaving it clears it.
        """
        task = TaskService.get_task(db, task_id)
        changes = data.model_dump(exclude_unset=True)
        for required in ("title", "priority"):
            if required in changes and changes[required] is None:
                del changes[required]

        TaskService._validate_dates(
            changes.get("start_date", task.start_date),
            changes.get("due_date", task.due_date),
        )
        if changes.get("assigned_to") and changes["assigned_to"] != task.assigned_to:
            TaskService._validate_assignee(db, changes["assigned_to"])
            task.assigned_by = updated_by

        new_status = changes.pop("status", None)
        if new_status is not None and new_status != task.status:
            if new_status == TaskStatus.completed:
                task.completed_date = datetime.now(timezone.utc)
            elif task.status == TaskStatus.completed:
                task.completed_date = None
            task.status = new_status

        for field, value in changes.items():
            setattr(task, field, value)
        task.updated_by = updated_by
        db.commit()
        db.refresh(task)
        return task

    @staticmethod
    def assign_task(db: Session, task_id: str, assignee_id: str, assigned_by: str) -> Task:
        return TaskService.update_task(
            db, task_id, TaskUpdateRequest(assigned_to=assignee_id), assigned_by
        )

    @staticmethod
    def update_status(db: Session, task_id: str, status: TaskStatus, updated_by: str) -> Task:
        return TaskService.update_task(
            db, task_id, TaskUpdateRequest(status=status), updated_by
        )

    @staticmethod
    def delete_task(db: Session, task_id: str) -> None:
        task = TaskService.get_task(db, task_id)
        if task.status == TaskStatus.completed:
            raise ResourceConflictError("Cannot delete completed tasks")
        db.delete(task)
        db.commit()
        logger.info("Task %s deleted", task_id)

    # ---- Queries ----

    @staticmethod
    def search_tasks(
        db: Session,
        visible_to: Optional[str] = None,
        assigned_to: Optional[str] = None,
        created_by: Optional[str] = None,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        search: Optional[str] = None,
        due_from: Optional[date] = None,
        due_to: Optional[date] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        """Filtered, paginated task list, soonest due first.

        ``visible_to`` limits results to tasks that user created or was given.
        """
        query = db.query(Task)
        if visible_to:
            query = query.filter(_visible_to(visible_to))
        if assigned_to:
            query = query.filter(Task.assigned_to == assigned_to)
        if created_by:
            query = query.filter(Task.created_by == created_by)
        if status:
            query = query.filter(Task.status == status)
        if priority:
            query = query.filter(Task.priority == priority)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))
        if due_from:
            query = query.filter(Task.due_date >= due_from)
        if due_to:
            query = query.filter(Task.due_date <= due_to)

        total = query.count()
        tasks = (
            query.order_by(Task.due_date.is_(None), Task.due_date.asc(), Task.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"tasks": tasks, "total": total, "page": page}

    @staticmethod
    def overdue_tasks(
        db: Session, visible_to: Optional[str] = None, today: Optional[date] = None
    ):
        today = today or _today()
        query = db.query(Task).filter(
            Task.due_date < today,
            Task.status.in_(OPEN_STATUSES),
        )
        if visible_to:
            query = query.filter(_visible_to(visible_to))
        return query.order_by(Task.due_date.asc()).all()

    @staticmethod
    def statistics(
        db: Session, visible_to: Optional[str] = None, today: Optional[date] = None
    ) -> Dict[str, Any]:
        today = today or _today()
        base = db.query(Task)
        if visible_to:
            base = base.filter(_visible_to(visible_to))

        by_status = {s.value: 0 for s in TaskStatus}
        for status, count in base.with_entities(Task.status, func.count(Task.id)).group_by(Task.status):
            by_status[status.value] = count

        by_priority = {p.value: 0 for p in TaskPriority}
        for priority, count in base.with_entities(Task.priority, func.count(Task.id)).group_by(Task.priority):
            by_priority[priority.value] = count

        open_tasks = base.filter(Task.status.in_(OPEN_STATUSES))
        return {
            "total": sum(by_status.values()),
            "by_status": by_status,
            "by_priority": by_priority,
            "overdue": open_tasks.filter(Task.due_date < today).count(),
            "due_today": open_tasks.filter(Task.due_date == today).count(),
        }

    # ---- Comments ----

    @staticmethod
    def add_comment(db: Session, task_id: str, user_id: str, comment: str) -> TaskComment:
        task = TaskService.get_task(db, task_id)
        entry = TaskComment(task_id=task.id, user_id=user_id, comment=comment.strip())
        db.add(entry)
        db.commit()
        db.refresh(entry)
        return entry


task_service = TaskService()
