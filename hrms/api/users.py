"""Users API router — employee directory with self-access."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrms.core.permissions import can_read_employees, require_resource_permission
from hrms.db.session import get_db
from hrms.schemas.schemas import UserOut, UserUpdateRequest, Principal
from hrms.services.auth_service import auth_service
from hrms.services.role_service import RoleService, get_role_service
from hrms.core.exceptions import ResourceNotFoundError

router = APIRouter(prefix="/users", tags=["users"])

can_view_user = require_resource_permission("employee", "read", allow_self=True)
can_edit_user = require_resource_permission("employee", "update", allow_self=True)


def _user_out(user, roles: RoleService) -> UserOut:
    active = roles.get_active_role(user.id)
    return UserOut(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        employee_id=user.employee_id,
        role=active.role_name if active else None,
        is_active=user.is_active,
        created_at=user.created_at,
    )


@router.get("/")
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_read_employees),
    roles: RoleService = Depends(get_role_service),
):
    """List all users (requires employee.read)."""
    result = auth_service.list_users(db, page, page_size)
    return {
        "users": [_user_out(u, roles) for u in result["users"]],
        "total": result["total"],
        "page": result["page"],
    }


@router.get("/{user_id}", response_model=UserOut)
async def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_view_user),
    roles: RoleService = Depends(get_role_service),
):
    try:
        user = auth_service.get_user(db, user_id)
    except ResourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return _user_out(user, roles)


@router.put("/{user_id}", response_model=UserOut)
async def update_user(
    user_id: str,
    body: UserUpdateRequest,
    db: Session = Depends(get_db),
    principal: Principal = Depends(can_edit_user),
    roles: RoleService = Depends(get_role_service),
):
    """Update a profile. Account status needs employee.update, even on oneself."""
    try:
        user = auth_service.get_user(db, user_id)
    except ResourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    if body.is_active is not None and body.is_active != user.is_active:
        if not roles.validate_permission(principal.id, "employee.update"):
            raise HTTPException(status_code=403, detail="Permission denied: employee.update")
        user.is_active = body.is_active
    if body.full_name:
        user.full_name = body.full_name
    if body.employee_id:
        user.employee_id = body.employee_id
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Employee ID already in use")
    db.refresh(user)
    return _user_out(user, roles)
