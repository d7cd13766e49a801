"""Roles API router — hierarchy, assignment, permission overrides."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from hrms.core.permissions import require_hr_admin
from hrms.core.roles import TOP_ROLE, is_known_role
from hrms.core.security import get_current_principal
from hrms.db.session import get_db
from hrms.schemas.schemas import (
    AssignRoleRequest, UpdatePermissionsRequest, PermissionCheckOut,
    RoleAssignmentResult, MessageResponse, Principal,
)
from hrms.services.audit_service import audit_service
from hrms.services.role_service import RoleService, get_role_service

router = APIRouter(prefix="/roles", tags=["roles"])


def _raise_on_failure(result: RoleAssignmentResult) -> None:
    if not result.success:
        raise HTTPException(status_code=403, detail=result.message)


@router.get("/hierarchy")
async def get_role_hierarchy():
    """Role catalog with levels and permissions."""
    return {"hierarchy": RoleService.get_role_hierarchy()}


@router.get("/available")
async def get_available_roles():
    return {"roles": RoleService.get_available_roles()}


@router.get("/my-roles")
async def get_my_roles(
    principal: Principal = Depends(get_current_principal),
    roles: RoleService = Depends(get_role_service),
):
    """Role assignments of the caller, history included."""
    return {"roles": roles.get_user_roles(principal.id)}


@router.get("/validate/{permission}", response_model=PermissionCheckOut)
async def validate_permission(
    permission: str,
    principal: Principal = Depends(get_current_principal),
    roles: RoleService = Depends(get_role_service),
):
    return PermissionCheckOut(
        permission=permission,
        has_permission=roles.validate_permission(principal.id, permission),
    )


@router.post("/assign", response_model=RoleAssignmentResult)
async def assign_role(
    body: AssignRoleRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_hr_admin),
    roles: RoleService = Depends(get_role_service),
):
    """Assign a role to a user, replacing the active one."""
    if not is_known_role(body.role_name):
        raise HTTPException(status_code=400, detail="Invalid role name")

    # The service lets anyone grant the top role for bootstrap; over HTTP
    # only a persisted super admin may.
    if body.role_name == TOP_ROLE:
        caller_role = roles.get_active_role(principal.id)
        if caller_role is None or caller_role.role_name != TOP_ROLE:
            raise HTTPException(status_code=403, detail=f"Cannot assign role: {TOP_ROLE}")

    previous = roles.get_active_role(body.user_id)
    result = roles.assign_role(body.user_id, body.role_name, principal.id)
    _raise_on_failure(result)

    audit_service.log_from_request(
        db, request,
        actor=principal,
        action="role.assigned",
        resource_type="role",
        resource_id=body.user_id,
        old_value={"role": previous.role_name} if previous else None,
        new_value={"role": body.role_name},
    )
    return result


@router.get("/user/{user_id}")
async def get_user_roles(
    user_id: str,
    principal: Principal = Depends(require_hr_admin),
    roles: RoleService = Depends(get_role_service),
):
    return {"roles": roles.get_user_roles(user_id)}


@router.put("/permissions", response_model=RoleAssignmentResult)
async def update_user_permissions(
    body: UpdatePermissionsRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_hr_admin),
    roles: RoleService = Depends(get_role_service),
):
    """Override the permission snapshot of a user's active role."""
    previous = roles.get_active_role(body.user_id)
    result = roles.update_user_permissions(body.user_id, body.permissions, principal.id)
    _raise_on_failure(result)

    audit_service.log_from_request(
        db, request,
        actor=principal,
        action="role.permissions_updated",
        resource_type="role",
        resource_id=body.user_id,
        old_value={"permissions": previous.permissions} if previous else None,
        new_value={"permissions": body.permissions},
    )
    return result


@router.delete("/user/{user_id}", response_model=MessageResponse)
async def deactivate_user_role(
    user_id: str,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_hr_admin),
    roles: RoleService = Depends(get_role_service),
):
    result = roles.deactivate_role(user_id, principal.id)
    _raise_on_failure(result)

    audit_service.log_from_request(
        db, request,
        actor=principal,
        action="role.deactivated",
        resource_type="role",
        resource_id=user_id,
    )
    return MessageResponse(message=result.message)
