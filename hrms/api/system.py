"""System API router — first-run bootstrap and status."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from hrms.core.exceptions import AuthorizationError, ResourceConflictError
from hrms.core.permissions import require_super_admin
from hrms.db.session import get_db
from hrms.schemas.schemas import (
    CreateHrAdminRequest, SystemInitOut, SystemStatusOut, MessageResponse, Principal,
)
from hrms.services.audit_service import audit_service
from hrms.services.system_service import system_service

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/status", response_model=SystemStatusOut)
async def get_system_status(db: Session = Depends(get_db)):
    return system_service.get_system_status(db)


@router.post("/initialize", response_model=SystemInitOut, status_code=201)
async def initialize_system(request: Request, db: Session = Depends(get_db)):
    """Create the super admin. The generated password is only shown here."""
    try:
        result = system_service.initialize_system(db)
    except ResourceConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    audit_service.log_from_request(
        db, request,
        actor_id=result["user_id"],
        actor_email=result["email"],
        action="system.initialized",
        resource_type="system",
        resource_id=result["user_id"],
    )
    return SystemInitOut(**result)


@router.post("/create-hr-admin", response_model=MessageResponse, status_code=201)
async def create_first_hr_admin(
    body: CreateHrAdminRequest,
    request: Request,
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_super_admin),
):
    try:
        result = system_service.create_first_hr_admin(
            db, body.email, body.full_name, body.password, created_by=principal.id,
        )
    except AuthorizationError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except ResourceConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    audit_service.log_from_request(
        db, request,
        actor=principal,
        action="system.hr_admin_created",
        resource_type="user",
        resource_id=result["user_id"],
        new_value={"role": "hr-admin"},
    )
    return MessageResponse(message="HR Admin account created successfully")
