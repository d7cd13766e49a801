"""Auth API router — register, login, refresh, me."""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from hrms.db.session import get_db
from hrms.schemas.schemas import (
    LoginRequest, RegisterRequest, RefreshRequest,
    TokenResponse, UserOut, Principal,
)
from hrms.services.auth_service import auth_service
from hrms.services.audit_service import audit_service
from hrms.services.role_service import RoleService, get_role_service
from hrms.core.security import get_current_principal
from hrms.core.exceptions import AuthenticationError, ResourceConflictError

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserOut, status_code=201)
async def register(body: RegisterRequest, request: Request, db: Session = Depends(get_db)):
    """Register a new user with the default employee role."""
    try:
        user = auth_service.register(db, body.email, body.password, body.full_name)
    except ResourceConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    audit_service.log_from_request(
        db, request,
        actor_id=user["id"],
        actor_email=user["email"],
        action="user.registered",
        resource_type="user",
        resource_id=user["id"],
        new_value={"role": user["role"]},
    )
    return UserOut(**user)


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest, request: Request, db: Session = Depends(get_db)):
    """Authenticate and return JWT tokens."""
    try:
        result = auth_service.authenticate(db, body.email, body.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    audit_service.log_from_request(
        db, request,
        actor_id=result["user"]["id"],
        actor_email=result["user"]["email"],
        action="user.login",
        resource_type="user",
        resource_id=result["user"]["id"],
    )
    return result


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: Session = Depends(get_db)):
    """Refresh access token."""
    try:
        return auth_service.refresh_access_token(db, body.refresh_token)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))


@router.get("/me", response_model=UserOut)
async def get_me(
    db: Session = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
    roles: RoleService = Depends(get_role_service),
):
    """Get current user profile with the persisted role."""
    user = auth_service.get_user(db, principal.id)
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
