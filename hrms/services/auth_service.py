"""Auth service — registration, login, token refresh, user lookups."""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hrms.models.user import User
from hrms.core.security import (
    hash_password, verify_password,
    create_access_token, create_refresh_token, decode_token, token_claims,
)
from hrms.core.exceptions import (
    AuthenticationError, ResourceConflictError, ResourceNotFoundError, HRMSError,
)
from hrms.services.role_service import RoleService
from hrms.services.role_store import RoleStore

logger = logging.getLogger(__name__)


def _user_dict(user: User, role_name: Optional[str]) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "employee_id": user.employee_id,
        "role": role_name,
    }


class AuthService:
    """Handles authentication and user management."""

    @staticmethod
    def create_user(
        db: Session,
        email: str,
        password: str,
        full_name: str,
        employee_id: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> User:
        """Create a user row without any role."""
        email = email.strip().lower()
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            raise ResourceConflictError(f"User with email {email} already exists")

        user = User(
            email=email,
            hashed_password=hash_password(password),
            full_name=full_name,
            employee_id=employee_id,
            created_by=created_by,
            is_active=True,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ResourceConflictError("User with this email or employee ID already exists")
        db.refresh(user)
        return user

    @staticmethod
    def register(db: Session, email: str, password: str, full_name: str) -> Dict[str, Any]:
        """Self-service sign-up: new user with the default role."""
        user = AuthService.create_user(db, email, password, full_name)
        result = RoleService(RoleStore(db)).assign_default_role(user.id)
        if not result.success:
            raise HRMSError(f"Failed to assign default role: {result.message}")
        logger.info("Registered user %s", user.id)
        return _user_dict(user, result.role.role_name)

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Dict[str, Any]:
        """Authenticate user and return JWT tokens.

        The token's role claim is the persisted active role. A user left
        without one (e.g. an interrupted reassignment) gets the default role.

        Raises:
            AuthenticationError: If credentials are invalid.
        """
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        if not user or not verify_password(password, user.hashed_password):
            raise AuthenticationError("Invalid email or password")

        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        roles = RoleService(RoleStore(db))
        active = roles.get_active_role(user.id)
        if active is None:
            healed = roles.assign_default_role(user.id)
            active = healed.role
            logger.warning("User %s had no active role, default assigned", user.id)
        role_name = active.role_name if active else None

        token_data = token_claims(user.id, user.email, role_name)
        access_token = create_access_token(token_data)
        refresh_token = create_refresh_token(token_data)

        user.last_login_at = datetime.now(timezone.utc)
        db.commit()

        return {
            "access_token": access_token,
            "refresh_token": refresh_token,
            "token_type": "bearer",
            "user": _user_dict(user, role_name),
        }

    @staticmethod
    def refresh_access_token(db: Session, refresh_token: str) -> Dict[str, Any]:
        """Issue a new access token carrying the current persisted role."""
        payload = decode_token(refresh_token, expected_type="refresh")

        user = db.query(User).filter(User.id == str(payload.get("sub"))).first()
        if not user or not user.is_active:
            raise AuthenticationError("User not found or deactivated")

        active = RoleService(RoleStore(db)).get_active_role(user.id)
        role_name = active.role_name if active else None
        return {
            "access_token": create_access_token(token_claims(user.id, user.email, role_name)),
            "token_type": "bearer",
        }

    @staticmethod
    def get_user(db: Session, user_id: str) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def list_users(db: Session, page: int = 1, page_size: int = 20):
        """List all users with pagination."""
        total = db.query(User).count()
        users = (
            db.query(User)
            .order_by(User.created_at.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"users": users, "total": total, "page": page}


auth_service = AuthService()
