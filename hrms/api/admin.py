"""Admin / Audit API router."""

from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrms.core.permissions import require_hr_admin
from hrms.db.session import get_db
from hrms.schemas.schemas import AuditLogOut, Principal
from hrms.services.audit_service import audit_service

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/audit")
async def get_audit_logs(
    action: Optional[str] = Query(None),
    resource_type: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    principal: Principal = Depends(require_hr_admin),
):
    """Query audit logs (hr-admin and above)."""
    result = audit_service.query_logs(
        db, actor_id, action, resource_type, resource_id, page, page_size,
    )
    return {
        "logs": [
            AuditLogOut.model_validate(log)
            for log in result["logs"]
        ],
        "total": result["total"],
        "page": result["page"],
    }


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """System health check — database connectivity."""
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        db.rollback()

    return {
        "database": "ok" if db_ok else "error",
        "status": "healthy" if db_ok else "degraded",
    }
