"""Audit service — records who changed which account or role, and when.

Audit writes never undo the change they describe: a failed insert is
logged and rolled back, and the request carries on.
"""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hrms.models.audit_log import AuditLog
from hrms.schemas.schemas import Principal

logger = logging.getLogger(__name__)


def _to_json(value: Optional[Any]) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str, sort_keys=True)


class AuditService:

    @staticmethod
    def log(
        db: Session,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        actor_email: Optional[str] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
        request_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Append one entry and commit it. Returns None if the write failed."""
        entry = AuditLog(
            actor_id=actor_id,
            actor_email=actor_email,
            action=action,
            resource_type=resource_type,
            resource_id=str(resource_id) if resource_id else None,
            old_value_json=_to_json(old_value),
            new_value_json=_to_json(new_value),
            request_id=request_id,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            db.add(entry)
            db.commit()
        except SQLAlchemyError:
            logger.exception("Audit write failed: %s %s/%s", action, resource_type, resource_id)
            db.rollback()
            return None
        return entry

    @staticmethod
    def log_from_request(
        db: Session,
        request: Request,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        actor: Optional[Principal] = None,
        actor_id: Optional[str] = None,
        actor_email: Optional[str] = None,
        old_value: Optional[Any] = None,
        new_value: Optional[Any] = None,
    ) -> Optional[AuditLog]:
        """Same as ``log`` with actor and client details taken from the request."""
        if actor is not None:
            actor_id, actor_email = actor.id, actor.email
        return AuditService.log(
            db,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            actor_id=actor_id,
            actor_email=actor_email,
            old_value=old_value,
            new_value=new_value,
            request_id=getattr(request.state, "request_id", None),
            ip_address=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent", "")[:500],
        )

    @staticmethod
    def query_logs(
        db: Session,
        actor_id: Optional[str] = None,
        action: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Dict[str, Any]:
        """Newest first. ``action`` matches as a prefix, so "role." finds every role change."""
        query = db.query(AuditLog)
        if actor_id:
            query = query.filter(AuditLog.actor_id == actor_id)
        if action:
            query = query.filter(AuditLog.action.startswith(action, autoescape=True))
        if resource_type:
            query = query.filter(AuditLog.resource_type == resource_type)
        if resource_id:
            query = query.filter(AuditLog.resource_id == resource_id)

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"logs": logs, "total": total, "page": page, "page_size": page_size}


audit_service = AuditService()
