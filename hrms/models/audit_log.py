"""Audit log model — append-only record of account and role changes."""

from sqlalchemy import Column, DateTime, Index, Integer, String, Text, func

from hrms.db.base import Base


class AuditLog(Base):
    """One row per change; never updated or deleted by the application.

    ``actor_id`` is deliberately not a foreign key so that entries outlive
    the accounts they mention.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_resource", "resource_type", "resource_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(String(36), nullable=True, index=True)
    actor_email = Column(String(255), nullable=True)
    action = Column(String(100), nullable=False, index=True)      # role.assigned, user.login
    resource_type = Column(String(50), nullable=False)            # user | role | system
    resource_id = Column(String(100), nullable=True)
    old_value_json = Column(Text, nullable=True)
    new_value_json = Column(Text, nullable=True)
    request_id = Column(String(64), nullable=True)
    ip_address = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False, index=True)
