"""Audit event model for state-changing console actions."""

from sqlalchemy import Column, Integer, String, DateTime, Text, Index
from sqlalchemy.sql import func

from saas_control.core.database import Base
from saas_control.models.directory import utcnow


class AuditEvent(Base):
    """Immutable audit events."""

    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, index=True)
    actor = Column(String(64), nullable=False, index=True)
    actor_email = Column(String(255), nullable=True)
    action = Column(String(32), nullable=False, index=True)
    object_type = Column(String(64), nullable=False)
    object_id = Column(String(128), nullable=False)
    object_name = Column(String(255), nullable=True)
    details_json = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_audit_events_created_at", "created_at"),
        Index("idx_audit_events_object", "object_type", "object_id"),
    )
