"""Audit log routes"""

from datetime import datetime
from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from saas_control.api.deps import get_audit_service, require_permission
from saas_control.core import permissions
from saas_control.schemas.audit import AuditEventResponse, AuditFilters
from saas_control.schemas.auth import Session
from saas_control.services.audit_service import AuditService

router = APIRouter()

can_read_audit = require_permission(permissions.AUDIT_READ)


@router.get("", response_model=List[AuditEventResponse])
def list_audit_events(
    actor: Optional[str] = None,
    object_type: Optional[str] = None,
    object_id: Optional[str] = None,
    action: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = Query(100, ge=1, le=500),
    session: Session = Depends(can_read_audit),
    audit: AuditService = Depends(get_audit_service),
):
    """
    Audit events, newest first

    Returns an empty list when running on mock data.
    """
    filters = AuditFilters(
        actor=actor,
        object_type=object_type,
        object_id=object_id,
        action=action,
        start=start,
        end=end,
    )
    return audit.list_events(filters, limit)


@router.get("/{object_type}/{object_id}", response_model=List[AuditEventResponse])
def object_history(
    object_type: str,
    object_id: str,
    session: Session = Depends(can_read_audit),
    audit: AuditService = Depends(get_audit_service),
):
    return audit.events_for_object(object_type, object_id)
