"""Audit event schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel


class AuditAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    EXPORT = "export"
    BULK_UPDATE = "bulk_update"
    DECISION = "decision"


class AuditObjectType(str, Enum):
    USER = "user"
    APPLICATION = "application"
    CONTRACT = "contract"
    CAMPAIGN = "campaign"
    DECISION = "decision"
    DEPARTMENT = "department"
    SETTING = "setting"


class AuditEventResponse(BaseModel):
    id: int
    actor: str
    actor_email: Optional[str] = None
    action: str
    object_type: str
    object_id: str
    object_name: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class AuditFilters(BaseModel):
    actor: Optional[str] = None
    object_type: Optional[str] = None
    object_id: Optional[str] = None
    action: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
