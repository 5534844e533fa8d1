"""Access review schemas"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional
from datetime import datetime, timezone
from enum import Enum


class CampaignStatus(str, Enum):
    """Campaign lifecycle"""
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"


class DecisionState(str, Enum):
    """Decision lifecycle - approved and revoked are terminal"""
    PENDING = "pending"
    APPROVED = "approved"
    REVOKED = "revoked"

    @property
    def is_terminal(self) -> bool:
        return self is not DecisionState.PENDING


class DecisionOutcome(str, Enum):
    """States a reviewer may record"""
    APPROVED = "approved"
    REVOKED = "revoked"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes are taken to be UTC"""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CampaignCreate(BaseModel):
    """Create campaign schema"""
    name: str = Field(..., min_length=1, max_length=200)
    status: CampaignStatus = CampaignStatus.DRAFT
    due_date: Optional[datetime] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Campaign name must not be blank")
        return v

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v):
        return _as_utc(v)


class CampaignUpdate(BaseModel):
    """Partial campaign update"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    status: Optional[CampaignStatus] = None
    due_date: Optional[datetime] = None

    @field_validator("name", "status", mode="before")
    @classmethod
    def reject_null(cls, v, info):
        # Omit a field to leave it unchanged; only due_date may be cleared
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("name")
    @classmethod
    def strip_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Campaign name must not be blank")
        return v

    @field_validator("due_date")
    @classmethod
    def due_date_utc(cls, v):
        return _as_utc(v)

    def changes(self) -> Dict[str, Any]:
        """Fields the caller set, with enums as their stored values"""
        changes = self.model_dump(exclude_unset=True)
        if "status" in changes:
            changes["status"] = changes["status"].value
        return changes


class CampaignResponse(BaseModel):
    """Campaign with derived completion stats"""
    id: str
    name: str
    status: CampaignStatus
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    tasks_total: int = 0
    tasks_completed: int = 0
    completion_percent: int = 0

    class Config:
        from_attributes = True


class CompletionStats(BaseModel):
    total: int
    completed: int
    pending: int
    approved: int
    revoked: int
    completion_percent: int


class UserSnapshot(BaseModel):
    id: str
    name: str
    email: str
    department: Optional[str] = None

    class Config:
        from_attributes = True


class ApplicationSnapshot(BaseModel):
    id: str
    name: str
    vendor: Optional[str] = None
    category: str
    risk_level: str
    monthly_cost: Optional[float] = None


class DecisionResponse(BaseModel):
    """Decision joined with user and application snapshots"""
    id: str
    campaign_id: str
    user_id: str
    application_id: str
    decision: DecisionState
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    rationale: Optional[str] = None
    created_at: Optional[datetime] = None
    user: Optional[UserSnapshot] = None
    application: Optional[ApplicationSnapshot] = None


class AccessPair(BaseModel):
    """One (user, application) access grant"""
    user_id: str
    application_id: str
    access_level: Optional[str] = None
    last_login: Optional[datetime] = None


class DecisionRequest(BaseModel):
    """Record a single decision"""
    decision: DecisionOutcome
    rationale: Optional[str] = Field(None, max_length=2000)


class BulkDecisionRequest(BaseModel):
    """Record the same decision for many items"""
    decision_ids: List[str] = Field(..., min_length=1, max_length=500)
    decision: DecisionOutcome

    @field_validator("decision_ids")
    @classmethod
    def drop_blank_ids(cls, v):
        cleaned = [item.strip() for item in v if item and item.strip()]
        if not cleaned:
            raise ValueError("At least one decision id is required")
        return cleaned


class ScopeRequest(BaseModel):
    """Restrict campaign scoping to some applications"""
    application_ids: Optional[List[str]] = None


class ScopeResponse(BaseModel):
    success: bool = True
    campaign_id: str
    inserted: int


class ActionResult(BaseModel):
    """Outcome of a page action"""
    success: bool
    error: Optional[str] = None
    decision: Optional[DecisionResponse] = None


class DecisionItemResult(BaseModel):
    decision_id: str
    success: bool
    error: Optional[str] = None


class BulkDecisionResult(BaseModel):
    """Per-item outcome of a bulk decision"""
    success: bool
    count: int
    results: List[DecisionItemResult] = []
    error: Optional[str] = None
