"""Pydantic schemas for API validation"""

from saas_control.schemas.access_review import (
    CampaignStatus,
    DecisionState,
    DecisionOutcome,
    CampaignCreate,
    CampaignUpdate,
    CampaignResponse,
    CompletionStats,
    DecisionResponse,
    DecisionRequest,
    BulkDecisionRequest,
    BulkDecisionResult,
    ActionResult,
)
from saas_control.schemas.audit import AuditAction, AuditObjectType, AuditEventResponse, AuditFilters
from saas_control.schemas.auth import Role, SessionUser, Session, SignInRequest
from saas_control.schemas.response import APIResponse, ErrorResponse, HealthResponse

__all__ = [
    "CampaignStatus", "DecisionState", "DecisionOutcome",
    "CampaignCreate", "CampaignUpdate", "CampaignResponse", "CompletionStats",
    "DecisionResponse", "DecisionRequest", "BulkDecisionRequest", "BulkDecisionResult", "ActionResult",
    "AuditAction", "AuditObjectType", "AuditEventResponse", "AuditFilters",
    "Role", "SessionUser", "Session", "SignInRequest",
    "APIResponse", "ErrorResponse", "HealthResponse",
]
