"""Access review routes - campaigns and decisions"""

from fastapi import APIRouter, Depends, Query, status
from typing import List, Optional

from saas_control.api.deps import actor_of, get_access_review_service, require_permission
from saas_control.core import permissions
from saas_control.schemas.access_review import (
    ActionResult,
    BulkDecisionRequest,
    BulkDecisionResult,
    CampaignCreate,
    CampaignResponse,
    CampaignStatus,
    CampaignUpdate,
    CompletionStats,
    DecisionRequest,
    DecisionResponse,
    ScopeRequest,
    ScopeResponse,
)
from saas_control.schemas.auth import Session
from saas_control.schemas.response import APIResponse
from saas_control.services.access_review_service import AccessReviewService

router = APIRouter()

can_read = require_permission(permissions.ACCESS_REVIEWS_READ)
can_write = require_permission(permissions.ACCESS_REVIEWS_WRITE)
can_decide = require_permission(permissions.ACCESS_REVIEWS_DECIDE)


@router.get("/campaigns", response_model=List[CampaignResponse])
def list_campaigns(
    status_filter: Optional[CampaignStatus] = Query(None, alias="status"),
    session: Session = Depends(can_read),
    service: AccessReviewService = Depends(get_access_review_service),
):
    """
    List campaigns ordered by due date

    Args:
        status_filter: Only campaigns in this status

    Returns:
        Campaigns with completion stats
    """
    return service.get_all_campaigns(status_filter)


@router.post("/campaigns", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
def create_campaign(
    body: CampaignCreate,
    session: Session = Depends(can_write),
    service: AccessReviewService = Depends(get_access_review_service),
):
    return service.create_campaign(actor_of(session), body)


@router.get("/campaigns/{campaign_id}", response_model=CampaignResponse)
def get_campaign(
    campaign_id: str,
    session: Session = Depends(can_read),
    service: AccessReviewService = Depends(get_access_review_service),
):
    return service.require_campaign(campaign_id)


@router.patch("/campaigns/{campaign_id}", response_model=CampaignResponse)
def update_campaign(
    campaign_id: str,
    body: CampaignUpdate,
    session: Session = Depends(can_write),
    service: AccessReviewService = Depends(get_access_review_service),
):
    return service.update_campaign(actor_of(session), campaign_id, body)


@router.delete("/campaigns/{campaign_id}", response_model=APIResponse)
def delete_campaign(
    campaign_id: str,
    session: Session = Depends(can_write),
    service: AccessReviewService = Depends(get_access_review_service),
):
    """
    Delete a campaign and all of its decisions

    Returns:
        Confirmation with the deleted campaign
    """
    campaign = service.delete_campaign(actor_of(session), campaign_id)
    return APIResponse(message=f"Campaign {campaign.name} deleted", data=campaign.model_dump(mode="json"))


@router.get("/campaigns/{campaign_id}/decisions", response_model=List[DecisionResponse])
def list_campaign_decisions(
    campaign_id: str,
    session: Session = Depends(can_read),
    service: AccessReviewService = Depends(get_access_review_service),
):
    service.require_campaign(campaign_id)
    return service.get_decisions(campaign_id)


@router.get("/campaigns/{campaign_id}/stats", response_model=CompletionStats)
def campaign_stats(
    campaign_id: str,
    session: Session = Depends(can_read),
    service: AccessReviewService = Depends(get_access_review_service),
):
    return service.completion_stats(campaign_id)


@router.post("/campaigns/{campaign_id}/scope", response_model=ScopeResponse)
def scope_campaign(
    campaign_id: str,
    body: Optional[ScopeRequest] = None,
    session: Session = Depends(can_write),
    service: AccessReviewService = Depends(get_access_review_service),
):
    """
    Add a pending decision for every current access grant

    Grants already under review in this campaign are skipped.

    Args:
        campaign_id: Campaign to scope
        body: Optional list of applications to restrict scoping to

    Returns:
        Number of decisions created
    """
    application_ids = body.application_ids if body else None
    inserted = service.scope_campaign(actor_of(session), campaign_id, application_ids)
    return ScopeResponse(campaign_id=campaign_id, inserted=inserted)


# Declared before /decisions/{decision_id} so "bulk" is not taken as an id
@router.post("/decisions/bulk", response_model=BulkDecisionResult)
def bulk_decision(
    body: BulkDecisionRequest,
    session: Session = Depends(can_decide),
    service: AccessReviewService = Depends(get_access_review_service),
):
    """
    Record the same decision for many items

    Returns:
        Per-item results; success is false if any item failed
    """
    return service.bulk_access_decision(actor_of(session), body.decision_ids, body.decision)


@router.post("/decisions/{decision_id}", response_model=ActionResult)
def record_decision(
    decision_id: str,
    body: DecisionRequest,
    session: Session = Depends(can_decide),
    service: AccessReviewService = Depends(get_access_review_service),
):
    """
    Approve or revoke one pending decision

    Returns:
        ActionResult; failures are reported in the body, not as an HTTP error
    """
    return service.make_access_decision(actor_of(session), decision_id, body.decision, body.rationale)
