"""Access review service - campaign management and the decision lifecycle"""

import logging
from typing import Iterable, List, Optional, Tuple

from prometheus_client import Counter

from saas_control.core.exceptions import (
    BaseAPIException,
    DecisionAlreadyFinalError,
    ResourceNotFoundError,
    ValidationError,
)
from saas_control.repositories.interfaces import DecisionStore, DirectoryStore
from saas_control.schemas.access_review import (
    ActionResult,
    BulkDecisionResult,
    CampaignCreate,
    CampaignResponse,
    CampaignStatus,
    CampaignUpdate,
    CompletionStats,
    DecisionItemResult,
    DecisionOutcome,
    DecisionResponse,
)
from saas_control.schemas.audit import AuditAction, AuditObjectType
from saas_control.services.audit_service import AuditContext, AuditService

logger = logging.getLogger(__name__)

DECISION_FAILED = "Failed to record decision"
BULK_DECISION_FAILED = "Failed to record bulk decisions"

DECISIONS_RECORDED = Counter(
    "saascontrol_decisions_recorded_total",
    "Access review decisions recorded",
    ["decision"],
)


def _outcome(decision: DecisionOutcome) -> DecisionOutcome:
    """Coerce a recorded state; pending or unknown values are rejected"""
    try:
        return DecisionOutcome(decision)
    except ValueError:
        raise ValidationError(f"Invalid decision '{decision}'", details={"allowed": ["approved", "revoked"]})


class AccessReviewService:
    """Service for access review campaigns and decisions"""

    def __init__(self, store: DecisionStore, directory: DirectoryStore, audit: AuditService):
        self.store = store
        self.directory = directory
        self.audit = audit

    # Campaigns

    def get_all_campaigns(self, status: Optional[CampaignStatus] = None) -> List[CampaignResponse]:
        return self.store.list_campaigns(status.value if status else None)

    def get_campaign(self, campaign_id: str) -> Optional[CampaignResponse]:
        return self.store.get_campaign(campaign_id)

    def require_campaign(self, campaign_id: str) -> CampaignResponse:
        campaign = self.store.get_campaign(campaign_id)
        if not campaign:
            raise ResourceNotFoundError("Campaign")
        return campaign

    def create_campaign(self, ctx: AuditContext, data: CampaignCreate) -> CampaignResponse:
        campaign = self.store.create_campaign(data)
        self.audit.emit(
            ctx,
            AuditAction.CREATE,
            AuditObjectType.CAMPAIGN,
            campaign.id,
            object_name=campaign.name,
            details={"due_date": campaign.due_date, "status": campaign.status.value},
        )
        return campaign

    def update_campaign(self, ctx: AuditContext, campaign_id: str, data: CampaignUpdate) -> CampaignResponse:
        changes = data.changes()
        if not changes:
            raise ValidationError("No campaign fields to update")

        campaign = self.store.update_campaign(campaign_id, changes)
        self.audit.emit(
            ctx,
            AuditAction.UPDATE,
            AuditObjectType.CAMPAIGN,
            campaign.id,
            object_name=campaign.name,
            details={"changes": sorted(changes)},
        )
        return campaign

    def delete_campaign(self, ctx: AuditContext, campaign_id: str) -> CampaignResponse:
        campaign = self.store.delete_campaign(campaign_id)
        self.audit.emit(
            ctx,
            AuditAction.DELETE,
            AuditObjectType.CAMPAIGN,
            campaign.id,
            object_name=campaign.name,
        )
        return campaign

    def completion_stats(self, campaign_id: str) -> CompletionStats:
        self.require_campaign(campaign_id)
        return self.store.completion_stats(campaign_id)

    # Decisions

    def get_decisions(self, campaign_id: str) -> List[DecisionResponse]:
        return self.store.list_decisions(campaign_id)

    def make_decision(
        self,
        ctx: AuditContext,
        decision_id: str,
        decision: DecisionOutcome,
        rationale: Optional[str] = None,
    ) -> DecisionResponse:
        """
        Move a pending decision to approved or revoked and audit it

        Args:
            ctx: Actor the decision is attributed to
            decision_id: Decision ID
            decision: approved or revoked
            rationale: Optional reviewer note

        Returns:
            Updated decision

        Raises:
            ValidationError: If decision is not approved/revoked
            ResourceNotFoundError: If the decision does not exist
            DecisionAlreadyFinalError: If the decision is no longer pending
        """
        outcome = _outcome(decision)
        current = self.store.get_decision(decision_id)
        if not current:
            raise ResourceNotFoundError("Decision")
        if current.decision.is_terminal:
            raise DecisionAlreadyFinalError(decision_id, current.decision.value)

        updated = self.store.record_decision(decision_id, outcome.value, ctx.actor, rationale)
        DECISIONS_RECORDED.labels(outcome.value).inc()

        self.audit.emit(
            ctx,
            AuditAction.DECISION,
            AuditObjectType.DECISION,
            updated.id,
            object_name=f"Decision for campaign {updated.campaign_id}",
            details={
                "decision": outcome.value,
                "rationale": rationale,
                "application_id": updated.application_id,
                "user_id": updated.user_id,
            },
        )
        logger.info(f"Decision {decision_id} recorded as {outcome.value} by {ctx.actor}")
        return updated

    def make_access_decision(
        self,
        ctx: AuditContext,
        decision_id: str,
        decision: DecisionOutcome,
        rationale: Optional[str] = None,
    ) -> ActionResult:
        """make_decision as a page action: failures come back as a result, not an exception"""
        try:
            updated = self.make_decision(ctx, decision_id, decision, rationale)
        except (DecisionAlreadyFinalError, ValidationError) as e:
            logger.warning(f"Decision {decision_id} rejected: {e.message}")
            return ActionResult(success=False, error=e.message)
        except Exception as e:
            logger.error(f"Decision {decision_id} failed: {e}")
            return ActionResult(success=False, error=DECISION_FAILED)
        return ActionResult(success=True, decision=updated)

    def bulk_access_decision(
        self,
        ctx: AuditContext,
        decision_ids: List[str],
        decision: DecisionOutcome,
        rationale: Optional[str] = None,
    ) -> BulkDecisionResult:
        """bulk_decision as a page action"""
        try:
            return self.bulk_decision(ctx, decision_ids, decision, rationale)
        except Exception as e:
            logger.error(f"Bulk decision failed: {e}")
            return BulkDecisionResult(success=False, count=0, error=BULK_DECISION_FAILED)

    def bulk_decision(
        self,
        ctx: AuditContext,
        decision_ids: List[str],
        decision: DecisionOutcome,
        rationale: Optional[str] = None,
    ) -> BulkDecisionResult:
        """
        Record the same decision for each id, in input order

        Each item commits independently; a failure does not undo earlier items.

        Returns:
            Per-item results; success is True only if every item succeeded
        """
        outcome = _outcome(decision)
        value = outcome.value
        note = rationale or f"Bulk {value} action"
        results = []

        for decision_id in decision_ids:
            try:
                self.make_decision(ctx, decision_id, outcome, note)
                results.append(DecisionItemResult(decision_id=decision_id, success=True))
            except BaseAPIException as e:
                logger.error(f"Bulk decision item {decision_id} failed: {e.message}")
                results.append(DecisionItemResult(decision_id=decision_id, success=False, error=e.message))
            except Exception as e:
                logger.error(f"Bulk decision item {decision_id} failed: {e}")
                results.append(DecisionItemResult(decision_id=decision_id, success=False, error=DECISION_FAILED))

        count = sum(1 for r in results if r.success)
        success = count == len(results)
        if not success:
            logger.warning(f"Bulk {value}: {count}/{len(results)} decisions recorded")
        return BulkDecisionResult(
            success=success,
            count=count,
            results=results,
            error=None if success else BULK_DECISION_FAILED,
        )

    def bulk_create_decisions(
        self,
        ctx: AuditContext,
        campaign_id: str,
        pairs: Iterable[Tuple[str, str]],
    ) -> int:
        count = self.store.bulk_insert_pending(campaign_id, pairs)
        self.audit.emit(
            ctx,
            AuditAction.BULK_UPDATE,
            AuditObjectType.DECISION,
            campaign_id,
            object_name=f"Bulk decisions for campaign {campaign_id}",
            details={"count": count, "campaign_id": campaign_id},
        )
        return count

    def scope_campaign(
        self,
        ctx: AuditContext,
        campaign_id: str,
        application_ids: Optional[List[str]] = None,
    ) -> int:
        """Create a pending decision for every current access grant not yet in the campaign"""
        self.require_campaign(campaign_id)
        grants = self.directory.list_access(application_ids)
        pairs = [(grant.user_id, grant.application_id) for grant in grants]
        return self.bulk_create_decisions(ctx, campaign_id, pairs)
