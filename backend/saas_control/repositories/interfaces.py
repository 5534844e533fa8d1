"""Storage contracts used by the service layer.

Services depend on these protocols, never on a concrete store. Two
implementations exist for each: a SQLAlchemy-backed one and an in-memory
one used when no DATABASE_URL is configured.
"""

from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple

from saas_control.schemas.access_review import (
    AccessPair,
    CampaignCreate,
    CampaignResponse,
    CompletionStats,
    DecisionResponse,
)
from saas_control.schemas.audit import AuditEventResponse, AuditFilters
from saas_control.schemas.auth import SessionUser


class DecisionStore(Protocol):
    """Campaign and decision persistence."""

    def list_campaigns(self, status: Optional[str] = None) -> List[CampaignResponse]:
        """Campaigns ordered by due date, each with completion stats."""
        ...

    def get_campaign(self, campaign_id: str) -> Optional[CampaignResponse]:
        ...

    def create_campaign(self, data: CampaignCreate) -> CampaignResponse:
        ...

    def update_campaign(self, campaign_id: str, changes: Dict[str, Any]) -> CampaignResponse:
        """Apply field changes.

        Raises:
            ResourceNotFoundError: If the campaign does not exist.
        """
        ...

    def delete_campaign(self, campaign_id: str) -> CampaignResponse:
        """Delete a campaign together with its decisions.

        Raises:
            ResourceNotFoundError: If the campaign does not exist.
        """
        ...

    def list_decisions(self, campaign_id: str) -> List[DecisionResponse]:
        """Decisions of one campaign, oldest first, with user/application snapshots."""
        ...

    def get_decision(self, decision_id: str) -> Optional[DecisionResponse]:
        ...

    def record_decision(
        self,
        decision_id: str,
        state: str,
        decider_id: str,
        rationale: Optional[str] = None,
    ) -> DecisionResponse:
        """Overwrite state, decider, timestamp and rationale without checking the prior state.

        Raises:
            ResourceNotFoundError: If the decision does not exist.
        """
        ...

    def bulk_insert_pending(self, campaign_id: str, pairs: Iterable[Tuple[str, str]]) -> int:
        """Insert one pending decision per (user_id, application_id).

        Pairs already present for the campaign are skipped.

        Returns:
            Number of rows actually inserted.
        """
        ...

    def completion_stats(self, campaign_id: str) -> CompletionStats:
        ...


class DirectoryStore(Protocol):
    """Read access to users, applications and the access matrix."""

    def find_user_by_email(self, email: str) -> Optional[SessionUser]:
        ...

    def list_access(self, application_ids: Optional[List[str]] = None) -> List[AccessPair]:
        ...

    def access_for_pairs(self, pairs: Iterable[Tuple[str, str]]) -> Dict[Tuple[str, str], AccessPair]:
        ...


class AuditStore(Protocol):
    """Append-only audit log."""

    def append(
        self,
        *,
        actor: str,
        actor_email: Optional[str],
        action: str,
        object_type: str,
        object_id: str,
        object_name: Optional[str],
        details: Optional[Dict[str, Any]],
    ) -> AuditEventResponse:
        ...

    def list_events(self, filters: Optional[AuditFilters] = None, limit: int = 100) -> List[AuditEventResponse]:
        ...

    def events_for_object(self, object_type: str, object_id: str) -> List[AuditEventResponse]:
        ...


def clamp_limit(limit: int) -> int:
    return max(1, min(limit, 500))

