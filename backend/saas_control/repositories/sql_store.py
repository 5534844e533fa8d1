"""SQLAlchemy-backed stores"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import case, func, insert, tuple_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from saas_control.core.exceptions import ResourceNotFoundError, StoreError
from saas_control.models.access_review import AccessReviewCampaign, AccessReviewDecision
from saas_control.models.audit import AuditEvent
from saas_control.models.directory import Application, DirectoryUser, UserAppAccess, new_id
from saas_control.repositories.interfaces import clamp_limit
from saas_control.schemas.access_review import (
    AccessPair,
    ApplicationSnapshot,
    CampaignCreate,
    CampaignResponse,
    CompletionStats,
    DecisionResponse,
    UserSnapshot,
)
from saas_control.schemas.audit import AuditEventResponse, AuditFilters
from saas_control.schemas.auth import SessionUser
from saas_control.utils.format import calculate_percent, to_number

logger = logging.getLogger(__name__)

# Bound on (user, application) pairs per IN clause
PAIR_CHUNK_SIZE = 400


def _application_snapshot(app: Optional[Application]) -> Optional[ApplicationSnapshot]:
    if app is None:
        return None
    # Numeric columns come back as Decimal; convert once here
    return ApplicationSnapshot(
        id=app.id,
        name=app.name,
        vendor=app.vendor,
        category=app.category,
        risk_level=app.risk_level,
        monthly_cost=to_number(app.monthly_cost) if app.monthly_cost is not None else None,
    )


def _decision_response(row: AccessReviewDecision) -> DecisionResponse:
    return DecisionResponse(
        id=row.id,
        campaign_id=row.campaign_id,
        user_id=row.user_id,
        application_id=row.application_id,
        decision=row.decision,
        decided_by=row.decided_by,
        decided_at=row.decided_at,
        rationale=row.rationale,
        created_at=row.created_at,
        user=UserSnapshot.model_validate(row.user) if row.user else None,
        application=_application_snapshot(row.application),
    )


def _campaign_response(campaign: AccessReviewCampaign, total: int, completed: int) -> CampaignResponse:
    total = int(total or 0)
    completed = int(completed or 0)
    return CampaignResponse(
        id=campaign.id,
        name=campaign.name,
        status=campaign.status,
        due_date=campaign.due_date,
        created_at=campaign.created_at,
        tasks_total=total,
        tasks_completed=completed,
        completion_percent=calculate_percent(completed, total),
    )


class SqlDecisionStore:
    """Campaign and decision persistence on the relational store"""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Store operation '{operation}' failed: {e}")
            raise StoreError(f"Failed to {operation}")

    def _stats_query(self):
        completed = func.sum(
            case((AccessReviewDecision.decision != "pending", 1), else_=0)
        )
        return (
            self.db.query(
                AccessReviewCampaign,
                func.count(AccessReviewDecision.id),
                completed,
            )
            .outerjoin(AccessReviewDecision, AccessReviewDecision.campaign_id == AccessReviewCampaign.id)
            .group_by(AccessReviewCampaign.id)
        )

    def list_campaigns(self, status: Optional[str] = None) -> List[CampaignResponse]:
        query = self._stats_query()
        if status:
            query = query.filter(AccessReviewCampaign.status == status)
        rows = query.order_by(
            AccessReviewCampaign.due_date.asc().nulls_last(), AccessReviewCampaign.name.asc()
        ).all()
        return [_campaign_response(campaign, total, completed) for campaign, total, completed in rows]

    def get_campaign(self, campaign_id: str) -> Optional[CampaignResponse]:
        row = self._stats_query().filter(AccessReviewCampaign.id == campaign_id).first()
        if not row:
            return None
        campaign, total, completed = row
        return _campaign_response(campaign, total, completed)

    def create_campaign(self, data: CampaignCreate) -> CampaignResponse:
        campaign = AccessReviewCampaign(
            name=data.name,
            status=data.status.value,
            due_date=data.due_date,
        )
        self.db.add(campaign)
        self._commit("create campaign")
        self.db.refresh(campaign)
        logger.info(f"Created campaign {campaign.id} ({campaign.name})")
        return _campaign_response(campaign, 0, 0)

    def update_campaign(self, campaign_id: str, changes: Dict[str, Any]) -> CampaignResponse:
        campaign = self.db.get(AccessReviewCampaign, campaign_id)
        if not campaign:
            raise ResourceNotFoundError("Campaign")

        for field, value in changes.items():
            setattr(campaign, field, value)
        self._commit("update campaign")
        return self.get_campaign(campaign_id)

    def delete_campaign(self, campaign_id: str) -> CampaignResponse:
        snapshot = self.get_campaign(campaign_id)
        if not snapshot:
            raise ResourceNotFoundError("Campaign")

        self.db.query(AccessReviewDecision).filter(
            AccessReviewDecision.campaign_id == campaign_id
        ).delete(synchronize_session=False)
        self.db.query(AccessReviewCampaign).filter(
            AccessReviewCampaign.id == campaign_id
        ).delete(synchronize_session=False)
        self._commit("delete campaign")
        logger.info(f"Deleted campaign {campaign_id} with {snapshot.tasks_total} decisions")
        return snapshot

    def list_decisions(self, campaign_id: str) -> List[DecisionResponse]:
        rows = (
            self.db.query(AccessReviewDecision)
            .options(joinedload(AccessReviewDecision.user), joinedload(AccessReviewDecision.application))
            .filter(AccessReviewDecision.campaign_id == campaign_id)
            .order_by(AccessReviewDecision.created_at.asc(), AccessReviewDecision.id.asc())
            .all()
        )
        return [_decision_response(row) for row in rows]

    def get_decision(self, decision_id: str) -> Optional[DecisionResponse]:
        row = (
            self.db.query(AccessReviewDecision)
            .options(joinedload(AccessReviewDecision.user), joinedload(AccessReviewDecision.application))
            .filter(AccessReviewDecision.id == decision_id)
            .first()
        )
        return _decision_response(row) if row else None

    def record_decision(
        self,
        decision_id: str,
        state: str,
        decider_id: str,
        rationale: Optional[str] = None,
    ) -> DecisionResponse:
        row = self.db.get(AccessReviewDecision, decision_id)
        if not row:
            raise ResourceNotFoundError("Decision")

        row.decision = state
        row.decided_by = decider_id
        row.decided_at = datetime.now(timezone.utc)
        row.rationale = rationale
        self._commit("record decision")
        self.db.refresh(row)
        return _decision_response(row)

    def bulk_insert_pending(self, campaign_id: str, pairs: Iterable[Tuple[str, str]]) -> int:
        existing = {
            (user_id, application_id)
            for user_id, application_id in self.db.query(
                AccessReviewDecision.user_id, AccessReviewDecision.application_id
            ).filter(AccessReviewDecision.campaign_id == campaign_id)
        }

        base = datetime.now(timezone.utc)
        rows = []
        seen = set(existing)
        for user_id, application_id in pairs:
            key = (user_id, application_id)
            if key in seen:
                continue
            seen.add(key)
            rows.append({
                "id": new_id(),
                "campaign_id": campaign_id,
                "user_id": user_id,
                "application_id": application_id,
                "decision": "pending",
                "created_at": base + timedelta(microseconds=len(rows)),
            })

        if not rows:
            return 0

        try:
            result = self.db.execute(self._insert_skipping_duplicates(), rows)
            inserted = result.rowcount if result.rowcount is not None and result.rowcount >= 0 else len(rows)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Bulk insert for campaign {campaign_id} failed: {e}")
            raise StoreError("Failed to create decisions")

        logger.info(f"Inserted {inserted} pending decisions for campaign {campaign_id}")
        return inserted

    def _insert_skipping_duplicates(self):
        """INSERT that ignores rows colliding with uq_campaign_user_app"""
        table = AccessReviewDecision.__table__
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert as pg_insert
            return pg_insert(table).on_conflict_do_nothing(
                index_elements=["campaign_id", "user_id", "application_id"]
            )
        if dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert as sqlite_insert
            return sqlite_insert(table).on_conflict_do_nothing(
                index_elements=["campaign_id", "user_id", "application_id"]
            )
        return insert(table)

    def completion_stats(self, campaign_id: str) -> CompletionStats:
        counts = dict(
            self.db.query(AccessReviewDecision.decision, func.count(AccessReviewDecision.id))
            .filter(AccessReviewDecision.campaign_id == campaign_id)
            .group_by(AccessReviewDecision.decision)
            .all()
        )
        return build_completion_stats(counts)


def build_completion_stats(counts: Dict[str, int]) -> CompletionStats:
    """Stats from a {decision state: row count} mapping"""
    approved = int(counts.get("approved", 0))
    revoked = int(counts.get("revoked", 0))
    pending = int(counts.get("pending", 0))
    total = approved + revoked + pending
    completed = approved + revoked
    return CompletionStats(
        total=total,
        completed=completed,
        pending=pending,
        approved=approved,
        revoked=revoked,
        completion_percent=calculate_percent(completed, total),
    )


class SqlDirectoryStore:
    """Directory lookups on the relational store"""

    def __init__(self, db: Session):
        self.db = db

    def find_user_by_email(self, email: str) -> Optional[SessionUser]:
        user = (
            self.db.query(DirectoryUser)
            .filter(func.lower(DirectoryUser.email) == email.strip().lower())
            .first()
        )
        if not user:
            return None
        return SessionUser(
            id=user.id,
            email=user.email,
            name=user.name,
            role=user.role,
            department=user.department,
        )

    def list_access(self, application_ids: Optional[List[str]] = None) -> List[AccessPair]:
        query = self.db.query(UserAppAccess)
        if application_ids:
            query = query.filter(UserAppAccess.application_id.in_(application_ids))
        rows = query.order_by(UserAppAccess.application_id, UserAppAccess.user_id).all()
        return [_access_pair(row) for row in rows]

    def access_for_pairs(self, pairs: Iterable[Tuple[str, str]]) -> Dict[Tuple[str, str], AccessPair]:
        pairs = list(dict.fromkeys(pairs))
        found: Dict[Tuple[str, str], AccessPair] = {}
        key = tuple_(UserAppAccess.user_id, UserAppAccess.application_id)
        for start in range(0, len(pairs), PAIR_CHUNK_SIZE):
            chunk = pairs[start:start + PAIR_CHUNK_SIZE]
            rows = self.db.query(UserAppAccess).filter(key.in_(chunk)).all()
            found.update({(row.user_id, row.application_id): _access_pair(row) for row in rows})
        return found


def _access_pair(row: UserAppAccess) -> AccessPair:
    return AccessPair(
        user_id=row.user_id,
        application_id=row.application_id,
        access_level=row.access_level,
        last_login=row.last_login,
    )


class SqlAuditStore:
    """Append-only audit log on the relational store"""

    def __init__(self, db: Session):
        self.db = db

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
        event = AuditEvent(
            actor=actor,
            actor_email=actor_email,
            action=action,
            object_type=object_type,
            object_id=object_id,
            object_name=object_name,
            details_json=json.dumps(details, ensure_ascii=False, default=str) if details is not None else None,
        )
        self.db.add(event)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        self.db.refresh(event)
        return _audit_response(event)

    def _filtered(self, filters: Optional[AuditFilters]):
        query = self.db.query(AuditEvent)
        if not filters:
            return query
        if filters.actor:
            query = query.filter(AuditEvent.actor == filters.actor)
        if filters.object_type:
            query = query.filter(AuditEvent.object_type == filters.object_type)
        if filters.object_id:
            query = query.filter(AuditEvent.object_id == filters.object_id)
        if filters.action:
            query = query.filter(AuditEvent.action == filters.action)
        if filters.start:
            query = query.filter(AuditEvent.created_at >= filters.start)
        if filters.end:
            query = query.filter(AuditEvent.created_at <= filters.end)
        return query

    def list_events(self, filters: Optional[AuditFilters] = None, limit: int = 100) -> List[AuditEventResponse]:
        events = (
            self._filtered(filters)
            .order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
            .limit(clamp_limit(limit))
            .all()
        )
        return [_audit_response(ev) for ev in events]

    def events_for_object(self, object_type: str, object_id: str) -> List[AuditEventResponse]:
        return self.list_events(AuditFilters(object_type=object_type, object_id=object_id), limit=500)


def _audit_response(ev: AuditEvent) -> AuditEventResponse:
    details = None
    if ev.details_json:
        try:
            details = json.loads(ev.details_json)
        except ValueError:
            details = {"raw": ev.details_json}
    return AuditEventResponse(
        id=ev.id,
        actor=ev.actor,
        actor_email=ev.actor_email,
        action=ev.action,
        object_type=ev.object_type,
        object_id=ev.object_id,
        object_name=ev.object_name,
        details=details,
        created_at=ev.created_at,
    )
