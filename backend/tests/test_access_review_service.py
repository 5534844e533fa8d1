import pytest
from pydantic import ValidationError as PydanticValidationError
from prometheus_client import REGISTRY
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from saas_control.core.database import Base
from saas_control.core.exceptions import DecisionAlreadyFinalError, ResourceNotFoundError, ValidationError
from saas_control.models.audit import AuditEvent
from saas_control.repositories.memory_store import InMemoryDecisionStore, InMemoryDirectoryStore
from saas_control.repositories.mock_data import build_mock_dataset
from saas_control.repositories.seed import seed_database
from saas_control.repositories.sql_store import SqlAuditStore, SqlDecisionStore, SqlDirectoryStore
from saas_control.schemas.access_review import CampaignCreate, CampaignStatus, CampaignUpdate, DecisionOutcome
from saas_control.services.access_review_service import (
    BULK_DECISION_FAILED,
    DECISION_FAILED,
    AccessReviewService,
)
from saas_control.services.audit_service import AuditService, user_context

REVIEWER = user_context("usr_001", "admin@company.com")


def _make_session():
    engine = create_engine("sqlite:///:memory:")
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    seed_database(db, build_mock_dataset())
    return db


def _service(db):
    return AccessReviewService(SqlDecisionStore(db), SqlDirectoryStore(db), AuditService(SqlAuditStore(db)))


def _events(db, action=None):
    query = db.query(AuditEvent)
    if action:
        query = query.filter(AuditEvent.action == action)
    return query.all()


def test_make_decision_emits_exactly_one_audit_event():
    db = _make_session()
    try:
        service = _service(db)
        updated = service.make_decision(REVIEWER, "dec_001", DecisionOutcome.APPROVED, "Still on the deal desk")

        assert updated.decision.value == "approved"
        assert updated.decided_by == "usr_001"

        events = _events(db)
        assert len(events) == 1
        event = events[0]
        assert event.action == "decision"
        assert event.object_type == "decision"
        assert event.object_id == "dec_001"
        assert event.actor == "usr_001"
        assert event.actor_email == "admin@company.com"
        assert '"rationale": "Still on the deal desk"' in event.details_json
    finally:
        db.close()


def test_unknown_decision_returns_failure_without_audit():
    db = _make_session()
    try:
        result = _service(db).make_access_decision(REVIEWER, "does-not-exist", DecisionOutcome.APPROVED)

        assert result.success is False
        assert result.error == DECISION_FAILED
        assert _events(db) == []
    finally:
        db.close()


def test_audit_failure_does_not_fail_the_decision(monkeypatch):
    db = _make_session()
    try:
        def broken_append(self, **kwargs):
            raise RuntimeError("audit table unavailable")

        monkeypatch.setattr(SqlAuditStore, "append", broken_append)
        before = REGISTRY.get_sample_value("saascontrol_audit_failures_total", {"action": "decision"}) or 0

        result = _service(db).make_access_decision(REVIEWER, "dec_002", DecisionOutcome.REVOKED)

        assert result.success is True
        assert result.decision.decision.value == "revoked"
        assert SqlDecisionStore(db).get_decision("dec_002").decision.value == "revoked"
        assert _events(db) == []
        after = REGISTRY.get_sample_value("saascontrol_audit_failures_total", {"action": "decision"})
        assert after == before + 1
    finally:
        db.close()


def test_final_decision_cannot_change():
    db = _make_session()
    try:
        service = _service(db)
        service.make_decision(REVIEWER, "dec_001", DecisionOutcome.APPROVED)

        with pytest.raises(DecisionAlreadyFinalError) as exc:
            service.make_decision(REVIEWER, "dec_001", DecisionOutcome.REVOKED)
        assert exc.value.status_code == 409

        result = service.make_access_decision(REVIEWER, "dec_001", DecisionOutcome.REVOKED)
        assert result.success is False
        assert "already approved" in result.error

        assert SqlDecisionStore(db).get_decision("dec_001").decision.value == "approved"
        assert len(_events(db, "decision")) == 1
    finally:
        db.close()


def test_pending_is_not_a_decision():
    db = _make_session()
    try:
        with pytest.raises(ValidationError):
            _service(db).make_decision(REVIEWER, "dec_001", "pending")
        assert _events(db) == []
    finally:
        db.close()


def test_bulk_decision_records_each_item():
    db = _make_session()
    try:
        service = _service(db)
        result = service.bulk_access_decision(REVIEWER, ["dec_001", "dec_002"], DecisionOutcome.APPROVED)

        assert result.success is True
        assert result.count == 2
        assert result.error is None

        store = SqlDecisionStore(db)
        assert store.get_decision("dec_001").decision.value == "approved"
        assert store.get_decision("dec_002").decision.value == "approved"
        assert store.get_decision("dec_003").decision.value == "pending"
        assert store.get_decision("dec_001").rationale == "Bulk approved action"
        assert len(_events(db, "decision")) == 2
    finally:
        db.close()


def test_bulk_decision_keeps_earlier_items_when_one_fails():
    db = _make_session()
    try:
        result = _service(db).bulk_access_decision(
            REVIEWER, ["dec_001", "missing", "dec_003"], DecisionOutcome.REVOKED
        )

        assert result.success is False
        assert result.count == 2
        assert result.error == BULK_DECISION_FAILED
        assert [r.decision_id for r in result.results] == ["dec_001", "missing", "dec_003"]
        assert result.results[1].success is False
        assert result.results[1].error == "Decision not found"

        store = SqlDecisionStore(db)
        assert store.get_decision("dec_001").decision.value == "revoked"
        assert store.get_decision("dec_003").decision.value == "revoked"
    finally:
        db.close()


def test_campaign_lifecycle_is_audited():
    db = _make_session()
    try:
        service = _service(db)
        campaign = service.create_campaign(REVIEWER, CampaignCreate(name="  Q3 Engineering Review "))
        assert campaign.name == "Q3 Engineering Review"
        assert campaign.status == CampaignStatus.DRAFT

        with pytest.raises(ValidationError):
            service.update_campaign(REVIEWER, campaign.id, CampaignUpdate())

        updated = service.update_campaign(REVIEWER, campaign.id, CampaignUpdate(status=CampaignStatus.ACTIVE))
        assert updated.status == CampaignStatus.ACTIVE

        service.delete_campaign(REVIEWER, campaign.id)
        assert service.get_campaign(campaign.id) is None

        actions = [e.action for e in db.query(AuditEvent).order_by(AuditEvent.id)]
        assert actions == ["create", "update", "delete"]
        update_event = _events(db, "update")[0]
        assert '"changes": ["status"]' in update_event.details_json
    finally:
        db.close()


def test_update_unknown_campaign():
    db = _make_session()
    try:
        with pytest.raises(ResourceNotFoundError):
            _service(db).update_campaign(REVIEWER, "missing", CampaignUpdate(name="New name"))
    finally:
        db.close()


def test_scope_campaign_inserts_access_matrix_once():
    db = _make_session()
    try:
        service = _service(db)
        campaign = service.create_campaign(REVIEWER, CampaignCreate(name="Full review"))

        assert service.scope_campaign(REVIEWER, campaign.id, ["app_001"]) == 2
        assert service.scope_campaign(REVIEWER, campaign.id) == 3
        assert service.scope_campaign(REVIEWER, campaign.id) == 0

        stats = service.completion_stats(campaign.id)
        assert stats.total == 5
        assert stats.completion_percent == 0

        bulk_events = _events(db, "bulk_update")
        assert len(bulk_events) == 3
        assert all(e.object_id == campaign.id for e in bulk_events)
    finally:
        db.close()


def test_scope_unknown_campaign():
    db = _make_session()
    try:
        with pytest.raises(ResourceNotFoundError):
            _service(db).scope_campaign(REVIEWER, "missing")
        assert _events(db) == []
    finally:
        db.close()


def test_campaign_update_stores_plain_status_values():
    dataset = build_mock_dataset()
    directory = InMemoryDirectoryStore(dataset)
    service = AccessReviewService(InMemoryDecisionStore(dataset), directory, AuditService(None))

    service.update_campaign(REVIEWER, "cmp_q1", CampaignUpdate(status=CampaignStatus.COMPLETED))
    row = next(c for c in dataset.campaigns if c["id"] == "cmp_q1")
    assert row["status"] == "completed"
    assert type(row["status"]) is str

    completed = service.get_all_campaigns(CampaignStatus.COMPLETED)
    assert {c.id for c in completed} == {"cmp_q1", "cmp_fin"}


def test_campaign_update_rejects_explicit_nulls():
    with pytest.raises(PydanticValidationError):
        CampaignUpdate(name=None)
    with pytest.raises(PydanticValidationError):
        CampaignUpdate(status=None)
    assert CampaignUpdate(due_date=None).changes() == {"due_date": None}
