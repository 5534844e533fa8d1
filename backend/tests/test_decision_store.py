import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from saas_control.core.database import Base
from saas_control.core.exceptions import ResourceNotFoundError
from saas_control.models.access_review import AccessReviewDecision
from saas_control.models.directory import DirectoryUser, UserAppAccess
from saas_control.repositories.memory_store import InMemoryDecisionStore, InMemoryDirectoryStore
from saas_control.repositories.mock_data import build_mock_dataset
from saas_control.repositories.seed import seed_database
from saas_control.repositories.sql_store import SqlDecisionStore, SqlDirectoryStore
from saas_control.schemas.access_review import CampaignCreate


def _make_session():
    engine = create_engine("sqlite:///:memory:")
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    return SessionLocal()


def _seeded_session():
    db = _make_session()
    seed_database(db, build_mock_dataset())
    return db


def test_seed_is_idempotent():
    db = _make_session()
    try:
        dataset = build_mock_dataset()
        first = seed_database(db, dataset)
        assert first == 4 + 3 + 2 + 4 + 5
        assert seed_database(db, dataset) == 0
    finally:
        db.close()


def test_bulk_insert_pending_skips_existing_pairs():
    db = _seeded_session()
    try:
        store = SqlDecisionStore(db)
        campaign = store.create_campaign(CampaignCreate(name="Q3 Engineering Review"))

        pairs = [("usr_002", "app_002"), ("usr_003", "app_001"), ("usr_002", "app_002")]
        assert store.bulk_insert_pending(campaign.id, pairs) == 2
        assert store.bulk_insert_pending(campaign.id, pairs) == 0

        decisions = store.list_decisions(campaign.id)
        assert [(d.user_id, d.application_id) for d in decisions] == [
            ("usr_002", "app_002"),
            ("usr_003", "app_001"),
        ]
        assert all(d.decision.value == "pending" for d in decisions)
        assert all(d.decided_by is None and d.decided_at is None for d in decisions)
    finally:
        db.close()


def test_completion_percent_for_empty_and_partial_campaigns():
    db = _seeded_session()
    try:
        store = SqlDecisionStore(db)
        empty = store.create_campaign(CampaignCreate(name="Empty"))
        assert store.get_campaign(empty.id).completion_percent == 0
        assert store.completion_stats(empty.id).total == 0

        store.record_decision("dec_001", "approved", "usr_001")
        campaign = store.get_campaign("cmp_q1")
        assert campaign.tasks_total == 3
        assert campaign.tasks_completed == 1
        assert campaign.completion_percent == 33

        stats = store.completion_stats("cmp_q1")
        assert (stats.pending, stats.approved, stats.revoked) == (2, 1, 0)
    finally:
        db.close()


def test_record_decision_sets_decider_and_timestamp():
    db = _seeded_session()
    try:
        store = SqlDecisionStore(db)
        updated = store.record_decision("dec_002", "revoked", "usr_001", "No longer in sales")

        assert updated.decision.value == "revoked"
        assert updated.decided_by == "usr_001"
        assert updated.decided_at is not None
        assert updated.rationale == "No longer in sales"
        assert updated.user.email == "sam.oneil@company.com"
        assert updated.application.name == "Salesforce"
    finally:
        db.close()


def test_record_decision_unknown_id():
    db = _seeded_session()
    try:
        with pytest.raises(ResourceNotFoundError):
            SqlDecisionStore(db).record_decision("missing", "approved", "usr_001")
    finally:
        db.close()


def test_monetary_values_are_floats():
    db = _seeded_session()
    try:
        decision = SqlDecisionStore(db).get_decision("dec_001")
        assert isinstance(decision.application.monthly_cost, float)
        assert decision.application.monthly_cost == 12500.0
    finally:
        db.close()


def test_campaigns_ordered_by_due_date_with_undated_last():
    db = _seeded_session()
    try:
        store = SqlDecisionStore(db)
        store.create_campaign(CampaignCreate(name="Undated"))

        names = [c.id for c in store.list_campaigns()]
        assert names[:2] == ["cmp_fin", "cmp_q1"]
        assert len(names) == 3

        assert [c.id for c in store.list_campaigns("active")] == ["cmp_q1"]
    finally:
        db.close()


def test_delete_campaign_removes_decisions():
    db = _seeded_session()
    try:
        store = SqlDecisionStore(db)
        deleted = store.delete_campaign("cmp_q1")

        assert deleted.tasks_total == 3
        assert store.get_campaign("cmp_q1") is None
        assert db.query(AccessReviewDecision).filter(AccessReviewDecision.campaign_id == "cmp_q1").count() == 0

        with pytest.raises(ResourceNotFoundError):
            store.delete_campaign("cmp_q1")
    finally:
        db.close()


def test_directory_lookup_is_case_insensitive():
    db = _seeded_session()
    try:
        directory = SqlDirectoryStore(db)
        user = directory.find_user_by_email("  Admin@Company.com ")
        assert user is not None
        assert user.id == "usr_001"
        assert directory.find_user_by_email("nobody@company.com") is None

        assert len(directory.list_access()) == 5
        assert {a.user_id for a in directory.list_access(["app_001"])} == {"usr_003", "usr_004"}
    finally:
        db.close()


def test_memory_store_matches_sql_semantics():
    dataset = build_mock_dataset()
    store = InMemoryDecisionStore(dataset)

    assert [c.id for c in store.list_campaigns()] == ["cmp_fin", "cmp_q1"]
    assert store.get_campaign("cmp_fin").completion_percent == 100

    campaign = store.create_campaign(CampaignCreate(name="Q3"))
    pairs = [("usr_002", "app_002"), ("usr_002", "app_002"), ("usr_004", "app_003")]
    assert store.bulk_insert_pending(campaign.id, pairs) == 2
    assert store.bulk_insert_pending(campaign.id, pairs) == 0

    store.record_decision("dec_001", "approved", "usr_001")
    assert store.get_campaign("cmp_q1").completion_percent == 33
    assert store.get_decision("dec_001").decided_by == "usr_001"

    with pytest.raises(ResourceNotFoundError):
        store.record_decision("missing", "approved", "usr_001")

    store.delete_campaign("cmp_q1")
    assert store.list_decisions("cmp_q1") == []


def test_memory_directory():
    directory = InMemoryDirectoryStore(build_mock_dataset())
    assert directory.find_user_by_email("ADMIN@company.com").id == "usr_001"
    grants = directory.access_for_pairs([("usr_003", "app_001"), ("usr_001", "app_003")])
    assert list(grants) == [("usr_003", "app_001")]


def test_memory_update_leaves_row_untouched_on_bad_change():
    store = InMemoryDecisionStore(build_mock_dataset())

    with pytest.raises(PydanticValidationError):
        store.update_campaign("cmp_q1", {"name": None})

    campaign = store.get_campaign("cmp_q1")
    assert campaign.name == "Q1 High-Risk App Certification"
    assert [c.id for c in store.list_campaigns()] == ["cmp_fin", "cmp_q1"]

    updated = store.update_campaign("cmp_q1", {"status": "completed"})
    assert updated.status.value == "completed"
    assert store.get_campaign("cmp_q1").status.value == "completed"


def test_access_for_pairs_handles_large_batches():
    db = _seeded_session()
    try:
        for i in range(1500):
            user_id = f"usr_bulk_{i:04d}"
            db.add(DirectoryUser(id=user_id, name=f"Bulk User {i}", email=f"bulk{i:04d}@company.com"))
            db.add(UserAppAccess(user_id=user_id, application_id="app_001", access_level="user"))
        db.commit()

        pairs = [(f"usr_bulk_{i:04d}", "app_001") for i in range(1500)]
        pairs.append(("usr_bulk_0000", "app_003"))
        grants = SqlDirectoryStore(db).access_for_pairs(pairs)

        assert len(grants) == 1500
        assert grants[("usr_bulk_1499", "app_001")].access_level == "user"
        assert ("usr_bulk_0000", "app_003") not in grants
    finally:
        db.close()
