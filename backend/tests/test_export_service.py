import csv
import io
from datetime import date, datetime, timezone

import pytest
from openpyxl import load_workbook
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from saas_control.core.database import Base
from saas_control.core.exceptions import ResourceNotFoundError, ValidationError
from saas_control.models.audit import AuditEvent
from saas_control.repositories.memory_store import InMemoryDecisionStore, InMemoryDirectoryStore
from saas_control.repositories.mock_data import build_mock_dataset
from saas_control.repositories.seed import seed_database
from saas_control.repositories.sql_store import SqlAuditStore, SqlDecisionStore, SqlDirectoryStore
from saas_control.schemas.access_review import CampaignCreate, CampaignStatus
from saas_control.services.access_review_service import AccessReviewService
from saas_control.services.audit_service import AuditService, user_context
from saas_control.services.export_service import (
    DECISION_COLUMNS,
    CsvColumn,
    ExportService,
    escape_csv,
    generate_csv,
    generate_filename,
)

ACTOR = user_context("usr_001", "admin@company.com")


def _make_session():
    engine = create_engine("sqlite:///:memory:")
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    seed_database(db, build_mock_dataset())
    return db


def _exports(db, max_rows=50000):
    audit = AuditService(SqlAuditStore(db))
    directory = SqlDirectoryStore(db)
    reviews = AccessReviewService(SqlDecisionStore(db), directory, audit)
    return ExportService(reviews, directory, audit, max_rows=max_rows)


def _parse(content: bytes):
    return list(csv.reader(io.StringIO(content.decode("utf-8"))))


def test_escape_csv_values():
    assert escape_csv(None) == ""
    assert escape_csv(True) == "Yes"
    assert escape_csv(False) == "No"
    assert escape_csv(float("nan")) == ""
    assert escape_csv(float("inf")) == ""
    assert escape_csv(12.0) == "12"
    assert escape_csv(12.5) == "12.5"
    assert escape_csv(date(2026, 1, 2)) == "2026-01-02"
    assert escape_csv(datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)) == "2026-01-02T03:04:05+00:00"
    assert escape_csv("plain") == "plain"
    assert escape_csv("Salesforce, Inc.") == '"Salesforce, Inc."'
    assert escape_csv('say "hi"') == '"say ""hi"""'


def test_generate_csv_parses_back():
    rows = [
        {"name": "Salesforce, Inc.", "note": 'line one\nline "two"'},
        {"name": "GitHub", "note": None},
    ]
    columns = [CsvColumn("Name", "name"), CsvColumn("Note", "note"), CsvColumn("Upper", lambda r: r["name"].upper())]

    parsed = list(csv.reader(io.StringIO(generate_csv(rows, columns))))
    assert parsed == [
        ["Name", "Note", "Upper"],
        ["Salesforce, Inc.", 'line one\nline "two"', "SALESFORCE, INC."],
        ["GitHub", "", "GITHUB"],
    ]


def test_generate_csv_without_rows_has_header_only():
    assert generate_csv([], [CsvColumn("A", "a"), CsvColumn("B", "b")]) == "A,B"


def test_generate_filename_format():
    now = datetime(2026, 3, 9, 14, 5, 7, tzinfo=timezone.utc)
    assert generate_filename("access_review_cmp_q1", "csv", now) == "access_review_cmp_q1_20260309T140507.csv"
    assert generate_filename("campaigns", "xlsx", now).endswith(".xlsx")


def test_export_campaign_decisions_csv_is_audited():
    db = _make_session()
    try:
        export = _exports(db).export_campaign_decisions(ACTOR, "cmp_q1", "csv")

        assert export.row_count == 3
        assert export.filename.startswith("access_review_cmp_q1_")
        rows = _parse(export.content)
        assert rows[0] == [col.header for col in DECISION_COLUMNS]
        assert len(rows) == 4
        first = dict(zip(rows[0], rows[1]))
        assert first["User Email"] == "priya.n@company.com"
        assert first["Application"] == "Salesforce"
        assert first["Access Level"] == "user"
        assert first["Decision"] == "pending"

        event = db.query(AuditEvent).filter(AuditEvent.action == "export").one()
        assert event.object_id == "bulk"
        assert '"record_count": 3' in event.details_json
    finally:
        db.close()


def test_empty_export_is_still_audited():
    db = _make_session()
    try:
        exports = _exports(db)
        campaign = exports.access_reviews.create_campaign(ACTOR, CampaignCreate(name="Nothing yet"))

        export = exports.export_campaign_decisions(ACTOR, campaign.id)
        assert export.row_count == 0
        assert len(_parse(export.content)) == 1
        assert db.query(AuditEvent).filter(AuditEvent.action == "export").count() == 1
    finally:
        db.close()


def test_export_unknown_campaign():
    db = _make_session()
    try:
        with pytest.raises(ResourceNotFoundError):
            _exports(db).export_campaign_decisions(ACTOR, "missing")
    finally:
        db.close()


def test_export_rejects_unknown_format_and_oversized_exports():
    db = _make_session()
    try:
        with pytest.raises(ValidationError):
            _exports(db).export_campaigns(ACTOR, fmt="pdf")
        with pytest.raises(ValidationError):
            _exports(db, max_rows=2).export_campaign_decisions(ACTOR, "cmp_q1")
    finally:
        db.close()


def test_export_campaigns_xlsx():
    db = _make_session()
    try:
        export = _exports(db).export_campaigns(ACTOR, fmt="xlsx")

        assert export.filename.endswith(".xlsx")
        assert export.row_count == 2
        sheet = load_workbook(io.BytesIO(export.content)).active
        assert sheet["A1"].value == "Campaign ID"
        assert sheet["A1"].font.bold
        assert sheet.max_row == 3
        assert {sheet["A2"].value, sheet["A3"].value} == {"cmp_q1", "cmp_fin"}
    finally:
        db.close()


def test_export_on_mock_data_without_audit_store():
    dataset = build_mock_dataset()
    directory = InMemoryDirectoryStore(dataset)
    audit = AuditService(None)
    reviews = AccessReviewService(InMemoryDecisionStore(dataset), directory, audit)

    export = ExportService(reviews, directory, audit).export_campaigns(ACTOR, CampaignStatus.COMPLETED)
    rows = _parse(export.content)
    assert len(rows) == 2
    record = dict(zip(rows[0], rows[1]))
    assert record["Campaign ID"] == "cmp_fin"
    assert record["Completion"] == "100%"
