"""Seed data for running the console without a database"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

MockRow = Dict[str, Any]


class MockDataset:
    """Process-lifetime rows shared by the in-memory stores"""

    def __init__(
        self,
        users: List[MockRow],
        applications: List[MockRow],
        access: List[MockRow],
        campaigns: List[MockRow],
        decisions: List[MockRow],
    ):
        self.users = users
        self.applications = applications
        self.access = access
        self.campaigns = campaigns
        self.decisions = decisions


def build_mock_dataset(now: Optional[datetime] = None) -> MockDataset:
    """Small demo organisation: four people, three apps, two campaigns"""
    now = now or datetime.now(timezone.utc)

    users = [
        {"id": "usr_001", "name": "Maya Chen", "email": "admin@company.com", "department": "IT", "role": "IT_ADMIN"},
        {"id": "usr_002", "name": "Jordan Lee", "email": "jordan.lee@company.com", "department": "Engineering", "role": "REVIEWER"},
        {"id": "usr_003", "name": "Priya Natarajan", "email": "priya.n@company.com", "department": "Finance", "role": "FINANCE_ADMIN"},
        {"id": "usr_004", "name": "Sam O'Neil", "email": "sam.oneil@company.com", "department": "Sales", "role": "READ_ONLY"},
    ]
    applications = [
        {"id": "app_001", "name": "Salesforce", "vendor": "Salesforce, Inc.", "category": "CRM", "risk_level": "high", "monthly_cost": 12500.0},
        {"id": "app_002", "name": "GitHub", "vendor": "GitHub", "category": "Engineering", "risk_level": "medium", "monthly_cost": 4200.0},
        {"id": "app_003", "name": "Slack", "vendor": "Salesforce, Inc.", "category": "Collaboration", "risk_level": "low", "monthly_cost": 3100.0},
    ]
    access = [
        {"user_id": "usr_002", "application_id": "app_002", "access_level": "admin", "last_login": now - timedelta(days=1)},
        {"user_id": "usr_003", "application_id": "app_001", "access_level": "user", "last_login": now - timedelta(days=42)},
        {"user_id": "usr_004", "application_id": "app_001", "access_level": "user", "last_login": now - timedelta(days=3)},
        {"user_id": "usr_004", "application_id": "app_003", "access_level": "user", "last_login": None},
        {"user_id": "usr_002", "application_id": "app_003", "access_level": "user", "last_login": now - timedelta(hours=5)},
    ]
    campaigns = [
        {"id": "cmp_q1", "name": "Q1 High-Risk App Certification", "status": "active", "due_date": now + timedelta(days=14), "created_at": now - timedelta(days=7)},
        {"id": "cmp_fin", "name": "Finance Systems Review", "status": "completed", "due_date": now - timedelta(days=30), "created_at": now - timedelta(days=60)},
    ]
    decisions = [
        _pending("dec_001", "cmp_q1", "usr_003", "app_001", now - timedelta(days=7)),
        _pending("dec_002", "cmp_q1", "usr_004", "app_001", now - timedelta(days=7, microseconds=-1)),
        _pending("dec_003", "cmp_q1", "usr_002", "app_002", now - timedelta(days=7, microseconds=-2)),
        {
            **_pending("dec_004", "cmp_fin", "usr_003", "app_001", now - timedelta(days=60)),
            "decision": "approved",
            "decided_by": "usr_001",
            "decided_at": now - timedelta(days=35),
            "rationale": "Required for month-end close",
        },
    ]
    return MockDataset(users, applications, access, campaigns, decisions)


def _pending(decision_id: str, campaign_id: str, user_id: str, application_id: str, created_at: datetime) -> MockRow:
    return {
        "id": decision_id,
        "campaign_id": campaign_id,
        "user_id": user_id,
        "application_id": application_id,
        "decision": "pending",
        "decided_by": None,
        "decided_at": None,
        "rationale": None,
        "created_at": created_at,
    }
