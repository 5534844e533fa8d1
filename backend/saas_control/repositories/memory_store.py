"""In-memory stores used when no relational store is configured"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from saas_control.core.exceptions import ResourceNotFoundError
from saas_control.repositories.mock_data import MockDataset, MockRow
from saas_control.repositories.sql_store import build_completion_stats
from saas_control.schemas.access_review import (
    AccessPair,
    ApplicationSnapshot,
    CampaignCreate,
    CampaignResponse,
    CompletionStats,
    DecisionResponse,
    UserSnapshot,
)
from saas_control.schemas.auth import SessionUser
from saas_control.utils.format import calculate_percent

logger = logging.getLogger(__name__)

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


class InMemoryDecisionStore:
    """Campaigns and decisions kept in process memory; resets on restart"""

    def __init__(self, dataset: MockDataset):
        self._data = dataset
        self._lock = threading.Lock()

    def _campaign_row(self, campaign_id: str) -> Optional[MockRow]:
        return next((c for c in self._data.campaigns if c["id"] == campaign_id), None)

    def _with_stats(self, campaign: MockRow) -> CampaignResponse:
        states = [d["decision"] for d in self._data.decisions if d["campaign_id"] == campaign["id"]]
        total = len(states)
        completed = sum(1 for s in states if s != "pending")
        return CampaignResponse(
            id=campaign["id"],
            name=campaign["name"],
            status=campaign["status"],
            due_date=campaign.get("due_date"),
            created_at=campaign.get("created_at"),
            tasks_total=total,
            tasks_completed=completed,
            completion_percent=calculate_percent(completed, total),
        )

    def _snapshot(self, row: MockRow) -> DecisionResponse:
        user = next((u for u in self._data.users if u["id"] == row["user_id"]), None)
        app = next((a for a in self._data.applications if a["id"] == row["application_id"]), None)
        return DecisionResponse(
            **row,
            user=UserSnapshot(**{k: user[k] for k in ("id", "name", "email", "department")}) if user else None,
            application=ApplicationSnapshot(**app) if app else None,
        )

    def list_campaigns(self, status: Optional[str] = None) -> List[CampaignResponse]:
        with self._lock:
            rows = [c for c in self._data.campaigns if not status or c["status"] == status]
            rows.sort(key=lambda c: (c.get("due_date") or _FAR_FUTURE, c["name"]))
            return [self._with_stats(c) for c in rows]

    def get_campaign(self, campaign_id: str) -> Optional[CampaignResponse]:
        with self._lock:
            campaign = self._campaign_row(campaign_id)
            return self._with_stats(campaign) if campaign else None

    def create_campaign(self, data: CampaignCreate) -> CampaignResponse:
        row = {
            "id": uuid.uuid4().hex,
            "name": data.name,
            "status": data.status.value,
            "due_date": data.due_date,
            "created_at": datetime.now(timezone.utc),
        }
        with self._lock:
            self._data.campaigns.append(row)
            return self._with_stats(row)

    def update_campaign(self, campaign_id: str, changes: Dict[str, Any]) -> CampaignResponse:
        with self._lock:
            campaign = self._campaign_row(campaign_id)
            if not campaign:
                raise ResourceNotFoundError("Campaign")
            # Build the response from a copy so a bad change leaves the row untouched
            updated = self._with_stats({**campaign, **changes})
            campaign.update(changes)
            return updated

    def delete_campaign(self, campaign_id: str) -> CampaignResponse:
        with self._lock:
            campaign = self._campaign_row(campaign_id)
            if not campaign:
                raise ResourceNotFoundError("Campaign")
            snapshot = self._with_stats(campaign)
            self._data.campaigns.remove(campaign)
            self._data.decisions[:] = [d for d in self._data.decisions if d["campaign_id"] != campaign_id]
            return snapshot

    def list_decisions(self, campaign_id: str) -> List[DecisionResponse]:
        with self._lock:
            rows = [d for d in self._data.decisions if d["campaign_id"] == campaign_id]
            rows.sort(key=lambda d: d["created_at"])
            return [self._snapshot(d) for d in rows]

    def get_decision(self, decision_id: str) -> Optional[DecisionResponse]:
        with self._lock:
            row = next((d for d in self._data.decisions if d["id"] == decision_id), None)
            return self._snapshot(row) if row else None

    def record_decision(
        self,
        decision_id: str,
        state: str,
        decider_id: str,
        rationale: Optional[str] = None,
    ) -> DecisionResponse:
        with self._lock:
            row = next((d for d in self._data.decisions if d["id"] == decision_id), None)
            if not row:
                raise ResourceNotFoundError("Decision")
            row.update(
                decision=state,
                decided_by=decider_id,
                decided_at=datetime.now(timezone.utc),
                rationale=rationale,
            )
            return self._snapshot(row)

    def bulk_insert_pending(self, campaign_id: str, pairs: Iterable[Tuple[str, str]]) -> int:
        with self._lock:
            seen = {
                (d["user_id"], d["application_id"])
                for d in self._data.decisions
                if d["campaign_id"] == campaign_id
            }
            inserted = 0
            for user_id, application_id in pairs:
                if (user_id, application_id) in seen:
                    continue
                seen.add((user_id, application_id))
                self._data.decisions.append({
                    "id": uuid.uuid4().hex,
                    "campaign_id": campaign_id,
                    "user_id": user_id,
                    "application_id": application_id,
                    "decision": "pending",
                    "decided_by": None,
                    "decided_at": None,
                    "rationale": None,
                    "created_at": datetime.now(timezone.utc),
                })
                inserted += 1
        logger.info(f"Inserted {inserted} pending decisions for campaign {campaign_id} (mock)")
        return inserted

    def completion_stats(self, campaign_id: str) -> CompletionStats:
        counts: Dict[str, int] = {}
        with self._lock:
            for d in self._data.decisions:
                if d["campaign_id"] == campaign_id:
                    counts[d["decision"]] = counts.get(d["decision"], 0) + 1
        return build_completion_stats(counts)


class InMemoryDirectoryStore:
    """Directory lookups against the mock dataset"""

    def __init__(self, dataset: MockDataset):
        self._data = dataset

    def find_user_by_email(self, email: str) -> Optional[SessionUser]:
        wanted = email.strip().lower()
        user = next((u for u in self._data.users if u["email"].lower() == wanted), None)
        return SessionUser(**user) if user else None

    def list_access(self, application_ids: Optional[List[str]] = None) -> List[AccessPair]:
        rows = [
            a for a in self._data.access
            if not application_ids or a["application_id"] in application_ids
        ]
        rows.sort(key=lambda a: (a["application_id"], a["user_id"]))
        return [AccessPair(**a) for a in rows]

    def access_for_pairs(self, pairs: Iterable[Tuple[str, str]]) -> Dict[Tuple[str, str], AccessPair]:
        wanted = set(pairs)
        return {
            (a["user_id"], a["application_id"]): AccessPair(**a)
            for a in self._data.access
            if (a["user_id"], a["application_id"]) in wanted
        }
