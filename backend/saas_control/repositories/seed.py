"""Copy the demo dataset into a relational store"""

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from saas_control.models.access_review import AccessReviewCampaign, AccessReviewDecision
from saas_control.models.directory import Application, DirectoryUser, UserAppAccess
from saas_control.repositories.mock_data import MockDataset

logger = logging.getLogger(__name__)


def seed_database(db: Session, dataset: MockDataset) -> int:
    """
    Insert dataset rows that are not there yet

    Users, applications, campaigns and decisions are matched by id; access
    rows by (user_id, application_id).

    Returns:
        int: Number of rows added
    """
    added = 0

    for model, rows in (
        (DirectoryUser, dataset.users),
        (Application, dataset.applications),
        (AccessReviewCampaign, dataset.campaigns),
        (AccessReviewDecision, dataset.decisions),
    ):
        existing = {row_id for (row_id,) in db.query(model.id)}
        for row in rows:
            if row["id"] in existing:
                continue
            values = dict(row)
            if model is Application and values.get("monthly_cost") is not None:
                values["monthly_cost"] = Decimal(str(values["monthly_cost"]))
            db.add(model(**values))
            added += 1
        # Parents must exist before their children are flushed
        db.flush()

    granted = {
        (user_id, application_id)
        for user_id, application_id in db.query(UserAppAccess.user_id, UserAppAccess.application_id)
    }
    for row in dataset.access:
        if (row["user_id"], row["application_id"]) in granted:
            continue
        db.add(UserAppAccess(**row))
        added += 1

    db.commit()
    logger.info(f"Seeded {added} demo rows")
    return added
