"""Audit emitter - immutable trail of state-changing console actions.

Audit writes are best-effort: a failure is logged and counted, never raised
to the operation being documented.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, TypeVar

from prometheus_client import Counter

from saas_control.core.exceptions import AuditEmissionError
from saas_control.repositories.interfaces import AuditStore
from saas_control.schemas.audit import AuditAction, AuditEventResponse, AuditFilters, AuditObjectType

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"

AUDIT_FAILURES = Counter(
    "saascontrol_audit_failures_total",
    "Audit events that could not be appended",
    ["action"],
)

T = TypeVar("T")


@dataclass(frozen=True)
class AuditContext:
    """Who a state change is attributed to"""
    actor: str
    actor_email: Optional[str] = None


def system_context() -> AuditContext:
    """Context for automated operations"""
    return AuditContext(actor=SYSTEM_ACTOR)


def user_context(user_id: str, email: Optional[str] = None) -> AuditContext:
    """Context for an authenticated person"""
    return AuditContext(actor=user_id, actor_email=email)


def run_best_effort(label: str, operation: Callable[[], T]) -> Optional[T]:
    """
    Run operation, logging and discarding any failure

    Args:
        label: Metric label and log tag for the operation
        operation: Zero-argument callable

    Returns:
        The operation's result, or None if it failed
    """
    try:
        return operation()
    except Exception as e:
        error = AuditEmissionError(f"{label}: {e}")
        AUDIT_FAILURES.labels(label).inc()
        logger.error(f"Failed to create audit event: {error}")
        return None


class AuditService:
    """Append audit events; a service without a store silently skips them"""

    def __init__(self, store: Optional[AuditStore]):
        self.store = store

    @property
    def enabled(self) -> bool:
        return self.store is not None

    def emit(
        self,
        ctx: AuditContext,
        action: AuditAction,
        object_type: AuditObjectType,
        object_id: str,
        object_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEventResponse]:
        """Append one event. Never raises."""
        if self.store is None:
            logger.debug(f"Audit skipped (no store): {action.value} {object_type.value}/{object_id}")
            return None

        return run_best_effort(
            action.value,
            lambda: self.store.append(
                actor=ctx.actor,
                actor_email=ctx.actor_email,
                action=action.value,
                object_type=object_type.value,
                object_id=object_id,
                object_name=object_name,
                details=details,
            ),
        )

    def emit_export(
        self,
        ctx: AuditContext,
        object_type: AuditObjectType,
        format: str,
        record_count: int,
        filters: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditEventResponse]:
        return self.emit(
            ctx,
            AuditAction.EXPORT,
            object_type,
            "bulk",
            object_name=f"{object_type.value} export",
            details={
                "format": format,
                "record_count": record_count,
                "filters": filters,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

    def list_events(self, filters: Optional[AuditFilters] = None, limit: int = 100) -> List[AuditEventResponse]:
        if self.store is None:
            return []
        return self.store.list_events(filters, limit)

    def events_for_object(self, object_type: str, object_id: str) -> List[AuditEventResponse]:
        if self.store is None:
            return []
        return self.store.events_for_object(object_type, object_id)
