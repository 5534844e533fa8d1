"""Database models"""

from saas_control.models.directory import DirectoryUser, Application, UserAppAccess
from saas_control.models.access_review import AccessReviewCampaign, AccessReviewDecision
from saas_control.models.audit import AuditEvent

__all__ = [
    "DirectoryUser", "Application", "UserAppAccess",
    "AccessReviewCampaign", "AccessReviewDecision",
    "AuditEvent",
]
