"""Role-based access control for console users"""

from typing import Dict, FrozenSet, Iterable

from saas_control.core.exceptions import AuthorizationError
from saas_control.schemas.auth import Role, SessionUser

APPS_READ = "apps:read"
APPS_WRITE = "apps:write"
APPS_DELETE = "apps:delete"
USERS_READ = "users:read"
USERS_WRITE = "users:write"
CONTRACTS_READ = "contracts:read"
CONTRACTS_WRITE = "contracts:write"
ACCESS_REVIEWS_READ = "access_reviews:read"
ACCESS_REVIEWS_WRITE = "access_reviews:write"
ACCESS_REVIEWS_DECIDE = "access_reviews:decide"
WORKFLOWS_READ = "workflows:read"
WORKFLOWS_WRITE = "workflows:write"
WORKFLOWS_RUN = "workflows:run"
INTEGRATIONS_READ = "integrations:read"
INTEGRATIONS_WRITE = "integrations:write"
REPORTS_READ = "reports:read"
REPORTS_EXPORT = "reports:export"
SETTINGS_READ = "settings:read"
SETTINGS_WRITE = "settings:write"
AUDIT_READ = "audit:read"

ROLE_PERMISSIONS: Dict[Role, FrozenSet[str]] = {
    Role.IT_ADMIN: frozenset({
        APPS_READ, APPS_WRITE, APPS_DELETE, USERS_READ, USERS_WRITE,
        CONTRACTS_READ, CONTRACTS_WRITE,
        ACCESS_REVIEWS_READ, ACCESS_REVIEWS_WRITE, ACCESS_REVIEWS_DECIDE,
        WORKFLOWS_READ, WORKFLOWS_WRITE, WORKFLOWS_RUN,
        INTEGRATIONS_READ, INTEGRATIONS_WRITE,
        REPORTS_READ, REPORTS_EXPORT, SETTINGS_READ, SETTINGS_WRITE, AUDIT_READ,
    }),
    Role.SECURITY_ADMIN: frozenset({
        APPS_READ, APPS_WRITE, USERS_READ, CONTRACTS_READ,
        ACCESS_REVIEWS_READ, ACCESS_REVIEWS_WRITE, ACCESS_REVIEWS_DECIDE,
        WORKFLOWS_READ, WORKFLOWS_WRITE, WORKFLOWS_RUN, INTEGRATIONS_READ,
        REPORTS_READ, REPORTS_EXPORT, SETTINGS_READ, AUDIT_READ,
    }),
    Role.FINANCE_ADMIN: frozenset({
        APPS_READ, USERS_READ, CONTRACTS_READ, CONTRACTS_WRITE, ACCESS_REVIEWS_READ,
        WORKFLOWS_READ, INTEGRATIONS_READ, REPORTS_READ, REPORTS_EXPORT, SETTINGS_READ, AUDIT_READ,
    }),
    Role.APP_OWNER: frozenset({
        APPS_READ, APPS_WRITE, USERS_READ, CONTRACTS_READ,
        ACCESS_REVIEWS_READ, ACCESS_REVIEWS_DECIDE,
        WORKFLOWS_READ, INTEGRATIONS_READ, REPORTS_READ, AUDIT_READ,
    }),
    Role.REVIEWER: frozenset({
        APPS_READ, USERS_READ, CONTRACTS_READ, ACCESS_REVIEWS_READ, ACCESS_REVIEWS_DECIDE,
        REPORTS_READ, AUDIT_READ,
    }),
    Role.READ_ONLY: frozenset({
        APPS_READ, USERS_READ, CONTRACTS_READ, ACCESS_REVIEWS_READ, WORKFLOWS_READ, REPORTS_READ,
    }),
}


def has_permission(user: SessionUser, permission: str) -> bool:
    return permission in ROLE_PERMISSIONS.get(user.role, frozenset())


def has_any_permission(user: SessionUser, permissions: Iterable[str]) -> bool:
    return any(has_permission(user, p) for p in permissions)


def require_permission(user: SessionUser, permission: str) -> None:
    """
    Raises:
        AuthorizationError: If the user's role lacks the permission
    """
    if not has_permission(user, permission):
        raise AuthorizationError(f"Permission denied: {permission}", permission=permission)
