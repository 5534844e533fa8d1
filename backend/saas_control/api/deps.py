"""API dependencies - context, services, authentication and authorization"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session as DbSession
from typing import Callable, Iterator, Optional

from saas_control.core import permissions
from saas_control.core.context import AppContext
from saas_control.schemas.auth import Session
from saas_control.services.access_review_service import AccessReviewService
from saas_control.services.audit_service import AuditContext, AuditService, user_context
from saas_control.services.auth_service import AuthService
from saas_control.services.export_service import ExportService


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_db(ctx: AppContext = Depends(get_context)) -> Iterator[Optional[DbSession]]:
    """
    Database session for one request

    Yields:
        Session, or None when running on mock data
    """
    db = ctx.open_session()
    if db is None:
        yield None
        return
    try:
        yield db
    finally:
        db.close()


def get_access_review_service(
    ctx: AppContext = Depends(get_context),
    db: Optional[DbSession] = Depends(get_db),
) -> AccessReviewService:
    return ctx.access_review_service(db)


def get_export_service(
    ctx: AppContext = Depends(get_context),
    db: Optional[DbSession] = Depends(get_db),
) -> ExportService:
    return ctx.export_service(db)


def get_audit_service(
    ctx: AppContext = Depends(get_context),
    db: Optional[DbSession] = Depends(get_db),
) -> AuditService:
    return ctx.audit_service(db)


def get_auth_service(
    ctx: AppContext = Depends(get_context),
    db: Optional[DbSession] = Depends(get_db),
) -> AuthService:
    return ctx.auth_service(db)


def get_current_session(
    request: Request,
    ctx: AppContext = Depends(get_context),
    auth: AuthService = Depends(get_auth_service),
) -> Session:
    """
    Current session from the session cookie

    Raises:
        AuthenticationError: If auth is enabled and no cookie is present
        SessionExpiredError: If the cookie is invalid or expired
    """
    return auth.resolve_session(request.cookies.get(ctx.settings.SESSION_COOKIE_NAME))


def require_permission(permission: str) -> Callable[..., Session]:
    """
    Dependency factory: current session, checked for one permission

    Raises:
        AuthorizationError: If the user's role lacks the permission
    """
    def dependency(session: Session = Depends(get_current_session)) -> Session:
        permissions.require_permission(session.user, permission)
        return session

    return dependency


def actor_of(session: Session) -> AuditContext:
    return user_context(session.user.id, session.user.email)
