"""Authentication routes"""

from fastapi import APIRouter, Depends, Request, Response, status

from saas_control.api.deps import get_auth_service, get_context, get_current_session
from saas_control.core.context import AppContext
from saas_control.core.exceptions import RateLimitExceededError
from saas_control.schemas.auth import Session, SignInRequest
from saas_control.services.auth_service import AuthService

router = APIRouter()


@router.post("/sign-in", response_model=Session, status_code=status.HTTP_200_OK)
def sign_in(
    body: SignInRequest,
    request: Request,
    response: Response,
    ctx: AppContext = Depends(get_context),
    auth: AuthService = Depends(get_auth_service),
):
    """
    Sign in with a directory email and set the session cookie

    Args:
        body: Email address

    Returns:
        The new session
    """
    settings = ctx.settings
    client_ip = request.client.host if request.client else "unknown"
    windows = [
        (settings.SIGN_IN_RATE_LIMIT_PER_MINUTE, 60),
        (settings.SIGN_IN_RATE_LIMIT_PER_HOUR, 3600),
    ]
    if not ctx.rate_limiter.allow(f"sign-in:{client_ip}", windows):
        raise RateLimitExceededError("Too many sign-in attempts. Please try again later.")

    session, token = auth.sign_in(body.email)

    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.SESSION_EXPIRE_HOURS * 3600,
        httponly=True,
        secure=settings.ENVIRONMENT.lower() == "production",
        samesite="lax",
        path="/",
    )
    return session


@router.post("/sign-out", status_code=status.HTTP_200_OK)
def sign_out(response: Response, ctx: AppContext = Depends(get_context)):
    """Clear the session cookie"""
    response.delete_cookie(ctx.settings.SESSION_COOKIE_NAME, path="/")
    return {"success": True, "message": "Signed out"}


@router.get("/session", response_model=Session)
def current_session(session: Session = Depends(get_current_session)):
    return session
