"""Security utilities - session tokens, log-safe identifiers"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from saas_control.config import Settings
from saas_control.schemas.auth import Session, SessionUser
import secrets


def create_session_token(user: SessionUser, settings: Settings, now: Optional[datetime] = None) -> tuple:
    """
    Create a signed session token for the session cookie

    Args:
        user: Signed-in user
        settings: Application settings (secret, algorithm, lifetime)
        now: Issue time, defaults to current UTC time

    Returns:
        tuple: (encoded JWT, expiry datetime)
    """
    issued = now or datetime.now(timezone.utc)
    expires_at = issued + timedelta(hours=settings.SESSION_EXPIRE_HOURS)

    payload = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value,
        "department": user.department,
        "iat": int(issued.timestamp()),
        "exp": int(expires_at.timestamp()),
        "jti": secrets.token_urlsafe(16),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM), expires_at


def decode_session_token(token: str, settings: Settings) -> Optional[Session]:
    """
    Decode and verify a session token

    Args:
        token: JWT from the session cookie
        settings: Application settings

    Returns:
        Optional[Session]: Session, or None if the token is invalid or expired
    """
    try:
        payload: Dict[str, Any] = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None

    try:
        user = SessionUser(
            id=payload["sub"],
            email=payload.get("email", ""),
            name=payload.get("name") or "User",
            role=payload.get("role", "READ_ONLY"),
            department=payload.get("department"),
        )
    except (KeyError, ValueError):
        return None

    return Session(user=user, expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc))


def mask_email(email: Optional[str]) -> str:
    """
    Mask email for logs - first two characters of the local part and the domain

    Args:
        email: Email address

    Returns:
        str: e.g. "jo***@company.com"
    """
    if not email or "@" not in email:
        return "***"
    local, domain = email.split("@", 1)
    if not domain:
        return "***"
    masked_local = f"{local[:2]}***" if len(local) > 2 else "***"
    return f"{masked_local}@{domain}"
