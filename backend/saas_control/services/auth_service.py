"""Authentication gate - email sign-in and cookie sessions"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple
import logging

from saas_control.config import Settings
from saas_control.core.exceptions import AuthenticationError, SessionExpiredError, ValidationError
from saas_control.core.security import create_session_token, decode_session_token, mask_email
from saas_control.repositories.interfaces import DirectoryStore
from saas_control.schemas.auth import Role, Session, SessionUser

logger = logging.getLogger(__name__)

MOCK_USER = SessionUser(
    id="mock-admin-user",
    email="admin@company.com",
    name="Admin User",
    role=Role.IT_ADMIN,
    department="IT",
)


class AuthService:
    """Resolves who is calling; with AUTH_ENABLED off everyone is the mock administrator"""

    def __init__(self, settings: Settings, directory: DirectoryStore):
        self.settings = settings
        self.directory = directory

    def mock_session(self) -> Session:
        expires_at = datetime.now(timezone.utc) + timedelta(hours=self.settings.SESSION_EXPIRE_HOURS)
        return Session(user=MOCK_USER, expires_at=expires_at)

    def sign_in(self, email: Optional[str]) -> Tuple[Session, str]:
        """
        Sign in a directory user by email

        Args:
            email: Email address entered on the sign-in page

        Returns:
            tuple: (session, signed cookie value)

        Raises:
            ValidationError: If email is empty
            AuthenticationError: If no directory user has this email
        """
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required", details={"field": "email"})

        user = self.directory.find_user_by_email(email)
        if not user:
            logger.warning(f"Sign-in rejected for unknown email {mask_email(email)}")
            raise AuthenticationError("User not found in directory")

        token, expires_at = create_session_token(user, self.settings)
        logger.info(f"User {user.id} signed in ({mask_email(user.email)})")
        return Session(user=user, expires_at=expires_at), token

    def resolve_session(self, token: Optional[str]) -> Session:
        """
        Session for a request

        Args:
            token: Session cookie value, if any

        Raises:
            AuthenticationError: If auth is enabled and there is no cookie
            SessionExpiredError: If the cookie is invalid or expired
        """
        if not self.settings.AUTH_ENABLED:
            return self.mock_session()

        if not token:
            raise AuthenticationError("Not signed in", details={"sign_in_url": "/api/v1/auth/sign-in"})

        session = decode_session_token(token, self.settings)
        if session is None:
            raise SessionExpiredError()
        return session
