import pytest

from saas_control.config import Settings
from saas_control.core import permissions
from saas_control.core.exceptions import AuthenticationError, AuthorizationError, SessionExpiredError, ValidationError
from saas_control.core.security import decode_session_token
from saas_control.repositories.memory_store import InMemoryDirectoryStore
from saas_control.repositories.mock_data import build_mock_dataset
from saas_control.schemas.auth import Role, SessionUser
from saas_control.services.auth_service import MOCK_USER, AuthService


def _settings(**overrides):
    values = {
        "SECRET_KEY": "unit-test-secret-key-with-enough-length",
        "AUTH_ENABLED": True,
        "OKTA_ISSUER": "https://acme.okta.com",
        "OKTA_CLIENT_ID": "client",
        "OKTA_CLIENT_SECRET": "secret",
        "AUTH_URL": "https://console.acme.com",
    }
    values.update(overrides)
    return Settings(**values)


def _auth(**overrides):
    return AuthService(_settings(**overrides), InMemoryDirectoryStore(build_mock_dataset()))


def test_auth_disabled_resolves_mock_administrator():
    session = _auth(AUTH_ENABLED=False).resolve_session(None)
    assert session.user == MOCK_USER
    assert session.user.role == Role.IT_ADMIN


def test_sign_in_requires_email():
    with pytest.raises(ValidationError) as exc:
        _auth().sign_in("   ")
    assert exc.value.status_code == 422

    with pytest.raises(ValidationError):
        _auth().sign_in(None)


def test_sign_in_unknown_email():
    with pytest.raises(AuthenticationError) as exc:
        _auth().sign_in("stranger@elsewhere.com")
    assert exc.value.status_code == 401


def test_sign_in_issues_cookie_token_for_directory_user():
    auth = _auth()
    session, token = auth.sign_in(" Jordan.Lee@company.com ")

    assert session.user.id == "usr_002"
    assert session.user.role == Role.REVIEWER
    decoded = decode_session_token(token, auth.settings)
    assert decoded.user.email == "jordan.lee@company.com"

    assert auth.resolve_session(token).user.id == "usr_002"


def test_auth_enabled_without_cookie():
    with pytest.raises(AuthenticationError):
        _auth().resolve_session(None)


def test_invalid_cookie_is_an_expired_session():
    with pytest.raises(SessionExpiredError) as exc:
        _auth().resolve_session("tampered.token.value")
    assert exc.value.details["sign_in_url"] == "/api/v1/auth/sign-in"


def test_role_permissions():
    reviewer = SessionUser(id="u1", email="r@company.com", name="R", role=Role.REVIEWER)
    read_only = SessionUser(id="u2", email="o@company.com", name="O", role=Role.READ_ONLY)

    assert permissions.has_permission(reviewer, permissions.ACCESS_REVIEWS_DECIDE)
    assert not permissions.has_permission(reviewer, permissions.ACCESS_REVIEWS_WRITE)
    assert not permissions.has_permission(read_only, permissions.ACCESS_REVIEWS_DECIDE)
    assert permissions.has_any_permission(read_only, [permissions.AUDIT_READ, permissions.ACCESS_REVIEWS_READ])
    assert permissions.has_permission(MOCK_USER, permissions.SETTINGS_WRITE)


def test_require_permission_raises_forbidden():
    read_only = SessionUser(id="u2", email="o@company.com", name="O", role=Role.READ_ONLY)
    with pytest.raises(AuthorizationError) as exc:
        permissions.require_permission(read_only, permissions.REPORTS_EXPORT)
    assert exc.value.status_code == 403
    assert exc.value.details["required_permission"] == "reports:export"
