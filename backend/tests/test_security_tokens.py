from datetime import datetime, timedelta, timezone

from saas_control.config import Settings
from saas_control.core.security import create_session_token, decode_session_token, mask_email
from saas_control.schemas.auth import Role, SessionUser


def _settings(**overrides):
    values = {"SECRET_KEY": "unit-test-secret-key-with-enough-length", "SESSION_EXPIRE_HOURS": 24}
    values.update(overrides)
    return Settings(**values)


def _user():
    return SessionUser(id="usr_002", email="jordan.lee@company.com", name="Jordan Lee", role=Role.REVIEWER)


def test_session_token_round_trip():
    settings = _settings()
    token, expires_at = create_session_token(_user(), settings)

    session = decode_session_token(token, settings)
    assert session is not None
    assert session.user.id == "usr_002"
    assert session.user.role == Role.REVIEWER
    assert abs((session.expires_at - expires_at).total_seconds()) < 1


def test_session_lifetime_is_configured_hours():
    settings = _settings()
    issued = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    _, expires_at = create_session_token(_user(), settings, now=issued)
    assert expires_at == issued + timedelta(hours=24)


def test_expired_session_token_is_rejected():
    settings = _settings()
    token, _ = create_session_token(_user(), settings, now=datetime.now(timezone.utc) - timedelta(hours=25))
    assert decode_session_token(token, settings) is None


def test_token_signed_with_other_secret_is_rejected():
    token, _ = create_session_token(_user(), _settings(SECRET_KEY="another-secret-key-of-sufficient-length"))
    assert decode_session_token(token, _settings()) is None


def test_garbage_token_is_rejected():
    assert decode_session_token("not-a-jwt", _settings()) is None


def test_mask_email():
    assert mask_email("jordan.lee@company.com") == "jo***@company.com"
    assert mask_email("ab@company.com") == "***@company.com"
    assert mask_email("") == "***"
    assert mask_email("no-at-sign") == "***"
