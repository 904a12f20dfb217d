"""Unit tests for AppSettings and sub-configs."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from config import (
    AppSettings,
    DatabaseSettings,
    EmailSettings,
    JWTSettings,
    LockoutSettings,
    MfaSettings,
)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def with_mongo(monkeypatch):
    """Set the required MONGODB_URI so AppSettings can be instantiated."""
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
    return monkeypatch


# ---------------------------------------------------------------------------
# DatabaseSettings
# ---------------------------------------------------------------------------


class TestDatabaseSettings:
    def test_loads_mongodb_uri(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
        assert DatabaseSettings().mongodb_uri == "mongodb://localhost:27017/"

    def test_default_db_name(self, monkeypatch):
        monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017/")
        monkeypatch.delenv("DB_NAME", raising=False)
        assert DatabaseSettings().db_name == "auth-service"

    def test_missing_mongodb_uri_raises(self, monkeypatch):
        monkeypatch.delenv("MONGODB_URI", raising=False)
        with pytest.raises(PydanticValidationError):
            DatabaseSettings()


# ---------------------------------------------------------------------------
# JWTSettings
# ---------------------------------------------------------------------------


class TestJWTSettings:
    def test_defaults(self, monkeypatch):
        for var in (
            "JWT_ISSUER",
            "JWT_AUDIENCE",
            "ACCESS_TOKEN_TTL_SECONDS",
            "REFRESH_TOKEN_TTL_SECONDS",
            "RESET_TOKEN_TTL_SECONDS",
            "VERIFY_EMAIL_TOKEN_TTL_SECONDS",
            "MFA_TEMP_TOKEN_TTL_SECONDS",
        ):
            monkeypatch.delenv(var, raising=False)
        s = JWTSettings()
        assert s.jwt_issuer == "auth-service"
        assert s.jwt_audience == "auth-service.api"
        assert s.access_token_ttl_seconds == 900
        assert s.refresh_token_ttl_seconds == 604_800
        assert s.reset_token_ttl_seconds == 3600
        assert s.verify_email_token_ttl_seconds == 86_400
        assert s.mfa_temp_token_ttl_seconds == 300

    def test_refresh_ttl_overridable(self, monkeypatch):
        monkeypatch.setenv("REFRESH_TOKEN_TTL_SECONDS", "2592000")
        assert JWTSettings().refresh_token_ttl_seconds == 2_592_000


@pytest.mark.parametrize(
    "access, legacy, expected",
    [
        (None, "legacy-secret", "legacy-secret"),  # falls back to JWT_SECRET
        ("access-secret", "legacy-secret", "access-secret"),  # explicit wins
    ],
    ids=["legacy_fallback", "access_secret_wins"],
)
def test_access_secret_resolution(monkeypatch, access, legacy, expected):
    if access:
        monkeypatch.setenv("JWT_ACCESS_SECRET", access)
    else:
        monkeypatch.delenv("JWT_ACCESS_SECRET", raising=False)
    monkeypatch.setenv("JWT_SECRET", legacy)
    assert JWTSettings().jwt_access_secret == expected


# ---------------------------------------------------------------------------
# Lockout / MFA / Email
# ---------------------------------------------------------------------------


def test_lockout_defaults(monkeypatch):
    for var in (
        "MAX_FAILED_LOGIN_ATTEMPTS",
        "ACCOUNT_LOCK_MINUTES",
        "IP_MAX_FAILED_ATTEMPTS",
        "IP_WINDOW_MINUTES",
    ):
        monkeypatch.delenv(var, raising=False)
    s = LockoutSettings()
    assert (s.max_failed_login_attempts, s.account_lock_minutes) == (5, 15)
    assert (s.ip_max_failed_attempts, s.ip_window_minutes) == (10, 60)


def test_mfa_defaults(monkeypatch):
    monkeypatch.delenv("MFA_BACKUP_CODE_COUNT", raising=False)
    monkeypatch.delenv("MFA_VALID_WINDOW", raising=False)
    s = MfaSettings()
    assert s.mfa_backup_code_count == 10
    assert s.mfa_valid_window == 1


@pytest.mark.parametrize(
    "template_id, expected",
    [("reset_password", "custom-reset"), ("unknown", "unknown")],
    ids=["mapped", "passthrough"],
)
def test_email_template_key(monkeypatch, template_id, expected):
    monkeypatch.setenv("TEMPLATE_RESET_PASSWORD", "custom-reset")
    assert EmailSettings().template_key(template_id) == expected


# ---------------------------------------------------------------------------
# AppSettings
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "env, expected",
    [("production", True), ("development", False)],
    ids=["production", "development"],
)
def test_is_production(with_mongo, env, expected):
    with_mongo.setenv("ENV", env)
    assert AppSettings().is_production is expected


class TestAppSettings:
    def test_sub_configs_populated(self, with_mongo):
        s = AppSettings()
        for attr in ("db", "jwt", "lockout", "mfa", "email", "logging"):
            assert getattr(s, attr) is not None, f"sub-config '{attr}' is None"

    def test_mfa_issuer_defaults_to_app_name(self, with_mongo):
        with_mongo.setenv("APP_NAME", "Acme")
        with_mongo.delenv("MFA_ISSUER_NAME", raising=False)
        assert AppSettings().mfa.mfa_issuer_name == "Acme"

    def test_flags_default_off(self, with_mongo):
        with_mongo.delenv("REQUIRE_EMAIL_VERIFICATION", raising=False)
        with_mongo.delenv("ALERT_ON_NEW_LOGIN", raising=False)
        s = AppSettings()
        assert s.require_email_verification is False
        assert s.alert_on_new_login is False

    def test_flags_from_env(self, with_mongo):
        with_mongo.setenv("REQUIRE_EMAIL_VERIFICATION", "true")
        assert AppSettings().require_email_verification is True
