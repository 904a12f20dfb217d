"""Unit tests for request / response DTOs."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from bson import ObjectId
from pydantic import ValidationError

from errors import SameAsCurrentError
from schemas.dto.requests.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MfaCodeRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
    VerifyMfaRequest,
)
from schemas.dto.responses.auth import (
    AuthResult,
    MfaChallenge,
    TokenPair,
    UserProfileResponse,
    VerifyEmailResult,
)
from schemas.models.user import UserDoc, UserRole


# ── RegisterRequest ──────────────────────────────────────────────────────────


class TestRegisterRequest:
    def test_valid_normalizes(self):
        r = RegisterRequest(name="  Alice ", email="Alice@X.com", password="Abc12345!")
        assert r.name == "Alice"
        assert r.email == "alice@x.com"

    @pytest.mark.parametrize(
        "field, value",
        [
            ("name", "A"),
            ("name", "x" * 51),
            ("email", "not-an-email"),
            ("password", "abc12345"),
        ],
        ids=["name_short", "name_long", "bad_email", "weak_password"],
    )
    def test_invalid(self, field, value):
        data = {"name": "Alice", "email": "alice@x.com", "password": "Abc12345!"}
        data[field] = value
        with pytest.raises(ValidationError):
            RegisterRequest(**data)

    def test_password_error_lists_requirements(self):
        with pytest.raises(ValidationError) as exc:
            RegisterRequest(name="Alice", email="alice@x.com", password="abc")
        assert "At least one uppercase letter" in str(exc.value)


# ── login / MFA / token requests ─────────────────────────────────────────────


def test_login_request_requires_password():
    with pytest.raises(ValidationError):
        LoginRequest(email="alice@x.com", password="")


def test_login_request_normalizes_email():
    assert LoginRequest(email=" ALICE@x.com", password="x").email == "alice@x.com"


class TestVerifyMfaRequest:
    def test_camel_case(self):
        r = VerifyMfaRequest.model_validate(
            {"tempToken": "t", "mfaToken": "123456", "useBackupCode": True}
        )
        assert (r.temp_token, r.code, r.use_backup_code) == ("t", "123456", True)

    def test_snake_case_and_default(self):
        r = VerifyMfaRequest.model_validate({"temp_token": "t", "code": "123456"})
        assert r.use_backup_code is False

    def test_missing_temp_token(self):
        with pytest.raises(ValidationError):
            VerifyMfaRequest.model_validate({"code": "123456"})


@pytest.mark.parametrize("key", ["refreshToken", "refresh_token"])
def test_refresh_token_request_aliases(key):
    assert RefreshTokenRequest.model_validate({key: "abc"}).refresh_token == "abc"


def test_refresh_token_request_rejects_empty():
    with pytest.raises(ValidationError):
        RefreshTokenRequest(refresh_token="")


def test_forgot_password_request_validates_email():
    with pytest.raises(ValidationError):
        ForgotPasswordRequest(email="nope")


def test_reset_password_request_enforces_policy():
    with pytest.raises(ValidationError):
        ResetPasswordRequest(token="t", password="short")
    assert ResetPasswordRequest(token="t", password="Abc12345!").token == "t"


def test_verify_email_request_requires_token():
    with pytest.raises(ValidationError):
        VerifyEmailRequest(token="")


def test_mfa_code_request_accepts_token_alias():
    r = MfaCodeRequest.model_validate({"token": "123456"})
    assert r.code == "123456"
    assert r.use_backup_code is False


class TestChangePasswordRequest:
    def test_valid(self):
        r = ChangePasswordRequest.model_validate(
            {"currentPassword": "Old12345!", "newPassword": "New12345!"}
        )
        assert r.new_password == "New12345!"

    def test_same_as_current(self):
        with pytest.raises(SameAsCurrentError):
            ChangePasswordRequest(current_password="Abc12345!", new_password="Abc12345!")

    def test_weak_new_password(self):
        with pytest.raises(ValidationError):
            ChangePasswordRequest(current_password="Abc12345!", new_password="weak")


# ── responses ────────────────────────────────────────────────────────────────


class TestResponses:
    def test_profile_from_user(self):
        user = UserDoc(
            _id=ObjectId(),
            name="Alice",
            email="alice@x.com",
            password_hash="secret-hash",
            role=UserRole.MANAGER,
            last_login=datetime(2026, 1, 15, tzinfo=timezone.utc),
        )
        profile = UserProfileResponse.from_user(user)
        assert profile.id == str(user.id)
        assert profile.role == "manager"
        assert "secret-hash" not in profile.model_dump_json()

    def test_mfa_challenge_flag(self):
        c = MfaChallenge(temp_token="t")
        assert c.model_dump() == {"require_mfa": True, "temp_token": "t"}

    def test_auth_result_json(self):
        result = AuthResult(
            user=UserProfileResponse(
                id="1",
                name="Alice",
                email="alice@x.com",
                role="user",
                is_email_verified=True,
                mfa_enabled=False,
            ),
            tokens=TokenPair(access="a", refresh="r"),
        )
        assert result.model_dump(mode="json")["tokens"] == {"access": "a", "refresh": "r"}

    def test_verify_email_result_messages(self):
        assert VerifyEmailResult.VERIFIED.value == "Email verified successfully"
        assert VerifyEmailResult.ALREADY_VERIFIED.value == "Email already verified"
