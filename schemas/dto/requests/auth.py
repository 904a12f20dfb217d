"""
Request DTOs for authentication endpoints.

RegisterRequest        — POST /auth/register
LoginRequest           — POST /auth/login
VerifyMfaRequest       — POST /auth/verify-mfa
RefreshTokenRequest    — POST /auth/refresh-token, POST /auth/logout
ForgotPasswordRequest  — POST /auth/forgot-password
ResetPasswordRequest   — POST /auth/reset-password
VerifyEmailRequest     — POST /auth/verify-email
MfaCodeRequest         — POST /auth/mfa/verify-setup, /auth/mfa/disable,
                         /auth/mfa/backup-codes
ChangePasswordRequest  — POST /auth/change-password

Validation happens here, before a request reaches AuthService. Both camelCase
and snake_case field names are accepted.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from errors import SameAsCurrentError
from shared.validators import (
    normalize_email,
    validate_email,
    validate_name,
    validate_password,
)


def _check_email(v: str) -> str:
    if not validate_email(v):
        raise ValueError("Please provide a valid email")
    return normalize_email(v)


def _check_password(v: str) -> str:
    ok, missing = validate_password(v)
    if not ok:
        raise ValueError("Password requirements not met: " + ", ".join(missing))
    return v


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    email: str
    password: str

    @field_validator("name", mode="after")
    @classmethod
    def _validate_name(cls, v: str) -> str:
        if not validate_name(v):
            raise ValueError("Name must be between 2 and 50 characters")
        return v.strip()

    @field_validator("email", mode="after")
    @classmethod
    def _validate_email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password", mode="after")
    @classmethod
    def _validate_password(cls, v: str) -> str:
        return _check_password(v)


class LoginRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    password: str = Field(min_length=1)

    @field_validator("email", mode="after")
    @classmethod
    def _validate_email(cls, v: str) -> str:
        return _check_email(v)


class VerifyMfaRequest(BaseModel):
    """``code`` is a 6-digit TOTP code, or a backup code when ``use_backup_code``."""

    model_config = ConfigDict(populate_by_name=True)

    temp_token: str = Field(
        min_length=1, validation_alias=AliasChoices("temp_token", "tempToken")
    )
    code: str = Field(
        min_length=1, validation_alias=AliasChoices("code", "mfaToken", "token")
    )
    use_backup_code: bool = Field(
        default=False,
        validation_alias=AliasChoices("use_backup_code", "useBackupCode"),
    )


class RefreshTokenRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(
        min_length=1,
        validation_alias=AliasChoices("refresh_token", "refreshToken"),
    )


class ForgotPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str

    @field_validator("email", mode="after")
    @classmethod
    def _validate_email(cls, v: str) -> str:
        return _check_email(v)


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    password: str

    @field_validator("password", mode="after")
    @classmethod
    def _validate_password(cls, v: str) -> str:
        return _check_password(v)


class VerifyEmailRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)


class MfaCodeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str = Field(min_length=1, validation_alias=AliasChoices("code", "token"))
    use_backup_code: bool = Field(
        default=False,
        validation_alias=AliasChoices("use_backup_code", "useBackupCode"),
    )


class ChangePasswordRequest(BaseModel):
    """Raises SameAsCurrentError (not a pydantic error) when the passwords match."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(
        min_length=1,
        validation_alias=AliasChoices("current_password", "currentPassword"),
    )
    new_password: str = Field(
        validation_alias=AliasChoices("new_password", "newPassword"),
    )

    @field_validator("new_password", mode="after")
    @classmethod
    def _validate_password(cls, v: str) -> str:
        return _check_password(v)

    @model_validator(mode="after")
    def _reject_same_password(self) -> "ChangePasswordRequest":
        if self.new_password == self.current_password:
            raise SameAsCurrentError(
                "New password must be different from the current password",
                field="new_password",
            )
        return self
