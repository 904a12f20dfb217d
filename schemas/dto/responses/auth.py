"""
Result DTOs produced by the auth orchestrator.

UserProfileResponse — public user shape (never carries the password hash)
TokenPair           — access + refresh token pair
AuthResult          — register / login / verify-mfa success
MfaChallenge        — login outcome when a second factor is still required
MfaSetupResult      — secret + provisioning URI returned by MFA setup
BackupCodesResponse — backup codes shown in clear exactly once
VerifyEmailResult   — verify-email outcome (verified vs already verified)
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import UserDoc


class UserProfileResponse(BaseModel):
    """Public user profile — used in register/login/session."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    email: str
    role: str
    is_email_verified: bool
    mfa_enabled: bool
    last_login: Optional[datetime] = None

    @classmethod
    def from_user(cls, user: UserDoc) -> "UserProfileResponse":
        return cls(
            id=str(user.id),
            name=user.name,
            email=user.email,
            role=user.role.value,
            is_email_verified=user.is_email_verified,
            mfa_enabled=user.mfa_enabled,
            last_login=user.last_login,
        )


class TokenPair(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access: str
    refresh: str


class AuthResult(BaseModel):
    """Fully authenticated outcome carrying a fresh token pair."""

    model_config = ConfigDict(populate_by_name=True)

    user: UserProfileResponse
    tokens: TokenPair
    # register only: whether a verification email was dispatched
    verification_sent: Optional[bool] = None


class MfaChallenge(BaseModel):
    """Successful-but-incomplete login: a second factor is required.

    ``temp_token`` is a short-lived access-kind token scoped to MFA completion.
    """

    model_config = ConfigDict(populate_by_name=True)

    require_mfa: Literal[True] = True
    temp_token: str


class MfaSetupResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    secret: str
    otpauth_url: str
    qr_code: str  # data:image/png;base64,... of otpauth_url


class BackupCodesResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    backup_codes: list[str]


class VerifyEmailResult(str, Enum):
    VERIFIED = "Email verified successfully"
    ALREADY_VERIFIED = "Email already verified"
