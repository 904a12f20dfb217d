"""
Token document models.

RefreshTokenDoc      — `refresh-tokens`       one row per issued refresh token
ResetTokenDoc        — `reset-tokens`         single-use password reset token
VerifyEmailTokenDoc  — `verify-email-tokens`  email verification token

token_hash stores SHA-256(token) — the plain token is never stored.
Refresh rows are never deleted: blacklisted=True is the revocation marker
and the row stays as an audit trail. Reset and verify rows are reaped by a
TTL index on expires_at.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from schemas.models.base import MongoBaseModel, PyObjectId


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    RESET = "reset"
    VERIFY = "verify"


class RefreshTokenDoc(MongoBaseModel):
    """Document model for the `refresh-tokens` collection."""

    token_hash: str
    user_id: PyObjectId
    expires_at: datetime
    blacklisted: bool = False
    created_at: Optional[datetime] = None


class ResetTokenDoc(MongoBaseModel):
    """Document model for the `reset-tokens` collection."""

    token_hash: str
    user_id: PyObjectId
    expires_at: datetime
    used: bool = False
    used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class VerifyEmailTokenDoc(MongoBaseModel):
    """Document model for the `verify-email-tokens` collection."""

    token_hash: str
    user_id: PyObjectId
    expires_at: datetime
    created_at: Optional[datetime] = None
