"""
User document model.

Maps to the `users` MongoDB collection.

The password hash lives only on UserDoc; every outward representation goes
through UserProfileResponse, which has no hash field.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    MANAGER = "manager"


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    name: str
    email: str
    password_hash: str
    role: UserRole = UserRole.USER
    is_active: bool = True
    is_email_verified: bool = False
    mfa_enabled: bool = False
    failed_login_attempts: int = Field(default=0, ge=0)
    last_failed_login: Optional[datetime] = None
    account_locked: bool = False
    account_locked_until: Optional[datetime] = None
    password_last_changed: Optional[datetime] = None
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_mongo(self) -> dict:
        data = super().to_mongo()
        data["role"] = self.role.value
        return data

    def is_locked(self, now: datetime) -> bool:
        """True while an explicit lock window is still running."""
        return bool(
            self.account_locked
            and self.account_locked_until is not None
            and self.account_locked_until > now
        )
