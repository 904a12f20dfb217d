"""
MFA record document model.

Maps to the `mfa` MongoDB collection, one document per user (unique
user_id). verified flips to True only after a correct TOTP challenge;
backup_codes holds argon2 hashes, the plain codes are shown to the user once.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel, PyObjectId


class MfaRecordDoc(MongoBaseModel):
    """Document model for the `mfa` collection."""

    user_id: PyObjectId
    secret: str
    verified: bool = False
    backup_codes: list[str] = []
    created_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None
