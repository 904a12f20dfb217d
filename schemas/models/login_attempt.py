"""
Login attempt document model.

Maps to the `login-attempts` MongoDB collection. Append-only audit rows,
aggregated by source address for the sliding-window limiter.
"""

from __future__ import annotations

from datetime import datetime

from schemas.models.base import MongoBaseModel


class LoginAttemptDoc(MongoBaseModel):
    ip_address: str
    email: str
    successful: bool
    timestamp: datetime
