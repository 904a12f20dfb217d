"""
Credential store — persistence of user records in the `users` collection.

Holds no auth policy; it reads and writes UserDoc values and exposes the
atomic counter/flag updates the login guard and MFA service rely on.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId

from infrastructure.store.protocol import USERS, DocumentStore
from schemas.models.user import UserDoc


def _as_object_id(user_id: Any) -> Optional[ObjectId]:
    if isinstance(user_id, ObjectId):
        return user_id
    try:
        return ObjectId(str(user_id))
    except (InvalidId, TypeError):
        return None


class UserRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get_by_email(self, email: str) -> Optional[UserDoc]:
        return UserDoc.from_mongo(await self._store.find_one(USERS, {"email": email}))

    async def get_by_id(self, user_id: Any) -> Optional[UserDoc]:
        oid = _as_object_id(user_id)
        if oid is None:
            return None
        return UserDoc.from_mongo(await self._store.find_one(USERS, {"_id": oid}))

    async def exists(self, email: str) -> bool:
        return await self._store.find_one(USERS, {"email": email}) is not None

    async def create(self, user: UserDoc) -> UserDoc:
        """Insert *user*; raises pymongo DuplicateKeyError on an email race."""
        inserted_id = await self._store.create(USERS, user.to_mongo())
        return user.model_copy(update={"id": inserted_id})

    async def update_fields(self, user_id: Any, fields: dict) -> bool:
        oid = _as_object_id(user_id)
        if oid is None:
            return False
        return await self._store.update_one(USERS, {"_id": oid}, {"$set": fields})

    async def set_password_hash(self, user_id: Any, password_hash: str, now: datetime) -> bool:
        return await self.update_fields(
            user_id,
            {
                "password_hash": password_hash,
                "password_last_changed": now,
                "updated_at": now,
            },
        )

    async def record_login(self, user_id: Any, now: datetime) -> bool:
        return await self.update_fields(user_id, {"last_login": now, "updated_at": now})

    async def mark_email_verified(self, user_id: Any, now: datetime) -> bool:
        """Flip is_email_verified; False when it was already set."""
        oid = _as_object_id(user_id)
        if oid is None:
            return False
        return await self._store.update_one(
            USERS,
            {"_id": oid, "is_email_verified": False},
            {"$set": {"is_email_verified": True, "updated_at": now}},
        )

    async def set_mfa_enabled(self, user_id: Any, enabled: bool, now: datetime) -> bool:
        return await self.update_fields(user_id, {"mfa_enabled": enabled, "updated_at": now})

    # Lockout counters: single server-side operations, never read-modify-write

    async def increment_failed_logins(self, email: str, now: datetime) -> Optional[UserDoc]:
        doc = await self._store.find_one_and_update(
            USERS,
            {"email": email},
            {
                "$inc": {"failed_login_attempts": 1},
                "$set": {"last_failed_login": now},
            },
        )
        return UserDoc.from_mongo(doc)

    async def lock_if_threshold_reached(
        self, email: str, threshold: int, locked_until: datetime
    ) -> bool:
        return await self._store.update_one(
            USERS,
            {"email": email, "failed_login_attempts": {"$gte": threshold}},
            {"$set": {"account_locked": True, "account_locked_until": locked_until}},
        )

    async def reset_failed_logins(self, email: str) -> bool:
        return await self._store.update_one(
            USERS,
            {"email": email},
            {
                "$set": {
                    "failed_login_attempts": 0,
                    "account_locked": False,
                    "account_locked_until": None,
                }
            },
        )

    async def clear_expired_lock(self, email: str, now: datetime) -> bool:
        """Unlock only if the lock window has actually elapsed."""
        return await self._store.update_one(
            USERS,
            {
                "email": email,
                "account_locked": True,
                "account_locked_until": {"$lte": now},
            },
            {
                "$set": {
                    "account_locked": False,
                    "account_locked_until": None,
                    "failed_login_attempts": 0,
                }
            },
        )
