"""MFA record persistence — the `mfa` collection, one document per user."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId

from infrastructure.store.protocol import MFA, DocumentStore
from schemas.models.mfa import MfaRecordDoc


class MfaRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get(self, user_id: ObjectId) -> Optional[MfaRecordDoc]:
        return MfaRecordDoc.from_mongo(await self._store.find_one(MFA, {"user_id": user_id}))

    async def save_pending(self, user_id: ObjectId, secret: str, now: datetime) -> None:
        """Upsert a fresh, unverified record; any previous secret is replaced."""
        await self._store.update_one(
            MFA,
            {"user_id": user_id},
            {
                "$set": {
                    "secret": secret,
                    "verified": False,
                    "backup_codes": [],
                    "created_at": now,
                    "verified_at": None,
                }
            },
            upsert=True,
        )

    async def mark_verified(
        self, user_id: ObjectId, secret: str, backup_hashes: list[str], now: datetime
    ) -> bool:
        """Verify the record only if the secret checked is still the pending one."""
        return await self._store.update_one(
            MFA,
            {"user_id": user_id, "secret": secret},
            {
                "$set": {
                    "verified": True,
                    "verified_at": now,
                    "backup_codes": backup_hashes,
                }
            },
        )

    async def replace_backup_codes(self, user_id: ObjectId, backup_hashes: list[str]) -> bool:
        return await self._store.update_one(
            MFA,
            {"user_id": user_id},
            {"$set": {"backup_codes": backup_hashes}},
        )

    async def remove_backup_code(self, user_id: ObjectId, backup_hash: str) -> bool:
        """Pull one hash; True only for the caller that actually removed it."""
        return await self._store.update_one(
            MFA,
            {"user_id": user_id, "backup_codes": backup_hash},
            {"$pull": {"backup_codes": backup_hash}},
        )

    async def delete(self, user_id: ObjectId) -> bool:
        return await self._store.delete_one(MFA, {"user_id": user_id})
