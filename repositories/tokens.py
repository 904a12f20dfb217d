"""
Token persistence — refresh, reset and verify-email rows.

Lookups are always by token_hash; plaintext tokens never reach the store.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from bson import ObjectId

from infrastructure.store.protocol import (
    REFRESH_TOKENS,
    RESET_TOKENS,
    VERIFY_EMAIL_TOKENS,
    DocumentStore,
)
from schemas.models.token import RefreshTokenDoc, ResetTokenDoc, VerifyEmailTokenDoc


class TokenRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    # ── refresh tokens ────────────────────────────────────────────────────

    async def add_refresh(self, doc: RefreshTokenDoc) -> None:
        await self._store.create(REFRESH_TOKENS, doc.to_mongo())

    async def get_refresh(self, token_hash: str) -> Optional[RefreshTokenDoc]:
        return RefreshTokenDoc.from_mongo(
            await self._store.find_one(REFRESH_TOKENS, {"token_hash": token_hash})
        )

    async def blacklist_refresh(self, token_hash: str) -> bool:
        """Set blacklisted; True only for the caller that flipped it."""
        return (
            await self._store.find_one_and_update(
                REFRESH_TOKENS,
                {"token_hash": token_hash, "blacklisted": False},
                {"$set": {"blacklisted": True}},
            )
            is not None
        )

    async def blacklist_all_refresh_for_user(self, user_id: ObjectId) -> int:
        return await self._store.update_many(
            REFRESH_TOKENS,
            {"user_id": user_id, "blacklisted": False},
            {"$set": {"blacklisted": True}},
        )

    # ── reset tokens ──────────────────────────────────────────────────────

    async def add_reset(self, doc: ResetTokenDoc) -> None:
        await self._store.create(RESET_TOKENS, doc.to_mongo())

    async def consume_reset(self, token_hash: str, now: datetime) -> Optional[ResetTokenDoc]:
        """Find an unused, unexpired reset token and mark it used in one step."""
        doc = await self._store.find_one_and_update(
            RESET_TOKENS,
            {"token_hash": token_hash, "used": False, "expires_at": {"$gt": now}},
            {"$set": {"used": True, "used_at": now}},
        )
        return ResetTokenDoc.from_mongo(doc)

    # ── verify-email tokens ───────────────────────────────────────────────

    async def add_verify_email(self, doc: VerifyEmailTokenDoc) -> None:
        await self._store.create(VERIFY_EMAIL_TOKENS, doc.to_mongo())

    async def find_valid_verify_email(
        self, token_hash: str, now: datetime
    ) -> Optional[VerifyEmailTokenDoc]:
        return VerifyEmailTokenDoc.from_mongo(
            await self._store.find_one(
                VERIFY_EMAIL_TOKENS,
                {"token_hash": token_hash, "expires_at": {"$gt": now}},
            )
        )

    async def count_recent_verify_email(self, user_id: ObjectId, since: datetime) -> int:
        return await self._store.count_documents(
            VERIFY_EMAIL_TOKENS,
            {"user_id": user_id, "created_at": {"$gte": since}},
        )
