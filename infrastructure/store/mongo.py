"""MongoDB implementation of DocumentStore.

Wraps an injected async pymongo ``AsyncDatabase`` (a mongomock-motor database
in tests). Every conditional write is a single server-side operation, so
callers get compare-and-set semantics: ``update_one`` reports whether a
document actually changed and ``find_one_and_update`` returns the post-update
document only to the caller whose filter matched.

Errors from pymongo propagate; the boundary turns them into an opaque 500.
"""

from __future__ import annotations

from typing import Any, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase

from infrastructure.store.protocol import (
    LOGIN_ATTEMPTS,
    MFA,
    REFRESH_TOKENS,
    RESET_TOKENS,
    USERS,
    VERIFY_EMAIL_TOKENS,
)
from shared.datetime_utils import to_storage
from shared.logging import get_logger

log = get_logger(__name__)


class MongoStore:
    def __init__(self, db: AsyncDatabase) -> None:
        self._db = db

    def _col(self, collection: str):
        return self._db[collection]

    async def find_one(self, collection: str, filter: dict) -> Optional[dict]:
        return await self._col(collection).find_one(to_storage(filter))

    async def create(self, collection: str, doc: dict) -> Any:
        result = await self._col(collection).insert_one(to_storage(doc))
        return result.inserted_id

    async def update_one(
        self, collection: str, filter: dict, patch: dict, *, upsert: bool = False
    ) -> bool:
        result = await self._col(collection).update_one(
            to_storage(filter), to_storage(patch), upsert=upsert
        )
        return result.modified_count > 0 or result.upserted_id is not None

    async def update_many(self, collection: str, filter: dict, patch: dict) -> int:
        result = await self._col(collection).update_many(
            to_storage(filter), to_storage(patch)
        )
        return result.modified_count

    async def find_one_and_update(
        self, collection: str, filter: dict, patch: dict, *, upsert: bool = False
    ) -> Optional[dict]:
        return await self._col(collection).find_one_and_update(
            to_storage(filter),
            to_storage(patch),
            upsert=upsert,
            return_document=ReturnDocument.AFTER,
        )

    async def count_documents(self, collection: str, filter: dict) -> int:
        return await self._col(collection).count_documents(to_storage(filter))

    async def delete_one(self, collection: str, filter: dict) -> bool:
        result = await self._col(collection).delete_one(to_storage(filter))
        return result.deleted_count > 0

    async def ensure_indexes(self) -> None:
        await self._col(USERS).create_index([("email", ASCENDING)], unique=True)

        await self._col(REFRESH_TOKENS).create_index(
            [("token_hash", ASCENDING)], unique=True
        )
        await self._col(REFRESH_TOKENS).create_index(
            [("user_id", ASCENDING), ("blacklisted", ASCENDING)]
        )

        for name in (RESET_TOKENS, VERIFY_EMAIL_TOKENS):
            await self._col(name).create_index([("token_hash", ASCENDING)], unique=True)
            # TTL: reaped once expires_at passes
            await self._col(name).create_index(
                [("expires_at", ASCENDING)], expireAfterSeconds=0
            )

        await self._col(MFA).create_index([("user_id", ASCENDING)], unique=True)

        await self._col(LOGIN_ATTEMPTS).create_index(
            [
                ("ip_address", ASCENDING),
                ("successful", ASCENDING),
                ("timestamp", DESCENDING),
            ]
        )
        await self._col(LOGIN_ATTEMPTS).create_index([("email", ASCENDING)])

        log.info("mongo_indexes_ensured")
