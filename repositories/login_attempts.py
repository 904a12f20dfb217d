"""Login attempt audit log — append-only `login-attempts` collection."""

from __future__ import annotations

from datetime import datetime

from infrastructure.store.protocol import LOGIN_ATTEMPTS, DocumentStore
from schemas.models.login_attempt import LoginAttemptDoc


class LoginAttemptRepository:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def append(self, attempt: LoginAttemptDoc) -> None:
        await self._store.create(LOGIN_ATTEMPTS, attempt.to_mongo())

    async def count_failures_from(self, ip_address: str, since: datetime) -> int:
        return await self._store.count_documents(
            LOGIN_ATTEMPTS,
            {
                "ip_address": ip_address,
                "successful": False,
                "timestamp": {"$gte": since},
            },
        )
