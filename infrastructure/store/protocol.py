"""DocumentStore protocol — services depend on this, not the concrete implementation."""

from typing import Any, Optional, Protocol, runtime_checkable

# Collection names
USERS = "users"
REFRESH_TOKENS = "refresh-tokens"
RESET_TOKENS = "reset-tokens"
VERIFY_EMAIL_TOKENS = "verify-email-tokens"
MFA = "mfa"
LOGIN_ATTEMPTS = "login-attempts"


@runtime_checkable
class DocumentStore(Protocol):
    async def find_one(self, collection: str, filter: dict) -> Optional[dict]: ...

    async def create(self, collection: str, doc: dict) -> Any: ...

    async def update_one(
        self, collection: str, filter: dict, patch: dict, *, upsert: bool = False
    ) -> bool: ...

    async def update_many(self, collection: str, filter: dict, patch: dict) -> int: ...

    async def find_one_and_update(
        self, collection: str, filter: dict, patch: dict, *, upsert: bool = False
    ) -> Optional[dict]: ...

    async def count_documents(self, collection: str, filter: dict) -> int: ...

    async def delete_one(self, collection: str, filter: dict) -> bool: ...

    async def ensure_indexes(self) -> None: ...
