"""
Unit test configuration.

The auth core runs against a mongomock-motor database, a frozen clock, a cheap
argon2 hasher and an in-memory notifier.
"""

from typing import Any

from mongomock_motor import AsyncMongoMockClient
import pytest
from argon2 import PasswordHasher

from config import AppSettings, DatabaseSettings, JWTSettings
from dependencies import build_auth_service
from infrastructure.store.mongo import MongoStore
from repositories.login_attempts import LoginAttemptRepository
from repositories.mfa import MfaRepository
from repositories.tokens import TokenRepository
from repositories.users import UserRepository
from shared.datetime_utils import FrozenClock

ACCESS_SECRET = "test-access-secret-0123456789abcdef0123456789"
REFRESH_SECRET = "test-refresh-secret-0123456789abcdef012345678"


class FakeNotifier:
    """Records every send; ``fail=True`` makes each send raise."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send(self, to: str, subject: str, template_id: str, data: dict) -> bool:
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append(
            {"to": to, "subject": subject, "template_id": template_id, "data": data}
        )
        return True

    def last(self, template_id: str) -> dict[str, Any]:
        matches = [m for m in self.sent if m["template_id"] == template_id]
        assert matches, f"no '{template_id}' notification sent"
        return matches[-1]


@pytest.fixture
def mock_db():
    return AsyncMongoMockClient()["auth-test"]


@pytest.fixture
def store(mock_db):
    return MongoStore(mock_db)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def hasher():
    # minimum-cost parameters; production uses argon2-cffi defaults
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def jwt_settings():
    return JWTSettings(
        jwt_access_secret=ACCESS_SECRET, jwt_refresh_secret=REFRESH_SECRET
    )


@pytest.fixture
def settings(jwt_settings):
    return AppSettings(
        db=DatabaseSettings(mongodb_uri="mongodb://localhost:27017/"),
        jwt=jwt_settings,
    )


@pytest.fixture
def users(store):
    return UserRepository(store)


@pytest.fixture
def token_repo(store):
    return TokenRepository(store)


@pytest.fixture
def mfa_repo(store):
    return MfaRepository(store)


@pytest.fixture
def attempts(store):
    return LoginAttemptRepository(store)


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def auth(settings, mock_db, notifier, clock, hasher):
    return build_auth_service(
        settings, mock_db, notifier=notifier, clock=clock, hasher=hasher
    )


@pytest.fixture
def failing_notifier():
    return FakeNotifier(fail=True)
