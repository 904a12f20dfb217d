"""Integration tests for the app factory: startup wiring over mongomock-motor."""

import pytest
from mongomock_motor import AsyncMongoMockClient

import app as app_module
from config import AppSettings, DatabaseSettings, EmailSettings, JWTSettings
from services.auth_service import AuthService


class _FakeAsyncMongoClient:
    """Stands in for AsyncMongoClient; the URI is accepted and ignored."""

    def __init__(self, uri, **kwargs):
        self._client = AsyncMongoMockClient()
        self.closed = False

    def __getitem__(self, name):
        return self._client[name]

    async def close(self):
        self.closed = True


@pytest.fixture
def settings():
    return AppSettings(
        db=DatabaseSettings(mongodb_uri="mongodb://localhost:27017/", db_name="auth-test"),
        jwt=JWTSettings(
            jwt_access_secret="integration-access-secret-0123456789abcdef",
            jwt_refresh_secret="integration-refresh-secret-0123456789abcdef",
        ),
        # no token: every send fails fast and is logged, nothing leaves the process
        email=EmailSettings(zepto_api_token=""),
    )


@pytest.fixture
async def app(monkeypatch, settings):
    monkeypatch.setattr(app_module, "AsyncMongoClient", _FakeAsyncMongoClient)
    application = app_module.create_app(settings)
    async with application.router.lifespan_context(application):
        yield application


async def test_startup_wires_auth_service(app):
    assert isinstance(app.state.auth_service, AuthService)
    assert isinstance(app.state.mongo_client, _FakeAsyncMongoClient)


async def test_startup_ensures_indexes(app):
    indexes = await app.state.db["users"].index_information()
    assert any(info.get("unique") for info in indexes.values())


async def test_register_and_login_through_wired_service(app):
    auth = app.state.auth_service
    await auth.register("Alice", "alice@x.com", "Abc12345!")
    result = await auth.login("alice@x.com", "Abc12345!", "203.0.113.7")
    assert (await auth.authenticate(result.tokens.access)).email == "alice@x.com"


async def test_shutdown_drains_and_closes(monkeypatch, settings):
    monkeypatch.setattr(app_module, "AsyncMongoClient", _FakeAsyncMongoClient)
    application = app_module.create_app(settings)
    async with application.router.lifespan_context(application):
        await application.state.auth_service.register("Bob", "bob@x.com", "Abc12345!")
        client = application.state.mongo_client
    assert client.closed is True
    assert application.state.auth_service._notifier.pending == 0
