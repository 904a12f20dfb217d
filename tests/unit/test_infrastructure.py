"""Unit tests for the infrastructure layer — MongoStore, HttpClient and ZeptoMailNotifier."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from pymongo.errors import DuplicateKeyError

from config import EmailSettings
from errors import NotificationFailure
from infrastructure.email.zeptomail import ZeptoMailNotifier
from infrastructure.http_client import HttpClient
from infrastructure.store.protocol import DocumentStore


# ── Helpers ───────────────────────────────────────────────────────────────────


def _response(status_code: int = 201, text: str = "") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = text
    return resp


def _notifier(token: str = "secret-token", response=None, exc=None):
    http = MagicMock()
    if exc is not None:
        http.post = AsyncMock(side_effect=exc)
    else:
        http.post = AsyncMock(return_value=response or _response())
    settings = EmailSettings(zepto_api_token=token, zepto_from_email="noreply@acme.test")
    return ZeptoMailNotifier(settings, http, "Acme", "https://acme.test"), http


# ── MongoStore ────────────────────────────────────────────────────────────────


class TestMongoStore:
    def test_satisfies_protocol(self, store):
        assert isinstance(store, DocumentStore)

    async def test_create_and_find(self, store):
        inserted = await store.create("things", {"name": "a"})
        assert (await store.find_one("things", {"_id": inserted}))["name"] == "a"
        assert await store.find_one("things", {"name": "missing"}) is None

    async def test_aware_datetimes_stored_naive(self, store, mock_db):
        when = datetime(2026, 1, 15, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        await store.create("things", {"at": when})
        raw = await mock_db["things"].find_one({})
        assert raw["at"] == datetime(2026, 1, 15, 12, 0)

    async def test_datetime_filters_compare_in_utc(self, store):
        await store.create("things", {"at": datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)})
        since = datetime(2026, 1, 15, 11, 0, tzinfo=timezone.utc)
        assert await store.count_documents("things", {"at": {"$gte": since}}) == 1

    async def test_update_one_reports_change(self, store):
        await store.create("things", {"name": "a", "flag": False})
        assert await store.update_one("things", {"flag": False}, {"$set": {"flag": True}}) is True
        # filter no longer matches: compare-and-set lost
        assert await store.update_one("things", {"flag": False}, {"$set": {"flag": True}}) is False

    async def test_update_one_upsert(self, store):
        assert await store.update_one("things", {"k": 1}, {"$set": {"v": 2}}, upsert=True) is True
        assert (await store.find_one("things", {"k": 1}))["v"] == 2

    async def test_update_many_counts_modified(self, store):
        for owner in ("a", "a", "b"):
            await store.create("things", {"owner": owner, "flag": False})
        assert await store.update_many("things", {"owner": "a"}, {"$set": {"flag": True}}) == 2
        assert await store.update_many("things", {"owner": "a", "flag": False}, {"$set": {"flag": True}}) == 0
        assert await store.count_documents("things", {"flag": True}) == 2

    async def test_find_one_and_update_returns_after(self, store):
        await store.create("things", {"name": "a", "n": 0})
        doc = await store.find_one_and_update("things", {"name": "a"}, {"$inc": {"n": 1}})
        assert doc["n"] == 1
        assert await store.find_one_and_update("things", {"name": "b"}, {"$inc": {"n": 1}}) is None

    async def test_delete_one(self, store):
        await store.create("things", {"name": "a"})
        assert await store.delete_one("things", {"name": "a"}) is True
        assert await store.delete_one("things", {"name": "a"}) is False

    async def test_ensure_indexes_unique_email(self, store):
        await store.ensure_indexes()
        await store.create("users", {"email": "alice@x.com"})
        with pytest.raises(DuplicateKeyError):
            await store.create("users", {"email": "alice@x.com"})

    async def test_ensure_indexes_unique_mfa_user(self, store, mock_db):
        await store.ensure_indexes()
        info = await mock_db["mfa"].index_information()
        index_keys = [list(entry["key"]) for entry in info.values()]
        assert [("user_id", 1)] in index_keys


# ── HttpClient ────────────────────────────────────────────────────────────────


class TestHttpClient:
    async def test_post_delegates_to_httpx(self, mocker):
        client = HttpClient()
        fake_resp = MagicMock(status_code=202)
        mocker.patch.object(client._client, "post", return_value=fake_resp)
        resp = await client.post("https://api.zeptomail.com", json={"a": 1})
        assert resp.status_code == 202
        client._client.post.assert_called_once_with("https://api.zeptomail.com", json={"a": 1})
        await client.aclose()

    async def test_post_propagates_exception(self, mocker):
        client = HttpClient()
        mocker.patch.object(client._client, "post", side_effect=httpx.ReadTimeout("timeout"))
        with pytest.raises(httpx.ReadTimeout):
            await client.post("https://api.zeptomail.com")
        await client.aclose()

    async def test_context_manager(self):
        async with HttpClient(timeout=1.0) as client:
            assert client is not None


# ── ZeptoMailNotifier ─────────────────────────────────────────────────────────


class TestZeptoMailNotifier:
    async def test_posts_template_payload(self):
        notifier, http = _notifier()
        assert await notifier.send(
            "alice@x.com", "Reset your password", "reset_password",
            {"name": "Alice", "token": "t0k"},
        ) is True

        _, kwargs = http.post.call_args
        payload = kwargs["json"]
        assert payload["template_key"] == "reset-password"
        assert payload["to"][0]["email_address"]["address"] == "alice@x.com"
        assert payload["merge_info"]["token"] == "t0k"
        assert payload["merge_info"]["app_name"] == "Acme"
        assert kwargs["headers"]["Authorization"] == "Zoho-enczapikey secret-token"

    async def test_prefixed_token_not_double_prefixed(self):
        notifier, http = _notifier(token="Zoho-enczapikey abc")
        await notifier.send("a@x.com", "s", "welcome", {})
        assert http.post.call_args.kwargs["headers"]["Authorization"] == "Zoho-enczapikey abc"

    async def test_unconfigured_raises(self):
        notifier, http = _notifier(token="")
        with pytest.raises(NotificationFailure):
            await notifier.send("a@x.com", "s", "welcome", {})
        http.post.assert_not_called()

    async def test_provider_error_status_raises(self):
        notifier, _ = _notifier(response=_response(500, "boom"))
        with pytest.raises(NotificationFailure, match="500"):
            await notifier.send("a@x.com", "s", "welcome", {})

    async def test_network_error_raises(self):
        notifier, _ = _notifier(exc=httpx.ConnectError("refused"))
        with pytest.raises(NotificationFailure, match="ConnectError"):
            await notifier.send("a@x.com", "s", "welcome", {})
