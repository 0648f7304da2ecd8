"""Shared pytest fixtures for the Era Genética Server test suite."""

import asyncio

import pytest
from fastapi.testclient import TestClient

import config
from auth import Identity, _tokens
from store.client import DocumentClient
from store.documents import DocumentStore
from store.errors import StoreError

ADMIN_HEADERS = {"X-Admin-Secret": "change-me-in-production"}


class FlakyStore(DocumentStore):
    """A DocumentStore whose reads, or writes touching chosen fields, fail."""

    def __init__(self, fail_fields=(), fail_reads=False):
        super().__init__()
        self.fail_fields = set(fail_fields)
        self.fail_reads = fail_reads

    async def get(self, collection, doc_id):
        if self.fail_reads:
            await asyncio.sleep(0)
            raise StoreError("backend unavailable")
        return await super().get(collection, doc_id)

    async def set(self, collection, doc_id, data, merge=True):
        if self.fail_fields & set(data):
            await asyncio.sleep(0)
            raise StoreError("write rejected")
        await super().set(collection, doc_id, data, merge=merge)


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Point every persisted file at a temp dir and reset the token store."""
    monkeypatch.setattr(config, "TOKENS_FILE", str(tmp_path / "tokens.json"))
    monkeypatch.setattr(config, "SECRET_FILE", str(tmp_path / "admin_secret.txt"))
    monkeypatch.setattr(config, "STORE_FILE", "")
    monkeypatch.setattr(config, "ADMIN_SECRET", "change-me-in-production")
    _tokens.clear()
    yield tmp_path
    _tokens.clear()


@pytest.fixture
def flaky_store():
    """The FlakyStore class, for tests that inject store failures."""
    return FlakyStore


@pytest.fixture
def make_client():
    """Build a DocumentClient for a uid, optionally carrying the admin claim."""
    def _make(store, uid, admin=False):
        return DocumentClient(store, Identity(uid=uid, name=uid.title(), admin=admin))
    return _make


@pytest.fixture
def client():
    """A TestClient with the app's lifespan running (store open)."""
    from main import app
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register(client):
    """Register an identity and return its Authorization headers."""
    def _register(uid, name=None, admin=False):
        resp = client.post(
            "/admin/register",
            json={"uid": uid, "name": name or uid.title(), "admin": admin},
            headers=ADMIN_HEADERS,
        )
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['api_key']}"}
    return _register
