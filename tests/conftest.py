"""Shared test fixtures for the MemberHub API tests

Each test gets a fresh application built on a temporary TinyDB file and
upload directory, and is driven in-process through httpx's ASGITransport.
"""

import os
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Set test environment before importing app
os.environ["DEBUG"] = "true"
os.environ["IDENTITY_SECRET"] = "test-identity-secret-for-testing-only"
os.environ["DATABASE_PATH"] = "/tmp/test_memberhub.json"
os.environ["UPLOADS_DIR"] = "/tmp/test_memberhub_uploads"

from memberhub.config import Settings  # noqa: E402
from memberhub.main import create_app  # noqa: E402

ADMIN_UID = "admin-1"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        debug=True,
        database_path=str(tmp_path / "db" / "memberhub.json"),
        uploads_dir=str(tmp_path / "uploads"),
        identity_secret="test-identity-secret-for-testing-only",
        admin_uids=[ADMIN_UID],
        broadcast_queue_size=10,
        redis_url=None,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def db(app):
    return app.state.db


@pytest.fixture
def broadcaster(app):
    return app.state.broadcaster


@pytest.fixture
def subscription(broadcaster):
    """A subscriber on every topic, for inspecting published messages"""
    sub = broadcaster.subscribe()
    yield sub
    broadcaster.unsubscribe(sub)


@pytest_asyncio.fixture
async def test_client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def make_token(app):
    def _make(uid: str, **claims) -> str:
        return app.state.identity_provider.create_access_token(uid, claims)
    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(uid: str = "m1", **claims) -> dict:
        return {"Authorization": f"Bearer {make_token(uid, **claims)}"}
    return _headers


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers(ADMIN_UID)
