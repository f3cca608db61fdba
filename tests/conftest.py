"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files: pytest discovers this by convention.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from fastapi.testclient import TestClient
from tortoise import Tortoise, connections

from eventsite import cache
from eventsite.deps import get_effective_identity
from eventsite.main import TORTOISE_MODULES
from eventsite.routers import admin, booking, events, messages, profiles

from .factories import make_admin, make_identity, make_member

# ---------------------------------------------------------------------------
# Redis: never touch a real server in tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    mock = MagicMock()
    mock.get = AsyncMock(return_value=None)
    mock.setex = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=1)
    monkeypatch.setattr(cache, "_redis", mock)
    return mock


# ---------------------------------------------------------------------------
# Database: fresh in-memory SQLite per test
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture()
async def db():
    await Tortoise.init(db_url="sqlite://:memory:", modules=TORTOISE_MODULES)
    await Tortoise.generate_schemas()
    yield
    await connections.close_all()


# ---------------------------------------------------------------------------
# App builder, used by all client fixtures
# ---------------------------------------------------------------------------


def build_app(identity=None) -> FastAPI:
    """
    Fresh FastAPI app (no database) with identity resolution overridden to
    return ``identity`` unconditionally. ``None`` means anonymous.
    Role gates still run for real on top of the override.
    """
    app = FastAPI()
    for module in (events, booking, messages, profiles, admin):
        app.include_router(module.router)

    async def _identity():
        return identity

    app.dependency_overrides[get_effective_identity] = _identity
    return app


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def user_client():
    return TestClient(build_app(make_identity()), raise_server_exceptions=True)


@pytest.fixture()
def member_client():
    return TestClient(build_app(make_member()), raise_server_exceptions=True)


@pytest.fixture()
def admin_client():
    return TestClient(build_app(make_admin()), raise_server_exceptions=True)


@pytest.fixture()
def anon_client():
    return TestClient(build_app(None), raise_server_exceptions=True)


@pytest.fixture()
def bare_app():
    """
    App with NO dependency overrides. Use this when the real header/cookie
    parsing should run; patch identity lookups where needed.
    """
    app = FastAPI()
    for module in (events, booking, messages, profiles, admin):
        app.include_router(module.router)
    return app


@pytest.fixture()
def client_factory():
    def _make(identity) -> TestClient:
        return TestClient(build_app(identity), raise_server_exceptions=True)

    return _make
