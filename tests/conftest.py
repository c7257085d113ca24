"""
tests/conftest.py -- Shared test fixtures for catalog API tests.

This module provides:
  - make_settings() / settings_factory: Settings for an isolated named
    in-memory database, with per-test overrides
  - db: a fresh in-memory Database for store-level unit tests
  - api_client: TestClient over a real app built by create_app(), with an
    admin (created by the lifespan bootstrap) and one regular user

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixture because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

DEBUG must be set before any module calls get_settings().
"""

from __future__ import annotations

import os
from collections.abc import Generator
from typing import NamedTuple

# CRITICAL: set before any import that may resolve Settings.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.credentials import new_credential
from core.config import Settings
from core.database import Database

TEST_SECRET_KEY = "test-secret-key-0123456789abcdef0123456789"

ADMIN_USERNAME = "testadmin"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"

USER_USERNAME = "regularuser"
USER_EMAIL = "user@example.com"
USER_PASSWORD = "userpass123"


def make_settings(db_suffix: str, **overrides) -> Settings:
    """Settings pointing at a named shared-memory database unique to db_suffix."""
    values = dict(
        debug=True,
        secret_key=TEST_SECRET_KEY,
        database_url=f"sqlite:///file:test_catalog_{db_suffix}?mode=memory&cache=shared&uri=true",
        admin_username=ADMIN_USERNAME,
        admin_email=ADMIN_EMAIL,
        admin_password=ADMIN_PASSWORD,
        allowed_hosts=["testserver"],
        login_rate_limit="1000/minute",
    )
    values.update(overrides)
    return Settings(**values)


class ApiContext(NamedTuple):
    client: TestClient
    settings: Settings
    admin_token: str
    user_token: str
    admin_id: int
    user_id: int
    user_username: str = USER_USERNAME
    user_password: str = USER_PASSWORD


@pytest.fixture
def settings_factory():
    """Expose make_settings() to tests that build their own app."""
    return make_settings


@pytest.fixture
def db() -> Generator[Database, None, None]:
    """A private in-memory database for store unit tests."""
    database = Database("sqlite:///:memory:")
    yield database
    database.close()


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for API integration tests.

    The lifespan runs for real: it creates the stores, the TokenCodec and the
    bootstrap admin. A regular user is added through the store afterwards.
    Tokens are issued directly through the app's TokenCodec.
    """
    settings = make_settings(request.module.__name__.rsplit(".", 1)[-1])
    app = create_app(settings)

    with TestClient(app, raise_server_exceptions=True) as client:
        user_store = app.state.user_store
        admin = user_store.get_by_login(ADMIN_USERNAME)
        user_id = user_store.create_user(new_credential(USER_USERNAME, USER_EMAIL, USER_PASSWORD))
        codec = app.state.token_codec
        user = user_store.get_by_id(user_id)
        yield ApiContext(
            client=client,
            settings=settings,
            admin_token=codec.issue(admin.id, admin.permission_level),
            user_token=codec.issue(user.id, user.permission_level),
            admin_id=admin.id,
            user_id=user_id,
        )
