import os

# oauthgate.main calls require_remote_credentials() at import time.
os.environ.setdefault("REMOTE_CONSUMER_KEY", "test_consumer_key")
os.environ.setdefault("REMOTE_CONSUMER_SECRET", "test_consumer_secret")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from typing import Callable

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from oauthgate.core.base import Base
from oauthgate.core import config as app_config

# Import models so they register with SQLAlchemy metadata.
import oauthgate.models  # noqa: F401

from oauthgate.core.database import get_db
from oauthgate.dependencies.remote_api import get_remote_api
from oauthgate.services.remote_api import RemoteApiClient

REMOTE_BASE_URL = "https://api.example.com/v1/"


@pytest.fixture(scope="session")
def db_engine():
    # In-memory SQLite for fast, isolated tests.
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture()
def db_session(db_engine):
    # The in-memory DB persists across tests with StaticPool. Reset schema per test.
    Base.metadata.drop_all(bind=db_engine)
    Base.metadata.create_all(bind=db_engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def _reset_mutable_settings():
    """Tests tweak the process-global settings object; restore it after each test."""
    keys = [
        "SESSION_TTL_DAYS",
        "TRUST_FORWARDED_FOR",
    ]
    original = {k: getattr(app_config.settings, k) for k in keys}
    try:
        yield
    finally:
        for k, v in original.items():
            setattr(app_config.settings, k, v)


class FakeRemote:
    """
    Stand-in for the remote platform, served through httpx.MockTransport.

    Register a handler per path (relative to the API base, e.g. "users/me").
    Every request is recorded so tests can inspect the signed headers.
    """

    def __init__(self) -> None:
        self.handlers: dict[str, Callable[[httpx.Request], httpx.Response]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, path: str, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.handlers[path] = handler

    def reply(self, path: str, status_code: int = 200, **kwargs) -> None:
        self.on(path, lambda request: httpx.Response(status_code, **kwargs))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        prefix = httpx.URL(REMOTE_BASE_URL).path
        relative = path[len(prefix):] if path.startswith(prefix) else path.lstrip("/")
        handler = self.handlers.get(relative)
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture()
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture()
def remote_client(fake_remote):
    http = httpx.Client(transport=httpx.MockTransport(fake_remote))
    client = RemoteApiClient(
        http,
        base_url=REMOTE_BASE_URL,
        consumer_key="test_consumer_key",
        consumer_secret="test_consumer_secret",
        timeout=5.0,
    )
    try:
        yield client
    finally:
        client.close()


@pytest.fixture()
def app(db_session, remote_client):
    import oauthgate.main as main

    fastapi_app = main.app

    def override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_remote_api] = lambda: remote_client
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c
