"""Pytest configuration and fixtures for EuroAssist tests.

Test isolation strategy:
- Every test gets its own in-memory SQLite database (schema via create_all)
- The app is built with that database's session factory and a scripted FakeAssistant
- Auth tests register through the API so the TestClient carries a real session cookie
- No test talks to a real LLM provider
"""

import os
from collections.abc import Callable, Generator

# Settings are read lazily, but set the environment before anything imports them
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ["EUROASSIST_ENV"] = "test"
os.environ.setdefault("SESSION_SECRET", "test-session-secret-at-least-32-bytes-long")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import Engine
from sqlalchemy.orm import Session, sessionmaker

from euroassist.app import add_request_id_middleware, create_app
from euroassist.config import clear_settings_cache
from euroassist.db.engine import create_db_engine
from euroassist.db.models import Base
from euroassist.db.session import create_session_factory
from tests.helpers import register_user
from tests.support.fake_assistant import FakeAssistant

TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database with the full schema."""
    engine = create_db_engine(TEST_DATABASE_URL)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return create_session_factory(engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    """Provide a database session bound to the test database."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def fake_assistant() -> FakeAssistant:
    """Scripted assistant; tests adjust its answers before making requests."""
    return FakeAssistant()


@pytest.fixture
def app(session_factory, fake_assistant) -> FastAPI:
    """Full application: auth middleware, request-id middleware, test database."""
    app = create_app(session_factory=session_factory, assistant=fake_assistant)
    add_request_id_middleware(app, log_requests=False)
    return app


@pytest.fixture
def make_client(app: FastAPI) -> Generator[Callable[[], TestClient], None, None]:
    """Factory for independent clients (separate cookie jars) on the same app."""
    clients: list[TestClient] = []

    def _make() -> TestClient:
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client) -> TestClient:
    """Provide an unauthenticated test client."""
    return make_client()


@pytest.fixture
def auth_client(make_client) -> TestClient:
    """Provide a client logged in as a freshly registered user."""
    client = make_client()
    register_user(client)
    return client


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
