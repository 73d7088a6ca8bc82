import os

os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401,E402
from app.db import Base

pytest_plugins = [
    "tests.fixtures.conversation_fixtures",
]

# Settings read by the app; cleared per test so a developer .env never leaks in.
_META_ENV_VARS = (
    "META_ACCESS_TOKEN",
    "WHATSAPP_ACCESS_TOKEN",
    "META_PHONE_NUMBER_ID",
    "WHATSAPP_PHONE_NUMBER_ID",
    "META_VERIFY_TOKEN",
    "META_APP_SECRET",
    "INBOUND_API_TOKEN",
    "N8N_INBOUND_TOKEN",
    "N8N_TOKEN",
    "NOTIFICATION_WEBHOOK_URL",
    "N8N_WEBHOOK_URL",
)


@pytest.fixture(autouse=True)
def clean_meta_env(monkeypatch):
    for var in _META_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite shared by every connection of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine):
    session = sessionmaker(bind=engine, autoflush=False, autocommit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client_with_db(db):
    """Client with db override and testing mode (schema comes from the db fixture)."""
    from fastapi.testclient import TestClient

    from app.db import get_db
    from app.main import create_app

    app = create_app(testing=True)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
