"""Fixtures compartidos: app contra un SQLite temporal y servicios sueltos."""

import os
import sys

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from app import create_app
from chat import ChatLog
from config import Settings
from credentials import CredentialStore, DEFAULT_ADMIN_PASSWORD, DEFAULT_ADMIN_USERNAME
from database import Database
from ledger import RequestLedger
from security import PasswordHasher, SessionIssuer

TEST_SECRET = "test-secret-key-for-testing-only-1234567890"


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.setenv("PANEL_DB_URL", f"sqlite:///{(tmp_path / 'panel.db').as_posix()}")
    monkeypatch.setenv("JWT_SECRET", TEST_SECRET)
    monkeypatch.setenv("BCRYPT_ROUNDS", "4")
    monkeypatch.setenv("TRUST_PROXY", "true")
    monkeypatch.delenv("CHAT_MAX_LENGTH", raising=False)
    return Settings()


@pytest.fixture
def db(settings):
    database = Database(settings.database_url)
    database.init()
    yield database
    database.dispose()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def ledger(db, hasher):
    return RequestLedger(db, hasher)


@pytest.fixture
def chat(db):
    return ChatLog(db)


@pytest.fixture
def credentials(db, hasher):
    return CredentialStore(db, hasher)


@pytest.fixture
def issuer():
    return SessionIssuer(TEST_SECRET)


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_token(client):
    r = client.post("/api/login", json={"username": DEFAULT_ADMIN_USERNAME, "password": DEFAULT_ADMIN_PASSWORD})
    assert r.status_code == 200
    # El token se usa por cabecera; la cookie se limpia para aislar cada prueba.
    client.cookies.clear()
    return r.json()["token"]


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}
