"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from datetime import datetime

import mongomock
import pytest
from fastapi.testclient import TestClient

from api_server import auth as api_auth
from api_server import main as api_main
from api_server.models import SessionUser as ApiSessionUser
from api_server.mongo import ensure_indexes
from web_server import main as web_main
from web_server.cart import CartStore
from web_server.config import SESSION_COOKIE
from web_server.models import SessionUser
from web_server.storage import MemoryStorage


@pytest.fixture(autouse=True)
def _fast_bcrypt(monkeypatch: pytest.MonkeyPatch) -> None:
    # Minimum cost bcrypt accepts; keeps the suite quick.
    monkeypatch.setattr(api_auth, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def mongo_db():
    db = mongomock.MongoClient()["eventhorizon"]
    ensure_indexes(db)
    return db


@pytest.fixture
def api_client(mongo_db, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(api_main, "get_database", lambda: mongo_db)
    with TestClient(api_main.app) as client:
        yield client


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def cart(storage: MemoryStorage) -> CartStore:
    return CartStore(storage)


@pytest.fixture
def session_user() -> SessionUser:
    return SessionUser(id="u1", email="fan@example.com", name="Fan", balance=25)


@pytest.fixture
def session_token() -> str:
    token, _ = api_auth.issue_token(ApiSessionUser(id="u1", email="fan@example.com", name="Fan", balance=25))
    return token


@pytest.fixture
def web_client(tmp_path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(web_main, "CART_STORAGE_DIR", str(tmp_path / "visitors"))
    with TestClient(web_main.app) as client:
        yield client
    web_main.flows.clear()
    web_main.receipts.clear()


@pytest.fixture
def signed_in_client(web_client: TestClient, session_token: str) -> TestClient:
    web_client.cookies.set(SESSION_COOKIE, session_token)
    return web_client


@pytest.fixture
def make_event_doc():
    def _make(title: str, category: str, date: datetime, price: float = 50) -> dict:
        return {
            "title": title,
            "artist": "Various",
            "image": f"/images/{title.lower().replace(' ', '-')}.jpg",
            "date": date,
            "time": "20:00",
            "venue": "Arena",
            "location": "Springfield",
            "category": category,
            "price": price,
            "rating": 4.5,
            "seatsLeft": 120,
        }

    return _make
