"""
Pytest configuration and fixtures for the bookshelf tests.

Every test gets its own in-memory SQLite database (StaticPool keeps the one
connection alive across the TestClient's worker threads) and a catalog
client whose HTTP traffic is answered by ``httpx.MockTransport``.
"""

import os
import re

# Must happen before the application modules read their settings.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["SEED_ON_STARTUP"] = "false"

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth import store as users
from catalog.client import CatalogClient
from core.config import settings
from database import build_engine, get_db, init_db
from main import app
from models.user import ROLE_ADMIN, ROLE_GUEST

CATALOG_URL = "https://catalog.test/books/v1/volumes"

_CSRF_RE = re.compile(r'name="csrf_token" value="([^"]+)"')


# =============================================================================
# Helpers
# =============================================================================


def csrf_from(response) -> str:
    """Pull the anti-forgery token out of a rendered page."""
    match = _CSRF_RE.search(response.text)
    assert match, "page has no csrf_token field"
    return match.group(1)


def login(client: TestClient, username: str, password: str):
    page = client.get("/login")
    return client.post(
        "/login",
        data={"username": username, "password": password, "csrf_token": csrf_from(page)},
        follow_redirects=False,
    )


def volume(volume_id: str, title: str, authors=None, published="1965-08-01", isbn="9780441013593"):
    """One Google Books ``items[]`` entry."""
    return {
        "id": volume_id,
        "volumeInfo": {
            "title": title,
            "authors": authors if authors is not None else ["Frank Herbert"],
            "publishedDate": published,
            "description": f"About {title}",
            "industryIdentifiers": [{"type": "ISBN_13", "identifier": isbn}],
            "imageLinks": {"thumbnail": f"https://covers.test/{volume_id}.jpg"},
        },
    }


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    """600k PBKDF2 rounds per password would make the suite crawl."""
    monkeypatch.setattr(settings, "password_hash_rounds", 1000)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    eng = build_engine("sqlite://", poolclass=StaticPool)
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def admin_user(db):
    return users.create_user(db, "admin", "admin@bookshelf.com", "admin123", role=ROLE_ADMIN)


@pytest.fixture
def guest_user(db):
    return users.create_user(db, "guest", "guest@bookshelf.com", "guest123", role=ROLE_GUEST)


# =============================================================================
# Catalog
# =============================================================================


class CatalogStub:
    """Records every catalog request and answers from ``responder``."""

    def __init__(self):
        self.requests = []
        self.responder = lambda request: httpx.Response(200, json={"items": []})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    @property
    def queries(self):
        return [r.url.params.get("q") for r in self.requests]


@pytest.fixture
def catalog_stub():
    return CatalogStub()


@pytest.fixture
def catalog(catalog_stub):
    return CatalogClient(CATALOG_URL, transport=httpx.MockTransport(catalog_stub))


# =============================================================================
# HTTP client
# =============================================================================


@pytest.fixture
def client(session_factory, catalog):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    original_catalog = app.state.catalog
    app.state.catalog = catalog

    # No context manager: start-up (create tables + seed) must not run
    # against the real database.
    yield TestClient(app)

    app.state.catalog = original_catalog
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(client, admin_user):
    response = login(client, "admin", "admin123")
    assert response.status_code == 303
    return client


@pytest.fixture
def guest_client(client, guest_user):
    response = login(client, "guest", "guest123")
    assert response.status_code == 303
    return client
