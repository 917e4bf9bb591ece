"""
Shared fixtures: an in-memory database per test, seeded lookups, one user
per role and logged-in clients.
"""
import base64
import os
import tempfile

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("APP_AES_KEY_BASE64", base64.b64encode(b"k" * 32).decode())
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("STORAGE_DIR", tempfile.mkdtemp(prefix="evidence-storage-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from evidence_tracker.app import app
from evidence_tracker.db import Base, create_tables, get_db
from evidence_tracker.models.lookup import ItemType, Location, TransferReason
from evidence_tracker.models.user import User, UserRole
from evidence_tracker.core.security import get_password_hash
from evidence_tracker.core.seed import seed_lookups

PASSWORD = "password123"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_tables(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def users(db):
    """One active user per role plus a deactivated officer, keyed by username"""
    hashed = get_password_hash(PASSWORD)
    created = {}
    for username, full_name, role, active in [
        ("admin", "Alice Admin", UserRole.ADMIN, True),
        ("officer", "Oscar Officer", UserRole.OFFICER, True),
        ("analyst", "Ana Analyst", UserRole.ANALYST, True),
        ("auditor", "Audrey Auditor", UserRole.AUDITOR, True),
        ("retired", "Rita Retired", UserRole.OFFICER, False),
    ]:
        user = User(username=username, full_name=full_name, role=role, is_active=active, password_hash=hashed)
        db.add(user)
        created[username] = user
    db.commit()
    return {name: user.id for name, user in created.items()}


@pytest.fixture
def lookups(db):
    """Default lookups; returns ids keyed by name or reason"""
    seed_lookups(db)
    db.commit()
    ids = {}
    for row in db.query(ItemType).all():
        ids[row.name] = row.id
    for row in db.query(Location).all():
        ids[row.name] = row.id
    for row in db.query(TransferReason).all():
        ids[row.reason] = row.id
    return ids


@pytest.fixture
def make_client(session_factory, users):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    def _make(username=None):
        client = TestClient(app)
        if username:
            response = client.post("/auth/login", json={"username": username, "password": PASSWORD})
            assert response.status_code == 200, response.text
        return client

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def anon_client(make_client):
    return make_client()


@pytest.fixture
def admin_client(make_client):
    return make_client("admin")


@pytest.fixture
def officer_client(make_client):
    return make_client("officer")


@pytest.fixture
def auditor_client(make_client):
    return make_client("auditor")


@pytest.fixture
def make_evidence(officer_client, lookups):
    """Create an evidence item through the API and return its id"""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        payload = {
            "case_number": "CASE-2024-001",
            "item_number": f"ITEM-{counter['n']:03d}",
            "description": "Black smartphone, cracked screen",
            "collected_date": "2024-03-01T10:00:00Z",
            "collected_by": "Det. Morgan",
            "item_type_id": lookups["Mobile Phone"],
        }
        payload.update(overrides)
        response = officer_client.post("/evidence", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["id"]

    return _make
