from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

_TMP_DIR = Path(tempfile.mkdtemp(prefix="mapandmingle-tests-"))

# Ensure auth mode + infrastructure are set before app import
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP_DIR / 'test.db'}")
os.environ.setdefault("STORAGE_ROOT", str(_TMP_DIR / "storage"))
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("AUTH_MODE", "dev")
os.environ.setdefault("ENV", "local")
os.environ.setdefault("JWT_SECRET", "test_jwt_secret_32_chars_minimum")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("LIFECYCLE_EVENTS_TO_REDIS", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from app.db import SessionLocal, engine, init_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Base, User  # noqa: E402
from app.models.user import UserRole  # noqa: E402

init_db()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db():
    # Ensure a clean slate for each test
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    yield


@pytest.fixture
def make_user(db_session):
    def _make_user(email: str, role: UserRole = UserRole.USER) -> User:
        user = User(email=email, name=email.split("@")[0], role=role)
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user
