"""
Shared fixtures: in-memory SQLite database, API client and common actors.

Settings are read at import time, so the environment is prepared before
anything from `app` is imported.
"""

import os

os.environ["SUPABASE_URL"] = "http://localhost:54321"
os.environ["SUPABASE_KEY"] = "test-anon-key"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SUPABASE_JWT_SECRET"] = "test-jwt-secret"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["ENVIRONMENT"] = "test"
os.environ["ENABLE_LIFECYCLE_SCHEDULER"] = "false"
for _smtp_var in ("SMTP_HOST", "SMTP_USERNAME", "SMTP_PASSWORD"):
    os.environ.pop(_smtp_var, None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from app.database import engine  # noqa: E402
from app.main import app  # noqa: E402
from factories import make_profile, make_supplier  # noqa: E402


@pytest.fixture(autouse=True)
def db():
    """Fresh schema for every test."""
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(db):
    with Session(engine) as s:
        yield s


@pytest.fixture
def client(db):
    return TestClient(app)


# -------- Common actors --------


@pytest.fixture
def consumer(session):
    return make_profile(session, role="consumer", name="Camila Rojas")


@pytest.fixture
def supplier(session):
    return make_supplier(session)


@pytest.fixture
def admin(session):
    return make_profile(session, role="admin", name="Admin nitoagua")
