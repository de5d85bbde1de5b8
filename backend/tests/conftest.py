"""Pytest fixtures: file-backed SQLite database recreated for every test."""
import os

os.environ.setdefault("JWT_SECRET", "test-secret-test-secret-test-secret-0123")
os.environ.setdefault("BCRYPT_ROUNDS", "10")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from worklog.database import Base, enable_sqlite_foreign_keys, get_db  # noqa: E402
from worklog.main import app  # noqa: E402
from worklog.security import rate_limit_storage  # noqa: E402

# Import all models so they register with Base.metadata
from worklog.models.user import User                     # noqa: F401,E402
from worklog.models.work_entry import WorkEntry          # noqa: F401,E402
from worklog.models.day_adjustment import DayAdjustment  # noqa: F401,E402

SQLITE_URL = os.environ["DATABASE_URL"]
PASSWORD = "Secret123"


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Every test starts with empty rate-limit windows."""
    rate_limit_storage.reset()
    yield
    rate_limit_storage.reset()


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
    enable_sqlite_foreign_keys(engine)
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session bound to the test engine."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_engine):
    """FastAPI TestClient with the database dependency overridden."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def auth_client(client):
    """A client that is registered, logged in and sends the CSRF header by default."""
    token = fetch_csrf(client)
    client.headers["X-CSRF-Token"] = token
    register_user(client)
    return client


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def fetch_csrf(client: TestClient) -> str:
    """Helper: GET /api/auth/csrf; the cookie lands in the client's jar."""
    resp = client.get("/api/auth/csrf")
    assert resp.status_code == 200, resp.text
    return resp.json()["token"]


def register_user(client: TestClient, name: str = "Test User", email: str = "test@example.com",
                  password: str = PASSWORD) -> dict:
    """Helper: POST /api/auth/register and return the public user."""
    token = client.headers.get("X-CSRF-Token") or fetch_csrf(client)
    resp = client.post("/api/auth/register", json={
        "name": name,
        "email": email,
        "password": password,
    }, headers={"X-CSRF-Token": token})
    assert resp.status_code == 201, resp.text
    return resp.json()["user"]


def new_client(email: str) -> TestClient:
    """Helper: a second, independent browser session registered as ``email``."""
    other = TestClient(app)
    other.headers["X-CSRF-Token"] = fetch_csrf(other)
    register_user(other, name="Other User", email=email)
    return other


def create_entry(client: TestClient, start: str, end: str):
    return client.post("/api/timer/entries", json={"startAt": start, "endAt": end})
