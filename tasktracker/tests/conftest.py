"""Shared fixtures: in-memory database, app client, and registered users."""

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

from tasktracker.config import Settings
from tasktracker.database import Database, get_session
from tasktracker.main import create_app
from tasktracker.models import User

TEST_SECRET = "test-secret"


@pytest.fixture(name="settings")
def settings_fixture():
    return Settings(
        database_url="sqlite://",
        jwt_secret=TEST_SECRET,
        environment="test",
        expiry_sweep_interval=0,
    )


@pytest.fixture(name="engine")
def engine_fixture():
    """Create a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="app")
def app_fixture(settings, engine):
    return create_app(settings, database=Database(settings, engine=engine))


@pytest.fixture(name="client")
def client_fixture(app, session: Session):
    """Create a test client with overridden database session."""
    def get_session_override():
        yield session

    app.dependency_overrides[get_session] = get_session_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(name="register")
def register_fixture(client: TestClient):
    """Register a user and return auth headers for them."""
    def _register(username: str = "alice", email: str = "alice@example.com", password: str = "s3cret"):
        response = client.post(
            "/api/register",
            json={"username": username, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        return {"x-auth-token": response.json()["token"]}

    return _register


@pytest.fixture(name="auth_headers")
def auth_headers_fixture(register):
    return register()


@pytest.fixture(name="other_headers")
def other_headers_fixture(register):
    return register("bob", "bob@example.com", "hunter2")


@pytest.fixture(name="owner")
def owner_fixture(session: Session) -> User:
    """A user row created directly, for store-level tests."""
    user = User(username="owner", email="owner@example.com", password="x:y")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture(name="stranger")
def stranger_fixture(session: Session) -> User:
    user = User(username="stranger", email="stranger@example.com", password="x:y")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user
