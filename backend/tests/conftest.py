"""Test configuration and fixtures for Jammer backend tests."""

import datetime
import os
import sys
import pathlib
import tempfile
import pytest
from unittest.mock import patch


from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine
from sqlmodel.pool import StaticPool

BACKEND_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

# Set test environment before importing backend modules
os.environ["TESTING"] = "true"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SESSION_SECRET_KEY"] = "test_secret_key"
os.environ["TESTING_MODE"] = "True"
os.environ["STORAGE_DIR"] = tempfile.mkdtemp(prefix="jammer-storage-")


@pytest.fixture(autouse=True, scope="session")
def anyio_backend():  # pragma: no cover
    return "asyncio"


@pytest.fixture(autouse=True)
def test_engine():
    """Create a test database engine."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    # Ensure models are imported so tables are registered in SQLModel.metadata
    import models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def test_session(test_engine):
    """Create a test database session."""
    with Session(test_engine) as session:
        yield session


@pytest.fixture
def override_get_session(test_session):
    """Override the get_session dependency for testing."""

    def _override_get_session():
        yield test_session

    return _override_get_session


@pytest.fixture
def test_app(override_get_session):
    """Create a test FastAPI application."""
    # Skip migrations and store feature detection in tests
    with patch("app.update_database"), patch("app.detect_store_features"):
        from app import create_app

        app = create_app()
        from models.common import get_session

        app.dependency_overrides[get_session] = override_get_session
        yield app
        app.dependency_overrides.clear()


@pytest.fixture
def client(test_app):
    """Create a test client."""
    with TestClient(test_app) as client:
        yield client


@pytest.fixture
def login(test_app):
    """Act as the given user id (None to act anonymously) for the next requests."""
    from routes.deps import get_current_user_id

    def _login(user_id: str | None):
        test_app.dependency_overrides[get_current_user_id] = lambda: user_id

    return _login


@pytest.fixture
def storage(test_app, tmp_path):
    """Object storage in a temporary folder."""
    from services.storage import LocalStorage, get_storage

    local = LocalStorage(root=tmp_path, public_url="http://testserver/storage")
    test_app.dependency_overrides[get_storage] = lambda: local
    return local


@pytest.fixture
def make_profile(test_session):
    from models.profile import Profile

    def _make_profile(profile_id: str, **fields) -> Profile:
        values = {
            "display_name": profile_id.capitalize(),
            "instruments": ["guitar"],
            "genres": ["rock"],
        }
        values.update(fields)
        profile = Profile(id=profile_id, **values)
        test_session.add(profile)
        test_session.commit()
        test_session.refresh(profile)
        return profile

    return _make_profile


@pytest.fixture
def users(make_profile):
    """Three musicians: u1 and u2 share an instrument and a city, u3 plays jazz drums."""
    u1 = make_profile(
        "u1", display_name="Alice", instruments=["guitar", "vocals"], city="Austin"
    )
    u2 = make_profile("u2", display_name="Bob", instruments=["guitar"], city="Austin")
    u3 = make_profile(
        "u3", display_name="Carol", instruments=["drums"], genres=["jazz"], city="Boston"
    )
    return u1, u2, u3


@pytest.fixture
def make_jam(test_session):
    from models.jam import Jam

    def _make_jam(host_id: str, **fields) -> Jam:
        values = {
            "title": "Sunday jam",
            "jam_time": datetime.datetime.now(datetime.timezone.utc)
            + datetime.timedelta(days=3),
            "desired_instruments": ["bass"],
        }
        values.update(fields)
        jam = Jam(host_id=host_id, **values)
        test_session.add(jam)
        test_session.commit()
        test_session.refresh(jam)
        return jam

    return _make_jam


@pytest.fixture(autouse=True)
def reset_geo_capability():
    from services.geo import geo_capability

    yield
    geo_capability.set(False)


@pytest.fixture(autouse=True)
def reset_database_state(test_session):
    """Reset database state after each test."""
    yield
    # Handle any pending rollbacks first
    try:
        if test_session.in_transaction():
            test_session.rollback()

        from sqlalchemy import text

        for table in reversed(SQLModel.metadata.sorted_tables):
            try:
                test_session.execute(text(f"DELETE FROM {table.name}"))
                test_session.commit()
            except Exception:
                test_session.rollback()
    except Exception:
        # If session is in bad state, just pass
        pass
