"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest and provides:
  - Test configuration (env vars set before src.config is imported)
  - A fresh in-memory repository per test
  - Helpers for seeding users, locations and interests
  - A mock Firebase app for Firestore repository tests
"""

import os
from datetime import datetime, timedelta, timezone
import pytest
from unittest.mock import MagicMock

# src.config builds its singleton at import time, so the environment has to
# be in place before any test module imports it.
os.environ["STORE_BACKEND"] = "memory"
os.environ["FIREBASE_PROJECT_ID"] = "test-project"
os.environ["GOOGLE_APPLICATION_CREDENTIALS"] = "/config/test-serviceAccountKey.json"
os.environ["SERVICE_TOKEN"] = ""
os.environ["SEED_DEMO_DATA"] = "False"
os.environ["DEBUG"] = "True"

from src.tools.memory_store import InMemoryRepository  # noqa: E402
from src.tools.repository import set_repository  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """
    Keep test configuration predictable for the whole session.

    Tests never depend on local .env files or real credentials.
    """
    assert os.environ["STORE_BACKEND"] == "memory"
    yield


@pytest.fixture(autouse=True)
def memory_repo():
    """
    Provide a fresh in-memory repository and install it as the process-wide one.

    Every service call that does not pass repository= uses this instance.
    """
    repo = InMemoryRepository()
    set_repository(repo)
    yield repo
    set_repository(None)


@pytest.fixture
def add_interest(memory_repo):
    """Create a level-0 interest row and return its id."""

    def _add(interest_id, name=None, category="General", **extra):
        memory_repo.save_interest(
            {
                "id": interest_id,
                "name": name or interest_id.title(),
                "category": category,
                "level": 0,
                **extra,
            }
        )
        return interest_id

    return _add


@pytest.fixture
def make_user(memory_repo, add_interest):
    """
    Seed a user with a profile, an optional active location and interests.

    Example:
        def test_something(make_user):
            make_user("alice", lat=37.77, lon=-122.41, interests=["music"])
    """

    def _make(user_id, lat=None, lon=None, interests=(), **profile):
        memory_repo.save_profile(
            {"user_id": user_id, "username": profile.pop("username", user_id), **profile}
        )
        if lat is not None and lon is not None:
            memory_repo.save_location(
                {
                    "user_id": user_id,
                    "latitude": lat,
                    "longitude": lon,
                    "is_active": True,
                }
            )
        for interest_id in interests:
            if memory_repo.get_interest(interest_id) is None:
                add_interest(interest_id)
            memory_repo.add_user_interest(user_id, interest_id)
        return user_id

    return _make


@pytest.fixture
def mock_firebase_app(monkeypatch):
    """
    Provide a mock Firebase app for testing.

    Use this fixture in tests that need to mock Firestore calls.

    Example:
        def test_something(mock_firebase_app):
            # Firestore calls will use mock
            pass
    """
    mock_app = MagicMock()
    mock_db = MagicMock()

    monkeypatch.setattr("firebase_admin._apps", {"[DEFAULT]": mock_app})
    monkeypatch.setattr("firebase_admin.initialize_app", MagicMock(return_value=mock_app))
    monkeypatch.setattr("firebase_admin.firestore.client", MagicMock(return_value=mock_db))
    monkeypatch.setattr("src.tools.firestore_tools._db", None)

    return {"app": mock_app, "db": mock_db}


class _TickingDatetime(datetime):
    """datetime whose now() advances one second per call."""

    ticks = 0

    @classmethod
    def now(cls, tz=None):
        cls.ticks += 1
        return datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=cls.ticks)


@pytest.fixture
def ticking_clock(monkeypatch):
    """Make service timestamps strictly increasing so ordering is deterministic."""
    _TickingDatetime.ticks = 0
    for module in (
        "src.tools.connection_tools",
        "src.tools.message_tools",
        "src.tools.profile_tools",
    ):
        monkeypatch.setattr(f"{module}.datetime", _TickingDatetime)
    return _TickingDatetime
