"""Shared test fixtures for LifeOS profile strength tests."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("ENCRYPTION_PREVIOUS_KEYS", "")
    monkeypatch.setenv("DATA_SOURCE", "mock")
    monkeypatch.setenv("STRENGTH_CONFIG_PATH", "")
    monkeypatch.setenv("PROFILE_STRENGTH_DEBUG", "false")

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from lifeos.domains.profile_strength.domain_logic.strength_models import (  # noqa: E402
    LIFE_WHEEL_CATEGORIES,
)

FIXED_NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


def days_ago(days: float, now: datetime = FIXED_NOW) -> str:
    return (now - timedelta(days=days)).isoformat()


# ---------------------------------------------------------------------------
# Scriptable data source
# ---------------------------------------------------------------------------

class StubDataSource:
    """ProfileDataSource returning canned rows; set a domain to an Exception to fail it."""

    def __init__(self, **domains: Any) -> None:
        self.domains: dict[str, Any] = {
            "goals": [],
            "habits": [],
            "journal_entries": [],
            "vision_images": [],
            "checkins": [],
            "identity_tests": [],
        }
        self.domains.update(domains)
        self.calls: list[tuple[str, str | None]] = []

    def _read(self, name: str, user_id: str | None) -> Any:
        self.calls.append((name, user_id))
        value = self.domains[name]
        if isinstance(value, Exception):
            raise value
        return value

    async def get_goals(self, user_id=None):
        return self._read("goals", user_id)

    async def get_habits(self, user_id=None):
        return self._read("habits", user_id)

    async def get_journal_entries(self, user_id=None, limit=60):
        return self._read("journal_entries", user_id)

    async def get_vision_images(self, user_id=None):
        return self._read("vision_images", user_id)

    async def get_checkins(self, user_id=None, limit=12):
        return self._read("checkins", user_id)

    async def get_identity_tests(self, user_id=None):
        return self._read("identity_tests", user_id)

    @property
    def data_source(self) -> str:
        return "stub"

    def get_provenance(self) -> dict[str, str]:
        return {"data_source": "stub", "data_source_note": "test rows"}


def full_goal_rows(per_category: int = 1) -> list[dict[str, Any]]:
    """Goals covering every life wheel category, all rich and recent."""
    return [
        {
            "id": f"goal-{category}-{i}",
            "life_wheel_category": category,
            "description": "Something concrete.",
            "status_tag": "on_track",
            "created_at": days_ago(1),
        }
        for category in LIFE_WHEEL_CATEGORIES
        for i in range(per_category)
    ]


def full_habit_rows(per_domain: int = 1) -> list[dict[str, Any]]:
    """Habits covering every life wheel domain, all rich and recent."""
    return [
        {
            "id": f"habit-{category}-{i}",
            "domain_key": category,
            "target_num": 1,
            "created_at": days_ago(1),
        }
        for category in LIFE_WHEEL_CATEGORIES
        for i in range(per_domain)
    ]


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def stub_source() -> StubDataSource:
    return StubDataSource()


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def profile_db():
    """Create an in-memory ProfileDatabase for testing."""
    from lifeos.core.storage.database import ProfileDatabase

    db = ProfileDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from lifeos.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def repository(profile_db, field_encryptor):
    """Create a ProfileStrengthRepository backed by in-memory SQLite."""
    from lifeos.core.storage.repository import ProfileStrengthRepository

    return ProfileStrengthRepository(profile_db, field_encryptor)


@pytest.fixture
def audit_logger(profile_db):
    """Create an AuditLogger backed by in-memory SQLite."""
    from lifeos.core.audit.logger import AuditLogger

    return AuditLogger(profile_db)
