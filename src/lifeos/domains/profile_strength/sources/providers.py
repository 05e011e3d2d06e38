"""Concrete ProfileDataSource implementations."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from lifeos.domains.profile_strength.sources.mock_data import (
    get_mock_checkins,
    get_mock_goals,
    get_mock_habits,
    get_mock_identity_tests,
    get_mock_journal_entries,
    get_mock_vision_images,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MockProfileDataSource:
    """Uses the demo profile. Always available, ignores ``user_id``."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock

    async def get_goals(self, user_id: str | None = None) -> list[dict[str, Any]]:
        return get_mock_goals(self._clock())

    async def get_habits(self, user_id: str | None = None) -> list[dict[str, Any]]:
        return get_mock_habits(self._clock())

    async def get_journal_entries(
        self, user_id: str | None = None, limit: int = 60
    ) -> list[dict[str, Any]]:
        return get_mock_journal_entries(self._clock(), limit)

    async def get_vision_images(self, user_id: str | None = None) -> list[dict[str, Any]]:
        return get_mock_vision_images(self._clock())

    async def get_checkins(
        self, user_id: str | None = None, limit: int = 12
    ) -> list[dict[str, Any]]:
        return get_mock_checkins(self._clock(), limit)

    async def get_identity_tests(self, user_id: str | None = None) -> list[dict[str, Any]]:
        return get_mock_identity_tests(self._clock())

    @property
    def data_source(self) -> str:
        return "mock"

    def get_provenance(self) -> dict[str, str]:
        return {
            "data_source": self.data_source,
            "data_source_note": (
                "Using the demo profile. "
                "Point LIFEOS data settings at an export for real data."
            ),
        }
