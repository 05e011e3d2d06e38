"""Profile data sources — the six domain reads behind profile strength."""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


class DataSourceError(Exception):
    """Raised when a domain read fails."""


@runtime_checkable
class ProfileDataSource(Protocol):
    """Abstract interface for the per-domain row reads.

    Each method returns the domain's rows as dicts, or raises (or returns
    None) on failure. SignalBuilder degrades a failed read to an
    ``unavailable`` signal for that area only.
    """

    async def get_goals(self, user_id: str | None = None) -> list[dict[str, Any]]:
        """Goal rows: life_wheel_category, status_tag, notes, dates."""
        ...

    async def get_habits(self, user_id: str | None = None) -> list[dict[str, Any]]:
        """Habit rows: domain_key, goal_id, target_num/target_unit, dates."""
        ...

    async def get_journal_entries(
        self, user_id: str | None = None, limit: int = 60
    ) -> list[dict[str, Any]]:
        """Most recent journal entries, newest first."""
        ...

    async def get_vision_images(self, user_id: str | None = None) -> list[dict[str, Any]]:
        """Vision board images with captions, links and review intervals."""
        ...

    async def get_checkins(
        self, user_id: str | None = None, limit: int = 12
    ) -> list[dict[str, Any]]:
        """Most recent life wheel check-ins, newest first."""
        ...

    async def get_identity_tests(self, user_id: str | None = None) -> list[dict[str, Any]]:
        """Personality/identity test history."""
        ...

    @property
    def data_source(self) -> str:
        """Label for the active data source: 'mock' or 'json_file'."""
        ...

    def get_provenance(self) -> dict[str, str]:
        """Return provenance metadata for tool responses."""
        ...
