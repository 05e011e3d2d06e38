"""JSON export data source — reads a local mirror of the user's rows.

The export is a single JSON object::

    {
        "goals": [...],
        "habits": [...],
        "journal_entries": [...],
        "vision_images": [...],
        "checkins": [...],
        "identity_tests": [...]
    }

A missing key means the domain has no rows. A missing or unreadable file
makes every read raise, so all six areas report ``unavailable``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from lifeos.domains.profile_strength.domain_logic.signal_builder import parse_date
from lifeos.domains.profile_strength.sources import DataSourceError

logger = logging.getLogger(__name__)

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)

_DOMAIN_KEYS = (
    "goals",
    "habits",
    "journal_entries",
    "vision_images",
    "checkins",
    "identity_tests",
)


def _newest_first(rows: list[dict[str, Any]], *date_fields: str) -> list[dict[str, Any]]:
    """Sort rows by the first parseable date field, newest first; undated rows last."""
    def key(row: dict[str, Any]) -> datetime:
        for name in date_fields:
            parsed = parse_date(row.get(name))
            if parsed is not None:
                return parsed
        return _OLDEST

    return sorted(rows, key=key, reverse=True)


class JsonFileDataSource:
    """ProfileDataSource backed by a JSON export on disk.

    The file is re-read on every call so edits show up on the next refresh.

    Usage::

        source = JsonFileDataSource("~/.lifeos/export.json")
        goals = await source.get_goals()
    """

    def __init__(self, path: str) -> None:
        self._path = Path(path).expanduser() if path else None

    def _load(self) -> dict[str, Any]:
        if self._path is None:
            raise DataSourceError("No data file configured")
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise DataSourceError(f"Unable to read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise DataSourceError(f"{self._path}: expected a JSON object")
        return data

    def _rows(self, key: str) -> list[dict[str, Any]]:
        rows = self._load().get(key, [])
        if not isinstance(rows, list):
            raise DataSourceError(f"{self._path}: '{key}' must be a list")
        return [row for row in rows if isinstance(row, dict)]

    async def get_goals(self, user_id: str | None = None) -> list[dict[str, Any]]:
        return self._rows("goals")

    async def get_habits(self, user_id: str | None = None) -> list[dict[str, Any]]:
        return self._rows("habits")

    async def get_journal_entries(
        self, user_id: str | None = None, limit: int = 60
    ) -> list[dict[str, Any]]:
        rows = _newest_first(self._rows("journal_entries"), "entry_date", "created_at")
        return rows[:limit]

    async def get_vision_images(self, user_id: str | None = None) -> list[dict[str, Any]]:
        return self._rows("vision_images")

    async def get_checkins(
        self, user_id: str | None = None, limit: int = 12
    ) -> list[dict[str, Any]]:
        rows = _newest_first(self._rows("checkins"), "date")
        return rows[:limit]

    async def get_identity_tests(self, user_id: str | None = None) -> list[dict[str, Any]]:
        return _newest_first(self._rows("identity_tests"), "taken_at")

    def is_connected(self) -> bool:
        """Check if the export file exists."""
        return self._path is not None and self._path.is_file()

    @property
    def data_source(self) -> str:
        return "json_file"

    def get_provenance(self) -> dict[str, str]:
        present: list[str] = []
        if self.is_connected():
            try:
                data = self._load()
                present = [key for key in _DOMAIN_KEYS if key in data]
            except DataSourceError:
                logger.warning("Profile export at %s is unreadable", self._path)
        return {
            "data_source": self.data_source,
            "data_source_note": "Data from a local JSON export.",
            "export_path": str(self._path or ""),
            "domains_present": ", ".join(present) if present else "none",
        }
