"""Row models for the ledger bank."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class StoredAward:
    """One paid XP event as recorded in ``xp_awards``."""

    id: str
    storage_key: str
    event_id: str
    kind: str  # 'task' | 'bonus'
    xp: int
    source_type: str
    source_id: str
    description: str = ""
    awarded_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_id": self.event_id,
            "kind": self.kind,
            "xp": self.xp,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "description": self.description,
            "awarded_at": self.awarded_at,
        }


@dataclass
class StoredSnapshot:
    """A persisted ProfileStrengthResult plus its decrypted signal snapshot.

    ``result`` and ``signals`` hold the plain dict forms; use
    ``ProfileStrengthResult.from_dict`` / ``ProfileStrengthInput.from_dict``
    to get domain objects back.
    """

    id: str
    storage_key: str
    computed_at: str
    overall_percent: int | None
    used_fallback_data: bool
    result: dict[str, Any] = field(default_factory=dict)
    signals: dict[str, Any] | None = None
    created_at: str = ""
