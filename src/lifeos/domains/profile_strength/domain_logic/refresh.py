"""Refresh service: the call site that ties signals, scoring and the XP ledger.

``refresh`` is the only operation that moves the XP baseline. It compares the
new result with the snapshot stored by the previous refresh, pays whatever
was resolved in between, and stores the new result as the next baseline.
Tasks need a baseline; coverage bonuses are checked on every refresh,
the first one included.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from lifeos.core.audit.logger import AuditLogger
from lifeos.core.storage.repository import ProfileStrengthRepository, RepositoryError
from lifeos.domains.profile_strength.domain_logic.debug import log_profile_strength_summary
from lifeos.domains.profile_strength.domain_logic.scorer import score_profile_strength
from lifeos.domains.profile_strength.domain_logic.signal_builder import (
    load_profile_strength_signals,
)
from lifeos.domains.profile_strength.domain_logic.strength_config import StrengthConfig
from lifeos.domains.profile_strength.domain_logic.strength_models import (
    ProfileStrengthInput,
    ProfileStrengthResult,
)
from lifeos.domains.profile_strength.domain_logic.xp_ledger import (
    XpEvent,
    build_xp_events,
    fold_xp_events,
    xp_state_storage_key,
)
from lifeos.domains.profile_strength.sources import ProfileDataSource

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class RefreshOutcome:
    """What one refresh produced."""

    result: ProfileStrengthResult
    signals: ProfileStrengthInput
    events: list[XpEvent] = field(default_factory=list)
    xp_gained: int = 0
    total_xp: int = 0
    previous_overall_percent: int | None = None
    snapshot_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile_strength": self.result.to_dict(),
            "xp": {
                "gained": self.xp_gained,
                "total": self.total_xp,
                "events": [event.to_dict() for event in self.events],
            },
            "previous_overall_percent": self.previous_overall_percent,
            "snapshot_id": self.snapshot_id,
        }


class ProfileStrengthService:
    """Computes profile strength for a user and keeps their XP ledger current.

    Usage::

        service = ProfileStrengthService(source, repository, audit_logger=audit)
        outcome = await service.refresh("user-1")
        outcome.xp_gained
    """

    def __init__(
        self,
        source: ProfileDataSource,
        repository: ProfileStrengthRepository,
        *,
        config: StrengthConfig | None = None,
        audit_logger: AuditLogger | None = None,
        clock: Callable[[], datetime] = _utc_now,
        journal_limit: int = 60,
        checkin_limit: int = 12,
        debug: bool = False,
    ) -> None:
        self._source = source
        self._repo = repository
        self._config = config or StrengthConfig()
        self._audit = audit_logger
        self._clock = clock
        self._journal_limit = journal_limit
        self._checkin_limit = checkin_limit
        self._debug = debug

    @property
    def config(self) -> StrengthConfig:
        return self._config

    async def _score(
        self, user_id: str | None
    ) -> tuple[ProfileStrengthResult, ProfileStrengthInput]:
        signals = await load_profile_strength_signals(
            self._source,
            user_id=user_id,
            now=self._clock(),
            journal_limit=self._journal_limit,
            checkin_limit=self._checkin_limit,
        )
        result = score_profile_strength(signals, area_weights=self._config.area_weights)
        if self._debug:
            log_profile_strength_summary(result)
        return result, signals

    def _load_previous(self, user_id: str | None) -> ProfileStrengthResult | None:
        """The baseline stored by the last refresh; unreadable rows count as none."""
        try:
            stored = self._repo.get_latest_snapshot(user_id)
            if stored is None:
                return None
            return ProfileStrengthResult.from_dict(stored.result)
        except (RepositoryError, KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Previous profile strength snapshot unreadable: %s", exc)
            return None

    async def compute(
        self, user_id: str | None = None
    ) -> tuple[ProfileStrengthResult, ProfileStrengthInput]:
        """Score the user's current data without touching the ledger."""
        return await self._score(user_id)

    async def refresh(self, user_id: str | None = None) -> RefreshOutcome:
        """Score, pay XP for tasks resolved since the last refresh, store the baseline."""
        result, signals = await self._score(user_id)

        previous = self._load_previous(user_id)
        state = self._repo.load_xp_state(user_id)

        events = build_xp_events(previous, result, signals, state)

        xp_gained = 0
        if events:
            before = self._repo.total_xp(user_id)
            self._repo.commit_xp_events(user_id, fold_xp_events(state, events), events)
            xp_gained = self._repo.total_xp(user_id) - before
            logger.info(
                "Folded %d XP events (+%d XP) into %s",
                len(events), xp_gained, xp_state_storage_key(user_id),
            )
            if self._audit is not None:
                self._audit.log_xp_awards(
                    storage_key=xp_state_storage_key(user_id),
                    event_ids=[event.id for event in events],
                    xp=xp_gained,
                    tool_name="refresh_profile_strength",
                )

        snapshot_id = self._repo.save_snapshot(user_id, result, signals)

        return RefreshOutcome(
            result=result,
            signals=signals,
            events=events,
            xp_gained=xp_gained,
            total_xp=self._repo.total_xp(user_id),
            previous_overall_percent=previous.overall_percent if previous else None,
            snapshot_id=snapshot_id,
        )

    def xp_summary(self, user_id: str | None = None, *, award_limit: int = 20) -> dict[str, Any]:
        """Ledger state, total XP and recent awards for one user."""
        state = self._repo.load_xp_state(user_id)
        return {
            "state": state.to_dict(),
            "total_xp": self._repo.total_xp(user_id),
            "recent_awards": [
                award.to_dict() for award in self._repo.get_awards(user_id, limit=award_limit)
            ],
            "score_history": [
                {"computed_at": computed_at, "overall_percent": percent}
                for computed_at, percent in self._repo.get_score_history(user_id, limit=10)
            ],
        }
