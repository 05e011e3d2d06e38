"""XP ledger: one-time rewards for resolved tasks and coverage milestones.

The ledger is recomputed from two snapshots on every refresh, so idempotency
lives entirely in ``XpLedgerState``: a task id in ``completed_task_ids`` and a
bonus flag set to True are never paid again. Everything here is pure; loading
and saving the state is the caller's job (see ProfileStrengthRepository).

Typical refresh::

    events = build_xp_events(previous, result, signals, state)
    repository.commit_xp_events(user_id, fold_xp_events(state, events), events)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any

from lifeos.domains.profile_strength.domain_logic.strength_models import (
    AREA_KEYS,
    LIFE_WHEEL_CATEGORIES,
    STATUS_NO_DATA,
    STATUS_OK,
    STATUS_UNAVAILABLE,
    NextTask,
    ProfileStrengthInput,
    ProfileStrengthResult,
)

logger = logging.getLogger(__name__)

XP_STATE_STORAGE_PREFIX = "profileStrengthXpState"
XP_STATE_VERSION = 1

EVENT_KIND_TASK = "task"
EVENT_KIND_BONUS = "bonus"
SOURCE_TYPE_TASK = "profile_strength_improvement"
SOURCE_TYPE_BONUS = "profile_strength_bonus"


@dataclass(frozen=True)
class BonusDefinition:
    id: str
    xp: int
    description: str
    min_per_category: int


BONUS_DEFINITIONS: dict[str, BonusDefinition] = {
    "goals_coverage": BonusDefinition(
        id="profile-strength-goals-coverage",
        xp=100,
        description="Coverage bonus: all life wheel categories have at least one goal.",
        min_per_category=1,
    ),
    "habits_coverage": BonusDefinition(
        id="profile-strength-habits-coverage",
        xp=250,
        description="Coverage bonus: each life wheel category has two or more habits.",
        min_per_category=2,
    ),
}


# ---------------------------------------------------------------------------
# State and events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class XpLedgerState:
    """Persisted per-user record of what has already been paid."""

    completed_task_ids: tuple[str, ...] = ()
    goals_coverage: bool = False
    habits_coverage: bool = False
    version: int = XP_STATE_VERSION

    def has_completed(self, task_id: str) -> bool:
        return task_id in self.completed_task_ids

    def to_dict(self) -> dict[str, Any]:
        """Wire format: ``{version, completedTaskIds, bonuses{...}}``."""
        return {
            "version": self.version,
            "completedTaskIds": list(self.completed_task_ids),
            "bonuses": {
                "goalsCoverage": self.goals_coverage,
                "habitsCoverage": self.habits_coverage,
            },
        }


DEFAULT_XP_STATE = XpLedgerState()


@dataclass(frozen=True)
class XpEvent:
    """A one-shot reward emitted by ``build_xp_events``."""

    kind: str                  # 'task' | 'bonus'
    id: str
    xp: int
    source_type: str           # 'profile_strength_improvement' | 'profile_strength_bonus'
    source_id: str
    description: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "id": self.id,
            "xp": self.xp,
            "source_type": self.source_type,
            "source_id": self.source_id,
            "description": self.description,
        }


# ---------------------------------------------------------------------------
# Persistence helpers (pure)
# ---------------------------------------------------------------------------

def xp_state_storage_key(user_id: str | None = None) -> str:
    """Per-user storage key; anonymous sessions share the demo key."""
    return f"{XP_STATE_STORAGE_PREFIX}:{user_id or 'demo'}"


def normalize_xp_state(value: Any) -> XpLedgerState:
    """Coerce any decoded value into a valid state; never raises."""
    if not isinstance(value, dict):
        return DEFAULT_XP_STATE

    raw_ids = value.get("completedTaskIds")
    task_ids: list[str] = []
    if isinstance(raw_ids, list):
        for task_id in raw_ids:
            if isinstance(task_id, str) and task_id not in task_ids:
                task_ids.append(task_id)

    bonuses = value.get("bonuses")
    if not isinstance(bonuses, dict):
        bonuses = {}

    return XpLedgerState(
        completed_task_ids=tuple(task_ids),
        goals_coverage=bool(bonuses.get("goalsCoverage")),
        habits_coverage=bool(bonuses.get("habitsCoverage")),
    )


def parse_xp_state(raw: str | bytes | None) -> XpLedgerState:
    """Decode stored JSON, falling back to the zero state on any problem."""
    if not raw:
        return DEFAULT_XP_STATE
    try:
        return normalize_xp_state(json.loads(raw))
    except (TypeError, ValueError) as exc:
        logger.warning("Unable to parse profile strength XP state: %s", exc)
        return DEFAULT_XP_STATE


def serialize_xp_state(state: XpLedgerState) -> str:
    return json.dumps(state.to_dict(), separators=(",", ":"))


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def _status_from_result(result: ProfileStrengthResult, area: str) -> str:
    """Recover an area's signal status from a scored result."""
    if result.area_scores.get(area) is None:
        return STATUS_UNAVAILABLE
    if "no_data" in result.reasons_by_area.get(area, ()):
        return STATUS_NO_DATA
    return STATUS_OK


def detect_resolved_tasks(
    previous: ProfileStrengthResult,
    next_result: ProfileStrengthResult,
    next_signals: ProfileStrengthInput | None = None,
) -> list[NextTask]:
    """Tasks from ``previous`` that ``next_result`` shows as actually fixed.

    A task is resolved when its area is ``ok`` in the next pass and none of
    its reason codes remain there. An area that went unavailable or empty
    resolves nothing. Without ``next_signals`` the status is read back from
    ``next_result``.
    """
    resolved: list[NextTask] = []
    for area in AREA_KEYS:
        tasks = previous.next_tasks_by_area.get(area, ())
        if not tasks:
            continue
        if next_signals is not None:
            status = next_signals.status_of(area)
        else:
            status = _status_from_result(next_result, area)
        if status != STATUS_OK:
            continue
        remaining = set(next_result.reasons_by_area.get(area, ()))
        for task in tasks:
            if not any(code in remaining for code in task.reason_codes):
                resolved.append(task)
    return resolved


def _has_full_coverage(counts: dict[str, int], minimum: int) -> bool:
    return all(counts.get(category, 0) >= minimum for category in LIFE_WHEEL_CATEGORIES)


def has_full_goal_coverage(signals: ProfileStrengthInput) -> bool:
    """Every life wheel category has at least one goal (goals area ok)."""
    if signals.status_of("goals") != STATUS_OK:
        return False
    return _has_full_coverage(
        signals.metrics.goal_category_counts,
        BONUS_DEFINITIONS["goals_coverage"].min_per_category,
    )


def has_full_habit_coverage(signals: ProfileStrengthInput) -> bool:
    """Every life wheel domain has at least two habits (habits area ok)."""
    if signals.status_of("habits") != STATUS_OK:
        return False
    return _has_full_coverage(
        signals.metrics.habit_domain_counts,
        BONUS_DEFINITIONS["habits_coverage"].min_per_category,
    )


def _bonus_event(definition: BonusDefinition) -> XpEvent:
    return XpEvent(
        kind=EVENT_KIND_BONUS,
        id=definition.id,
        xp=definition.xp,
        source_type=SOURCE_TYPE_BONUS,
        source_id=definition.id,
        description=definition.description,
    )


def build_xp_events(
    previous: ProfileStrengthResult | None,
    next_result: ProfileStrengthResult,
    next_signals: ProfileStrengthInput,
    state: XpLedgerState,
) -> list[XpEvent]:
    """Emit the one-shot XP events earned between two snapshots.

    Already-completed task ids and already-set bonus flags are skipped, so
    running this twice against the folded state yields nothing new. Without
    a ``previous`` result no task can be resolved, but bonuses still apply.
    """
    events: list[XpEvent] = []
    seen: set[str] = set()
    resolved = (
        detect_resolved_tasks(previous, next_result, next_signals) if previous is not None else []
    )

    for task in resolved:
        if state.has_completed(task.id) or task.id in seen:
            continue
        seen.add(task.id)
        events.append(XpEvent(
            kind=EVENT_KIND_TASK,
            id=task.id,
            xp=task.xp_reward,
            source_type=SOURCE_TYPE_TASK,
            source_id=task.id,
            description=f"Profile strength: {task.title}",
            metadata={"area": task.area, "reason_codes": list(task.reason_codes)},
        ))

    if not state.goals_coverage and has_full_goal_coverage(next_signals):
        events.append(_bonus_event(BONUS_DEFINITIONS["goals_coverage"]))

    if not state.habits_coverage and has_full_habit_coverage(next_signals):
        events.append(_bonus_event(BONUS_DEFINITIONS["habits_coverage"]))

    return events


# ---------------------------------------------------------------------------
# Folding
# ---------------------------------------------------------------------------

def apply_xp_event(state: XpLedgerState, event: XpEvent) -> XpLedgerState:
    """Return the state with ``event`` recorded. Unknown bonuses are ignored."""
    if event.kind == EVENT_KIND_TASK:
        if state.has_completed(event.id):
            return state
        return replace(state, completed_task_ids=state.completed_task_ids + (event.id,))
    if event.id == BONUS_DEFINITIONS["goals_coverage"].id:
        return replace(state, goals_coverage=True)
    if event.id == BONUS_DEFINITIONS["habits_coverage"].id:
        return replace(state, habits_coverage=True)
    return state


def fold_xp_events(state: XpLedgerState, events: list[XpEvent]) -> XpLedgerState:
    for event in events:
        state = apply_xp_event(state, event)
    return state


def total_xp(events: list[XpEvent]) -> int:
    return sum(event.xp for event in events)
