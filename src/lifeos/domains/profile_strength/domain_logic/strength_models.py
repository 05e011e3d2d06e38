"""Profile strength models and domain constants.

The six areas, the reason-code vocabulary and the scoring weights are fixed
design constants. Everything that flows between SignalBuilder, Scorer and the
XP ledger is defined here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Declaration order is the priority order for the global next task.
AREA_KEYS = (
    "goals",
    "habits",
    "journal",
    "vision_board",
    "life_wheel",
    "identity",
)

LIFE_WHEEL_CATEGORIES = (
    "health",
    "relationships",
    "career",
    "personal_growth",
    "fun",
    "finances",
    "giving_back",
    "environment",
)

REASON_CODES = (
    "no_data",
    "low_coverage",
    "low_recency",
    "low_quality",
    "needs_review",
    "stale_snapshot",
    "error_fallback",
)

# Reasons that explain a score but never become a task
INFORMATIONAL_REASONS = frozenset({"stale_snapshot"})

STATUS_OK = "ok"
STATUS_NO_DATA = "no_data"
STATUS_UNAVAILABLE = "unavailable"
SIGNAL_STATUSES = (STATUS_OK, STATUS_NO_DATA, STATUS_UNAVAILABLE)

AREA_NAV_TARGETS = {
    "goals": "support",
    "habits": "habits",
    "journal": "journal",
    "vision_board": "insights",
    "life_wheel": "rituals",
    "identity": "identity",
}

AREA_LABELS = {
    "goals": "goal",
    "habits": "habit",
    "journal": "journal entry",
    "vision_board": "vision board",
    "life_wheel": "life wheel check-in",
    "identity": "identity profile",
}

# Score = coverage*4 + quality*3 + recency*3, clamped to [0, 10]
COVERAGE_POINTS = 4
QUALITY_POINTS = 3
RECENCY_POINTS = 3
MAX_AREA_SCORE = 10

LOW_SIGNAL_THRESHOLD = 0.4
MAX_TASKS_PER_AREA = 2
TASK_XP_REWARD = 25

DEFAULT_AREA_WEIGHT = 1.0


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AreaSignal:
    """Normalized observation for one area.

    ``unavailable`` means the upstream fetch failed, ``no_data`` means the
    domain returned zero rows. Only ``ok`` signals carry measurements, and any
    of them may be missing on a partially-populated snapshot.
    """

    status: str = STATUS_OK
    coverage: float | None = None      # 0-1: breadth relative to a domain target
    quality: float | None = None       # 0-1: fraction of "rich" records
    recency_days: int | None = None    # days since the most recent record
    needs_review: bool = False

    @classmethod
    def unavailable(cls) -> AreaSignal:
        return cls(status=STATUS_UNAVAILABLE)

    @classmethod
    def no_data(cls) -> AreaSignal:
        return cls(status=STATUS_NO_DATA)

    @property
    def is_ok(self) -> bool:
        return self.status == STATUS_OK

    def to_dict(self) -> dict[str, Any]:
        if self.status != STATUS_OK:
            return {"status": self.status}
        return {
            "status": self.status,
            "coverage": self.coverage,
            "quality": self.quality,
            "recency_days": self.recency_days,
            "needs_review": self.needs_review,
        }

    @classmethod
    def from_dict(cls, data: Any) -> AreaSignal:
        """Rebuild a signal; anything unrecognisable is treated as unavailable."""
        if not isinstance(data, dict):
            return cls.unavailable()
        status = data.get("status", STATUS_OK)
        if status not in SIGNAL_STATUSES:
            return cls.unavailable()
        if status != STATUS_OK:
            return cls(status=status)
        return cls(
            status=status,
            coverage=data.get("coverage"),
            quality=data.get("quality"),
            recency_days=data.get("recency_days"),
            needs_review=bool(data.get("needs_review", False)),
        )


def _zero_category_counts() -> dict[str, int]:
    return {category: 0 for category in LIFE_WHEEL_CATEGORIES}


@dataclass
class SignalMetrics:
    """Per-category counts used by the coverage bonuses.

    Both maps are total over LIFE_WHEEL_CATEGORIES.
    """

    goal_category_counts: dict[str, int] = field(default_factory=_zero_category_counts)
    habit_domain_counts: dict[str, int] = field(default_factory=_zero_category_counts)

    @classmethod
    def from_counts(
        cls,
        goal_counts: dict[str, int] | None = None,
        habit_counts: dict[str, int] | None = None,
    ) -> SignalMetrics:
        """Build metrics from partial maps, defaulting absent categories to 0."""
        goals = _zero_category_counts()
        habits = _zero_category_counts()
        for category, count in (goal_counts or {}).items():
            if category in goals:
                goals[category] = int(count)
        for category, count in (habit_counts or {}).items():
            if category in habits:
                habits[category] = int(count)
        return cls(goal_category_counts=goals, habit_domain_counts=habits)

    def to_dict(self) -> dict[str, dict[str, int]]:
        return {
            "goal_category_counts": dict(self.goal_category_counts),
            "habit_domain_counts": dict(self.habit_domain_counts),
        }


@dataclass
class ProfileStrengthInput:
    """The signal snapshot of one refresh: six area signals plus metrics."""

    areas: dict[str, AreaSignal] = field(default_factory=dict)
    computed_at: str | None = None
    metrics: SignalMetrics = field(default_factory=SignalMetrics)

    def status_of(self, area: str) -> str:
        signal = self.areas.get(area)
        return signal.status if signal is not None else STATUS_UNAVAILABLE

    def to_dict(self) -> dict[str, Any]:
        return {
            "computed_at": self.computed_at,
            "areas": {area: self.areas[area].to_dict() for area in self.areas},
            "metrics": self.metrics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProfileStrengthInput:
        areas_data = data.get("areas") or {}
        metrics_data = data.get("metrics") or {}
        return cls(
            areas={
                area: AreaSignal.from_dict(areas_data[area])
                for area in AREA_KEYS
                if area in areas_data
            },
            computed_at=data.get("computed_at"),
            metrics=SignalMetrics.from_counts(
                metrics_data.get("goal_category_counts"),
                metrics_data.get("habit_domain_counts"),
            ),
        )


# ---------------------------------------------------------------------------
# Scorer output
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskAction:
    type: str = "navigate"             # 'navigate' | 'open_modal' | 'start_flow'
    target: str = ""


@dataclass(frozen=True)
class NextTask:
    """A recommended micro-action. ``id`` is the idempotency key for XP."""

    id: str
    area: str
    title: str
    description: str
    eta_minutes: int
    xp_reward: int
    reason_codes: tuple[str, ...]
    action: TaskAction

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "area": self.area,
            "title": self.title,
            "description": self.description,
            "eta_minutes": self.eta_minutes,
            "xp_reward": self.xp_reward,
            "reason_codes": list(self.reason_codes),
            "action": {"type": self.action.type, "target": self.action.target},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NextTask:
        action = data.get("action") or {}
        return cls(
            id=data["id"],
            area=data["area"],
            title=data.get("title", ""),
            description=data.get("description", ""),
            eta_minutes=int(data.get("eta_minutes", 2)),
            xp_reward=int(data.get("xp_reward", TASK_XP_REWARD)),
            reason_codes=tuple(data.get("reason_codes", ())),
            action=TaskAction(
                type=action.get("type", "navigate"),
                target=action.get("target", ""),
            ),
        )


@dataclass(frozen=True)
class ProfileStrengthMeta:
    computed_at: str
    used_fallback_data: bool


@dataclass(frozen=True)
class ProfileStrengthResult:
    """Output of one Scorer invocation. Every map holds exactly AREA_KEYS."""

    area_scores: dict[str, int | None]
    overall_percent: int | None
    reasons_by_area: dict[str, tuple[str, ...]]
    next_tasks_by_area: dict[str, tuple[NextTask, ...]]
    global_next_task: NextTask | None
    meta: ProfileStrengthMeta

    def to_dict(self) -> dict[str, Any]:
        return {
            "area_scores": dict(self.area_scores),
            "overall_percent": self.overall_percent,
            "reasons_by_area": {
                area: list(reasons) for area, reasons in self.reasons_by_area.items()
            },
            "next_tasks_by_area": {
                area: [task.to_dict() for task in tasks]
                for area, tasks in self.next_tasks_by_area.items()
            },
            "global_next_task": (
                self.global_next_task.to_dict() if self.global_next_task else None
            ),
            "meta": {
                "computed_at": self.meta.computed_at,
                "used_fallback_data": self.meta.used_fallback_data,
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProfileStrengthResult:
        scores = data.get("area_scores") or {}
        reasons = data.get("reasons_by_area") or {}
        tasks = data.get("next_tasks_by_area") or {}
        meta = data.get("meta") or {}
        global_task = data.get("global_next_task")
        return cls(
            area_scores={area: scores.get(area) for area in AREA_KEYS},
            overall_percent=data.get("overall_percent"),
            reasons_by_area={area: tuple(reasons.get(area, ())) for area in AREA_KEYS},
            next_tasks_by_area={
                area: tuple(NextTask.from_dict(t) for t in tasks.get(area, ()))
                for area in AREA_KEYS
            },
            global_next_task=NextTask.from_dict(global_task) if global_task else None,
            meta=ProfileStrengthMeta(
                computed_at=meta.get("computed_at", ""),
                used_fallback_data=bool(meta.get("used_fallback_data", False)),
            ),
        )
