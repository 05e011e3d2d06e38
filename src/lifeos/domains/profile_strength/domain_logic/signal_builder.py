"""Signal building: raw domain rows -> normalized area signals.

Each ``build_*_signal`` function takes the domain's rows and a clock value and
returns an AreaSignal. Ratios are always clamped to [0, 1]. The async
``load_profile_strength_signals`` fans out the six reads concurrently and
isolates failures per area.
"""

from __future__ import annotations

import asyncio
import logging
import math
import re
from collections.abc import Awaitable, Callable
from datetime import date, datetime, timezone
from typing import Any

from lifeos.domains.profile_strength.domain_logic.strength_models import (
    LIFE_WHEEL_CATEGORIES,
    AreaSignal,
    ProfileStrengthInput,
    SignalMetrics,
)
from lifeos.domains.profile_strength.sources import ProfileDataSource

logger = logging.getLogger(__name__)

LIFE_WHEEL_CATEGORY_COUNT = len(LIFE_WHEEL_CATEGORIES)
SECONDS_PER_DAY = 60 * 60 * 24

_FRACTION = re.compile(r"\.(\d+)")

# Domain targets for coverage denominators
JOURNAL_WINDOW_DAYS = 14
JOURNAL_TARGET_ENTRIES = 7
VISION_TARGET_IMAGES = 8
CHECKIN_TARGET_COUNT = 6
HABIT_REVIEW_LIMIT = 12
IDENTITY_REVIEW_DAYS = 365
JOURNAL_RICH_CONTENT_CHARS = 120

GOAL_STATUS_TAGS = ("on_track", "at_risk", "off_track", "achieved")
DEFAULT_GOAL_STATUS = "on_track"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _clamp_ratio(value: float) -> float:
    return max(0.0, min(1.0, value))


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _positive(value: Any) -> bool:
    """True for a usable non-zero number (booleans excluded)."""
    if value is None or isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number != 0


def parse_date(value: Any) -> datetime | None:
    """Parse an ISO date/datetime (or date object) into an aware UTC datetime."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        # fromisoformat before 3.11 only takes 3 or 6 fractional digits
        text = _FRACTION.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def most_recent_date(values: list[Any]) -> datetime | None:
    """Return the latest parseable date among ``values``."""
    dates = [d for d in (parse_date(v) for v in values) if d is not None]
    return max(dates) if dates else None


def days_since(moment: datetime | None, now: datetime) -> int | None:
    """Whole days elapsed since ``moment`` (never negative)."""
    if moment is None:
        return None
    elapsed = (now - moment).total_seconds() / SECONDS_PER_DAY
    return max(0, math.floor(elapsed))


def _first_present(row: dict[str, Any], *names: str) -> Any:
    for name in names:
        value = row.get(name)
        if value:
            return value
    return None


def normalize_goal_status(value: Any) -> str:
    """Map free-form status tags onto the four known goal statuses."""
    if not isinstance(value, str) or not value:
        return DEFAULT_GOAL_STATUS
    normalized = value.lower().replace("-", "_")
    if normalized == "blocked":
        return "off_track"
    if normalized in GOAL_STATUS_TAGS:
        return normalized
    return DEFAULT_GOAL_STATUS


def _dict_rows(rows: list[Any]) -> list[dict[str, Any]]:
    return [row for row in rows if isinstance(row, dict)]


def _category_counts(rows: list[dict[str, Any]], field_name: str) -> dict[str, int]:
    counts = {category: 0 for category in LIFE_WHEEL_CATEGORIES}
    for row in rows:
        category = row.get(field_name)
        if isinstance(category, str) and category in counts:
            counts[category] += 1
    return counts


def goal_category_counts(goals: list[Any]) -> dict[str, int]:
    """Goals per life wheel category, total over all categories."""
    return _category_counts(_dict_rows(goals), "life_wheel_category")


def habit_domain_counts(habits: list[Any]) -> dict[str, int]:
    """Habits per life wheel domain, total over all categories."""
    return _category_counts(_dict_rows(habits), "domain_key")


# ---------------------------------------------------------------------------
# Per-domain builders
# ---------------------------------------------------------------------------

def build_goals_signal(goals: list[Any], now: datetime) -> AreaSignal:
    """Coverage: categories touched / 8. Review: any goal at risk or off track."""
    goals = _dict_rows(goals)
    if not goals:
        return AreaSignal.no_data()

    categories = {g.get("life_wheel_category") for g in goals if g.get("life_wheel_category")}
    coverage = _clamp_ratio(len(categories) / LIFE_WHEEL_CATEGORY_COUNT)

    rich = sum(
        1 for g in goals
        if _text(g.get("description"))
        or _text(g.get("progress_notes"))
        or _text(g.get("timing_notes"))
        or g.get("target_date")
        or _positive(g.get("estimated_duration_days"))
    )
    quality = _clamp_ratio(rich / len(goals))

    latest = most_recent_date(
        [_first_present(g, "created_at", "start_date", "target_date") for g in goals]
    )
    needs_review = any(
        normalize_goal_status(g.get("status_tag")) in ("at_risk", "off_track") for g in goals
    )

    return AreaSignal(
        coverage=coverage,
        quality=quality,
        recency_days=days_since(latest, now),
        needs_review=needs_review,
    )


def build_habits_signal(habits: list[Any], now: datetime) -> AreaSignal:
    """Coverage: domains touched / 8. Review: more than 12 habits."""
    habits = _dict_rows(habits)
    if not habits:
        return AreaSignal.no_data()

    domains = {h.get("domain_key") for h in habits if h.get("domain_key")}
    coverage = _clamp_ratio(len(domains) / LIFE_WHEEL_CATEGORY_COUNT)

    rich = sum(
        1 for h in habits
        if h.get("goal_id") or _positive(h.get("target_num")) or _text(h.get("target_unit"))
    )
    quality = _clamp_ratio(rich / len(habits))

    latest = most_recent_date([_first_present(h, "created_at", "start_date") for h in habits])

    return AreaSignal(
        coverage=coverage,
        quality=quality,
        recency_days=days_since(latest, now),
        needs_review=len(habits) > HABIT_REVIEW_LIMIT,
    )


def build_journal_signal(entries: list[Any], now: datetime) -> AreaSignal:
    """Coverage: entries in the last 14 days / 7."""
    entries = _dict_rows(entries)
    if not entries:
        return AreaSignal.no_data()

    entry_dates = [parse_date(_first_present(e, "entry_date", "created_at")) for e in entries]
    window = JOURNAL_WINDOW_DAYS * SECONDS_PER_DAY
    recent = sum(
        1 for d in entry_dates
        if d is not None and (now - d).total_seconds() <= window
    )
    coverage = _clamp_ratio(recent / JOURNAL_TARGET_ENTRIES)

    def _is_rich(entry: dict[str, Any]) -> bool:
        tags = entry.get("tags")
        has_tags = isinstance(tags, (list, tuple)) and len(tags) > 0
        return (
            bool(_text(entry.get("title")))
            or has_tags
            or len(_text(entry.get("content"))) >= JOURNAL_RICH_CONTENT_CHARS
        )

    quality = _clamp_ratio(sum(1 for e in entries if _is_rich(e)) / len(entries))
    latest = max((d for d in entry_dates if d is not None), default=None)

    return AreaSignal(
        coverage=coverage,
        quality=quality,
        recency_days=days_since(latest, now),
        needs_review=False,
    )


def build_vision_board_signal(images: list[Any], now: datetime) -> AreaSignal:
    """Coverage: images / 8. Review: any image past its review interval."""
    images = _dict_rows(images)
    if not images:
        return AreaSignal.no_data()

    coverage = _clamp_ratio(len(images) / VISION_TARGET_IMAGES)

    def _has_links(image: dict[str, Any], name: str) -> bool:
        links = image.get(name)
        return isinstance(links, (list, tuple)) and len(links) > 0

    rich = sum(
        1 for i in images
        if _text(i.get("caption"))
        or i.get("vision_type")
        or _has_links(i, "linked_goal_ids")
        or _has_links(i, "linked_habit_ids")
    )
    quality = _clamp_ratio(rich / len(images))

    latest = most_recent_date([_first_present(i, "last_reviewed_at", "created_at") for i in images])

    def _overdue(image: dict[str, Any]) -> bool:
        interval = image.get("review_interval_days")
        if not _positive(interval):
            return False
        elapsed = days_since(
            parse_date(_first_present(image, "last_reviewed_at", "created_at")), now
        )
        return elapsed is not None and elapsed > float(interval)

    return AreaSignal(
        coverage=coverage,
        quality=quality,
        recency_days=days_since(latest, now),
        needs_review=any(_overdue(i) for i in images),
    )


def build_life_wheel_signal(checkins: list[Any], now: datetime) -> AreaSignal:
    """Coverage: check-ins / 6. Quality: mean share of categories scored."""
    checkins = _dict_rows(checkins)
    if not checkins:
        return AreaSignal.no_data()

    coverage = _clamp_ratio(len(checkins) / CHECKIN_TARGET_COUNT)

    completeness = []
    for checkin in checkins:
        scores = checkin.get("scores")
        count = len(scores) if isinstance(scores, dict) else 0
        completeness.append(_clamp_ratio(count / LIFE_WHEEL_CATEGORY_COUNT))
    quality = _clamp_ratio(sum(completeness) / len(completeness))

    latest = most_recent_date([c.get("date") for c in checkins])

    return AreaSignal(
        coverage=coverage,
        quality=quality,
        recency_days=days_since(latest, now),
        needs_review=False,
    )


def build_identity_signal(tests: list[Any], now: datetime) -> AreaSignal:
    """Scores the latest test. Review: latest test older than a year."""
    tests = _dict_rows(tests)
    if not tests:
        return AreaSignal.no_data()

    dated = [(parse_date(t.get("taken_at")), t) for t in tests]
    dated = [(d, t) for d, t in dated if d is not None]
    latest = max(dated, key=lambda pair: pair[0])[1] if dated else tests[0]

    traits = latest.get("traits")
    axes = latest.get("axes")
    has_traits = isinstance(traits, dict) and len(traits) > 0
    has_axes = isinstance(axes, dict) and len(axes) > 0
    quality = _clamp_ratio((0.5 if has_traits else 0.0) + (0.5 if has_axes else 0.0))

    recency_days = days_since(parse_date(latest.get("taken_at")), now)

    return AreaSignal(
        coverage=1.0,
        quality=quality,
        recency_days=recency_days,
        needs_review=recency_days is not None and recency_days > IDENTITY_REVIEW_DAYS,
    )


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

_Builder = Callable[[list[Any], datetime], AreaSignal]


def _settle(area: str, outcome: Any, builder: _Builder, now: datetime) -> AreaSignal:
    """Turn one fetch outcome into a signal, isolating every failure."""
    if isinstance(outcome, BaseException):
        logger.warning("Profile strength fetch failed for %s: %r", area, outcome)
        return AreaSignal.unavailable()
    if not isinstance(outcome, list):
        logger.warning("Profile strength fetch for %s returned no rows object", area)
        return AreaSignal.unavailable()
    try:
        return builder(outcome, now)
    except Exception:
        logger.exception("Failed to build %s signal, marking unavailable", area)
        return AreaSignal.unavailable()


async def _guard(call: Callable[[], Awaitable[Any]]) -> Any:
    """Await a source call, returning the exception instead of raising it."""
    try:
        return await call()
    except Exception as exc:
        return exc


async def load_profile_strength_signals(
    source: ProfileDataSource,
    *,
    user_id: str | None = None,
    now: datetime | None = None,
    journal_limit: int = 60,
    checkin_limit: int = 12,
) -> ProfileStrengthInput:
    """Fetch all six domains concurrently and build the signal snapshot.

    Waits for every read to settle. A failed read degrades only its own area
    to ``unavailable``; the other areas are built from their own rows.
    """
    now = now or datetime.now(timezone.utc)

    (
        goals,
        habits,
        journal,
        vision,
        checkins,
        identity,
    ) = await asyncio.gather(
        _guard(lambda: source.get_goals(user_id)),
        _guard(lambda: source.get_habits(user_id)),
        _guard(lambda: source.get_journal_entries(user_id, limit=journal_limit)),
        _guard(lambda: source.get_vision_images(user_id)),
        _guard(lambda: source.get_checkins(user_id, limit=checkin_limit)),
        _guard(lambda: source.get_identity_tests(user_id)),
    )

    areas = {
        "goals": _settle("goals", goals, build_goals_signal, now),
        "habits": _settle("habits", habits, build_habits_signal, now),
        "journal": _settle("journal", journal, build_journal_signal, now),
        "vision_board": _settle("vision_board", vision, build_vision_board_signal, now),
        "life_wheel": _settle("life_wheel", checkins, build_life_wheel_signal, now),
        "identity": _settle("identity", identity, build_identity_signal, now),
    }

    metrics = SignalMetrics.from_counts(
        goal_category_counts(goals) if isinstance(goals, list) else None,
        habit_domain_counts(habits) if isinstance(habits, list) else None,
    )

    return ProfileStrengthInput(areas=areas, computed_at=now.isoformat(), metrics=metrics)
