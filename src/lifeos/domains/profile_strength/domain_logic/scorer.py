"""Deterministic profile strength scoring: six area signals -> result.

Pure and synchronous. Every input shape degrades to a valid result, so
nothing in here raises on data.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Any

from lifeos.domains.profile_strength.domain_logic.strength_models import (
    AREA_KEYS,
    COVERAGE_POINTS,
    DEFAULT_AREA_WEIGHT,
    INFORMATIONAL_REASONS,
    LOW_SIGNAL_THRESHOLD,
    MAX_AREA_SCORE,
    MAX_TASKS_PER_AREA,
    QUALITY_POINTS,
    RECENCY_POINTS,
    STATUS_NO_DATA,
    STATUS_UNAVAILABLE,
    AreaSignal,
    NextTask,
    ProfileStrengthInput,
    ProfileStrengthMeta,
    ProfileStrengthResult,
)
from lifeos.domains.profile_strength.domain_logic.task_catalog import build_task


def _clamp(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    """Clamp a value to [lo, hi]."""
    return max(lo, min(hi, value))


def _round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (6.5 -> 7)."""
    return int(math.floor(value + 0.5))


def _num(val: Any) -> float | None:
    """Coerce to a finite float, or None when missing or unusable."""
    if val is None or isinstance(val, bool):
        return None
    try:
        number = float(val)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def recency_score(recency_days: Any) -> float:
    """Step function over days since the last record."""
    days = _num(recency_days)
    if days is None:
        return 0.0
    if days <= 7:
        return 1.0
    if days <= 30:
        return 0.6
    if days <= 90:
        return 0.3
    return 0.0


def score_area(
    area: str, signal: AreaSignal | None
) -> tuple[int | None, tuple[str, ...], tuple[NextTask, ...]]:
    """Score one area.

    Returns:
        (score 0-10 or None, reason codes, tasks)
    """
    if signal is None or signal.status == STATUS_UNAVAILABLE:
        return None, ("error_fallback",), ()

    if signal.status == STATUS_NO_DATA:
        return 0, ("no_data",), (build_task(area, "no_data"),)

    coverage_raw = _num(signal.coverage)
    quality_raw = _num(signal.quality)
    recency_raw = _num(signal.recency_days)

    reasons: list[str] = []
    if coverage_raw is None or quality_raw is None or recency_raw is None:
        reasons.append("stale_snapshot")

    coverage = _clamp(coverage_raw or 0.0)
    quality = _clamp(quality_raw or 0.0)
    recency = recency_score(recency_raw)

    if coverage < LOW_SIGNAL_THRESHOLD:
        reasons.append("low_coverage")
    if quality < LOW_SIGNAL_THRESHOLD:
        reasons.append("low_quality")
    if recency < LOW_SIGNAL_THRESHOLD:
        reasons.append("low_recency")
    if signal.needs_review:
        reasons.append("needs_review")

    raw_score = coverage * COVERAGE_POINTS + quality * QUALITY_POINTS + recency * RECENCY_POINTS
    score = _round_half_up(_clamp(raw_score, 0, MAX_AREA_SCORE))

    actionable = [r for r in reasons if r not in INFORMATIONAL_REASONS][:MAX_TASKS_PER_AREA]
    tasks = tuple(build_task(area, reason) for reason in actionable)
    return score, tuple(reasons), tasks


def overall_percent(
    area_scores: dict[str, int | None], area_weights: dict[str, float] | None = None
) -> int | None:
    """Weighted completeness percentage, or None if any area is unresolved."""
    if any(area_scores.get(area) is None for area in AREA_KEYS):
        return None

    weights = area_weights or {}
    total_weight = sum(weights.get(area, DEFAULT_AREA_WEIGHT) for area in AREA_KEYS)
    if total_weight <= 0:
        return None
    total_score = sum(
        weights.get(area, DEFAULT_AREA_WEIGHT) * area_scores[area] for area in AREA_KEYS
    )
    return _round_half_up(total_score / (total_weight * MAX_AREA_SCORE) * 100)


def score_profile_strength(
    signal_input: ProfileStrengthInput | None = None,
    *,
    area_weights: dict[str, float] | None = None,
) -> ProfileStrengthResult:
    """Reduce six area signals to a ProfileStrengthResult.

    Areas missing from the input are treated as unavailable. The global next
    task is the first task found scanning AREA_KEYS in declaration order.
    """
    signal_input = signal_input or ProfileStrengthInput()

    area_scores: dict[str, int | None] = {}
    reasons_by_area: dict[str, tuple[str, ...]] = {}
    next_tasks_by_area: dict[str, tuple[NextTask, ...]] = {}

    for area in AREA_KEYS:
        score, reasons, tasks = score_area(area, signal_input.areas.get(area))
        area_scores[area] = score
        reasons_by_area[area] = reasons
        next_tasks_by_area[area] = tasks

    used_fallback_data = any(area_scores[area] is None for area in AREA_KEYS)

    global_next_task = next(
        (tasks[0] for tasks in (next_tasks_by_area[a] for a in AREA_KEYS) if tasks),
        None,
    )

    computed_at = signal_input.computed_at or datetime.now(timezone.utc).isoformat()

    return ProfileStrengthResult(
        area_scores=area_scores,
        overall_percent=overall_percent(area_scores, area_weights),
        reasons_by_area=reasons_by_area,
        next_tasks_by_area=next_tasks_by_area,
        global_next_task=global_next_task,
        meta=ProfileStrengthMeta(
            computed_at=computed_at,
            used_fallback_data=used_fallback_data,
        ),
    )
