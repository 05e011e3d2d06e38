"""Tests for the profile strength Scorer."""

from __future__ import annotations

import math

import pytest

from lifeos.domains.profile_strength.domain_logic.scorer import (
    overall_percent,
    recency_score,
    score_area,
    score_profile_strength,
)
from lifeos.domains.profile_strength.domain_logic.strength_models import (
    AREA_KEYS,
    AreaSignal,
    ProfileStrengthInput,
)
from lifeos.domains.profile_strength.domain_logic.task_catalog import task_id_for
from lifeos.domains.profile_strength.domain_logic.xp_ledger import BONUS_DEFINITIONS


def _all_ok(**overrides: AreaSignal) -> ProfileStrengthInput:
    areas = {area: AreaSignal(coverage=0.5, quality=0.5, recency_days=5) for area in AREA_KEYS}
    areas.update(overrides)
    return ProfileStrengthInput(areas=areas, computed_at="2026-03-15T12:00:00+00:00")


class TestRecencyScore:
    @pytest.mark.parametrize(
        "days,expected",
        [(0, 1.0), (7, 1.0), (8, 0.6), (30, 0.6), (31, 0.3), (90, 0.3), (91, 0.0), (None, 0.0)],
    )
    def test_step_function(self, days, expected):
        assert recency_score(days) == expected

    def test_unusable_values(self):
        assert recency_score(math.nan) == 0.0
        assert recency_score("soon") == 0.0
        assert recency_score(True) == 0.0


class TestScoreArea:
    def test_formula_rounds_half_up(self):
        score, reasons, tasks = score_area(
            "goals", AreaSignal(coverage=0.5, quality=0.5, recency_days=5)
        )
        assert score == 7
        assert reasons == ()
        assert tasks == ()

    def test_no_data(self):
        score, reasons, tasks = score_area("habits", AreaSignal.no_data())
        assert score == 0
        assert reasons == ("no_data",)
        assert [t.id for t in tasks] == ["profile-strength-habits-start"]

    def test_unavailable(self):
        score, reasons, tasks = score_area("journal", AreaSignal.unavailable())
        assert score is None
        assert reasons == ("error_fallback",)
        assert tasks == ()

    def test_missing_signal_is_unavailable(self):
        assert score_area("journal", None)[0] is None

    def test_all_thresholds_violated_keeps_two_tasks(self):
        score, reasons, tasks = score_area(
            "vision_board",
            AreaSignal(coverage=0.1, quality=0.1, recency_days=200, needs_review=True),
        )
        assert reasons == ("low_coverage", "low_quality", "low_recency", "needs_review")
        assert [t.id for t in tasks] == [
            "profile-strength-vision_board-coverage",
            "profile-strength-vision_board-quality",
        ]
        assert score == 1  # 0.4 + 0.3 + 0 -> 0.7

    def test_partial_signal_is_stale_but_scored(self):
        score, reasons, tasks = score_area(
            "identity", AreaSignal(coverage=1.0, quality=None, recency_days=3)
        )
        assert score == 7
        assert reasons == ("stale_snapshot", "low_quality")
        assert [t.reason_codes for t in tasks] == [("low_quality",)]

    def test_stale_snapshot_never_becomes_a_task(self):
        _, reasons, tasks = score_area("goals", AreaSignal(coverage=1.0, quality=1.0))
        assert "stale_snapshot" in reasons
        assert all("stale_snapshot" not in t.reason_codes for t in tasks)

    def test_out_of_range_values_are_clamped(self):
        score, _, _ = score_area(
            "goals", AreaSignal(coverage=5.0, quality=-2.0, recency_days=0)
        )
        assert score == 7  # 4 + 0 + 3

    def test_negative_recency_counts_as_fresh(self):
        score, reasons, _ = score_area(
            "goals", AreaSignal(coverage=1.0, quality=1.0, recency_days=-3)
        )
        assert score == 10
        assert reasons == ()

    def test_review_task(self):
        _, reasons, tasks = score_area(
            "goals", AreaSignal(coverage=1.0, quality=1.0, recency_days=1, needs_review=True)
        )
        assert reasons == ("needs_review",)
        task = tasks[0]
        assert task.id == "profile-strength-goals-review"
        assert task.title == "Review your goal"
        assert task.action.target == "support"
        assert task.xp_reward == 25


class TestTaskIds:
    def test_ids_match_built_tasks(self):
        _, _, tasks = score_area("habits", AreaSignal(coverage=0.1, quality=1.0, recency_days=1))
        assert tasks[0].id == task_id_for("habits", "low_coverage")

    def test_coverage_task_shares_bonus_id(self):
        assert task_id_for("goals", "low_coverage") == BONUS_DEFINITIONS["goals_coverage"].id
        assert task_id_for("habits", "low_coverage") == BONUS_DEFINITIONS["habits_coverage"].id

    def test_unknown_reason_uses_refresh_slug(self):
        assert task_id_for("journal", "mystery") == "profile-strength-journal-refresh"


class TestOverallPercent:
    def test_all_sevens_is_seventy(self):
        assert overall_percent({area: 7 for area in AREA_KEYS}) == 70

    def test_any_null_is_null(self):
        scores = {area: 10 for area in AREA_KEYS}
        scores["identity"] = None
        assert overall_percent(scores) is None

    def test_weights(self):
        scores = {area: 0 for area in AREA_KEYS}
        scores["goals"] = 10
        weights = {area: 0.0 for area in AREA_KEYS}
        weights["goals"] = 1.0
        assert overall_percent(scores, weights) == 100

    def test_zero_total_weight(self):
        assert overall_percent(
            {area: 5 for area in AREA_KEYS}, {area: 0.0 for area in AREA_KEYS}
        ) is None


class TestScoreProfileStrength:
    def test_closed_key_set(self):
        for signals in (_all_ok(), ProfileStrengthInput(), None):
            result = score_profile_strength(signals)
            assert set(result.area_scores) == set(AREA_KEYS)
            assert set(result.reasons_by_area) == set(AREA_KEYS)
            assert set(result.next_tasks_by_area) == set(AREA_KEYS)

    def test_overall_aggregation(self):
        result = score_profile_strength(_all_ok())
        assert all(result.area_scores[a] == 7 for a in AREA_KEYS)
        assert result.overall_percent == 70
        assert result.meta.used_fallback_data is False
        assert result.global_next_task is None

    def test_one_unavailable_nulls_overall(self):
        result = score_profile_strength(_all_ok(journal=AreaSignal.unavailable()))
        assert result.overall_percent is None
        assert result.meta.used_fallback_data is True
        assert result.area_scores["goals"] == 7

    def test_global_task_follows_declaration_order(self):
        result = score_profile_strength(_all_ok(
            identity=AreaSignal.no_data(),
            habits=AreaSignal(coverage=0.1, quality=1.0, recency_days=1),
        ))
        assert result.global_next_task.id == "profile-strength-habits-coverage"

    def test_computed_at_is_carried_through(self):
        result = score_profile_strength(_all_ok())
        assert result.meta.computed_at == "2026-03-15T12:00:00+00:00"

    def test_computed_at_defaults_to_now(self):
        assert score_profile_strength(ProfileStrengthInput()).meta.computed_at

    def test_result_round_trips_through_dict(self):
        from lifeos.domains.profile_strength.domain_logic.strength_models import (
            ProfileStrengthResult,
        )

        result = score_profile_strength(_all_ok(goals=AreaSignal.no_data()))
        assert ProfileStrengthResult.from_dict(result.to_dict()) == result
