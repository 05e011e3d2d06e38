"""Tests for SignalBuilder: per-domain builders and the concurrent loader."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

import pytest

from conftest import FIXED_NOW, StubDataSource, days_ago, full_goal_rows, full_habit_rows
from lifeos.domains.profile_strength.domain_logic.signal_builder import (
    build_goals_signal,
    build_habits_signal,
    build_identity_signal,
    build_journal_signal,
    build_life_wheel_signal,
    build_vision_board_signal,
    days_since,
    goal_category_counts,
    load_profile_strength_signals,
    normalize_goal_status,
    parse_date,
)
from lifeos.domains.profile_strength.domain_logic.strength_models import (
    AREA_KEYS,
    LIFE_WHEEL_CATEGORIES,
    STATUS_NO_DATA,
    STATUS_OK,
    STATUS_UNAVAILABLE,
)
from lifeos.domains.profile_strength.sources import DataSourceError


def _run(coro):
    """Run an async coroutine synchronously (no pytest-asyncio required)."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestDateHelpers:
    def test_parse_zulu(self):
        assert parse_date("2026-03-01T10:00:00Z") == datetime(2026, 3, 1, 10, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [
        "2026-03-10T08:00:00.12345+00:00",
        "2026-03-10T08:00:00.1Z",
        "2026-03-10T08:00:00.123456789z",
    ])
    def test_parse_any_fraction_length(self, value):
        parsed = parse_date(value)
        assert parsed is not None
        assert parsed.replace(microsecond=0) == datetime(2026, 3, 10, 8, tzinfo=timezone.utc)

    def test_parse_fraction_is_kept(self):
        assert parse_date("2026-03-10T08:00:00.5Z").microsecond == 500000

    def test_parse_plain_date(self):
        assert parse_date("2026-03-01") == datetime(2026, 3, 1, tzinfo=timezone.utc)
        assert parse_date(date(2026, 3, 1)) == datetime(2026, 3, 1, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, "", "not a date", 42])
    def test_unparseable(self, value):
        assert parse_date(value) is None

    def test_days_since_floors(self):
        assert days_since(parse_date(days_ago(2.9)), FIXED_NOW) == 2

    def test_days_since_future_is_zero(self):
        assert days_since(parse_date(days_ago(-5)), FIXED_NOW) == 0

    def test_days_since_none(self):
        assert days_since(None, FIXED_NOW) is None


class TestGoalStatus:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("on-track", "on_track"),
            ("AT_RISK", "at_risk"),
            ("blocked", "off_track"),
            ("achieved", "achieved"),
            ("mystery", "on_track"),
            (None, "on_track"),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_goal_status(raw) == expected


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

class TestGoals:
    def test_empty_is_no_data(self):
        assert build_goals_signal([], FIXED_NOW).status == STATUS_NO_DATA

    def test_coverage_quality_recency(self):
        goals = [
            {"life_wheel_category": "health", "description": "x", "created_at": days_ago(3)},
            {"life_wheel_category": "health", "created_at": days_ago(10)},
            {"life_wheel_category": "career", "target_date": "2026-09-01"},
            {"life_wheel_category": "fun", "estimated_duration_days": 0,
             "start_date": days_ago(1)},
        ]
        signal = build_goals_signal(goals, FIXED_NOW)
        assert signal.status == STATUS_OK
        assert signal.coverage == pytest.approx(3 / 8)
        assert signal.quality == pytest.approx(2 / 4)
        assert signal.recency_days == 0  # target_date in the future is the latest
        assert signal.needs_review is False

    def test_at_risk_needs_review(self):
        goals = [{"life_wheel_category": "health", "status_tag": "at-risk"}]
        assert build_goals_signal(goals, FIXED_NOW).needs_review is True

    def test_category_counts_are_total(self):
        counts = goal_category_counts([
            {"life_wheel_category": "health"},
            {"life_wheel_category": "health"},
            {"life_wheel_category": "mars"},
            {"life_wheel_category": ["unhashable"]},
            "not a row",
        ])
        assert set(counts) == set(LIFE_WHEEL_CATEGORIES)
        assert counts["health"] == 2
        assert sum(counts.values()) == 2


class TestHabits:
    def test_signal(self):
        habits = [
            {"domain_key": "health", "goal_id": "g1", "created_at": days_ago(20)},
            {"domain_key": "fun", "target_unit": " ", "start_date": days_ago(40)},
        ]
        signal = build_habits_signal(habits, FIXED_NOW)
        assert signal.coverage == pytest.approx(2 / 8)
        assert signal.quality == pytest.approx(0.5)
        assert signal.recency_days == 20
        assert signal.needs_review is False

    def test_too_many_habits_needs_review(self):
        assert build_habits_signal(full_habit_rows(2), FIXED_NOW).needs_review is True
        assert build_habits_signal(full_habit_rows(1), FIXED_NOW).needs_review is False


class TestJournal:
    def test_signal(self):
        entries = [
            {"entry_date": days_ago(1), "title": "Day"},
            {"entry_date": days_ago(10), "tags": ["x"]},
            {"created_at": days_ago(13), "content": "y" * 120},
            {"entry_date": days_ago(20), "content": "short"},
        ]
        signal = build_journal_signal(entries, FIXED_NOW)
        assert signal.coverage == pytest.approx(3 / 7)
        assert signal.quality == pytest.approx(3 / 4)
        assert signal.recency_days == 1
        assert signal.needs_review is False

    def test_coverage_caps_at_one(self):
        entries = [{"entry_date": days_ago(i % 10)} for i in range(20)]
        assert build_journal_signal(entries, FIXED_NOW).coverage == 1.0


class TestVisionBoard:
    def test_signal(self):
        images = [
            {"caption": "Beach", "created_at": days_ago(50), "last_reviewed_at": days_ago(5)},
            {"linked_habit_ids": ["h1"], "created_at": days_ago(60)},
            {"created_at": days_ago(70)},
            {"vision_type": "goal", "created_at": days_ago(80)},
        ]
        signal = build_vision_board_signal(images, FIXED_NOW)
        assert signal.coverage == pytest.approx(4 / 8)
        assert signal.quality == pytest.approx(3 / 4)
        assert signal.recency_days == 5
        assert signal.needs_review is False

    def test_overdue_review(self):
        images = [{"created_at": days_ago(20), "review_interval_days": 14}]
        assert build_vision_board_signal(images, FIXED_NOW).needs_review is True

    def test_reviewed_within_interval(self):
        images = [{
            "created_at": days_ago(90),
            "last_reviewed_at": days_ago(10),
            "review_interval_days": 14,
        }]
        assert build_vision_board_signal(images, FIXED_NOW).needs_review is False


class TestLifeWheel:
    def test_signal(self):
        full = {category: 5 for category in LIFE_WHEEL_CATEGORIES}
        checkins = [
            {"date": days_ago(3), "scores": full},
            {"date": days_ago(30), "scores": {"health": 4, "fun": 6}},
            {"date": days_ago(60), "scores": None},
        ]
        signal = build_life_wheel_signal(checkins, FIXED_NOW)
        assert signal.coverage == pytest.approx(3 / 6)
        assert signal.quality == pytest.approx((1 + 0.25 + 0) / 3)
        assert signal.recency_days == 3


class TestIdentity:
    def test_uses_latest_test(self):
        tests = [
            {"taken_at": days_ago(500), "traits": {"a": 1}, "axes": {"b": 2}},
            {"taken_at": days_ago(10), "traits": {"a": 1}, "axes": {}},
        ]
        signal = build_identity_signal(tests, FIXED_NOW)
        assert signal.coverage == 1.0
        assert signal.quality == 0.5
        assert signal.recency_days == 10
        assert signal.needs_review is False

    def test_old_test_needs_review(self):
        signal = build_identity_signal([{"taken_at": days_ago(400), "traits": {}}], FIXED_NOW)
        assert signal.quality == 0.0
        assert signal.needs_review is True

    def test_undated_tests_use_first_row(self):
        tests = [{"traits": {"a": 1}, "axes": {"b": 1}}, {"traits": {}}]
        signal = build_identity_signal(tests, FIXED_NOW)
        assert signal.quality == 1.0
        assert signal.recency_days is None
        assert signal.needs_review is False


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

class TestLoadSignals:
    def test_all_empty_is_no_data(self):
        signals = _run(load_profile_strength_signals(StubDataSource(), now=FIXED_NOW))
        assert set(signals.areas) == set(AREA_KEYS)
        assert all(s.status == STATUS_NO_DATA for s in signals.areas.values())
        assert signals.computed_at == FIXED_NOW.isoformat()

    def test_one_failure_is_isolated(self):
        source = StubDataSource(
            goals=full_goal_rows(),
            habits=full_habit_rows(),
            journal_entries=DataSourceError("journal down"),
            vision_images=[{"caption": "x", "created_at": days_ago(1)}],
            checkins=[{"date": days_ago(1), "scores": {"health": 5}}],
            identity_tests=[{"taken_at": days_ago(1), "traits": {"a": 1}}],
        )
        signals = _run(load_profile_strength_signals(source, now=FIXED_NOW))
        assert signals.areas["journal"].status == STATUS_UNAVAILABLE
        for area in AREA_KEYS:
            if area != "journal":
                assert signals.areas[area].status == STATUS_OK, area
        assert signals.areas["goals"].coverage == 1.0

    def test_none_result_is_unavailable(self):
        source = StubDataSource(habits=None)
        signals = _run(load_profile_strength_signals(source, now=FIXED_NOW))
        assert signals.areas["habits"].status == STATUS_UNAVAILABLE
        assert signals.areas["goals"].status == STATUS_NO_DATA

    def test_metrics_are_total_maps(self):
        source = StubDataSource(goals=full_goal_rows(), habits=RuntimeError("boom"))
        signals = _run(load_profile_strength_signals(source, now=FIXED_NOW))
        assert all(signals.metrics.goal_category_counts[c] == 1 for c in LIFE_WHEEL_CATEGORIES)
        assert all(signals.metrics.habit_domain_counts[c] == 0 for c in LIFE_WHEEL_CATEGORIES)

    def test_user_id_is_forwarded(self):
        source = StubDataSource()
        _run(load_profile_strength_signals(source, user_id="u1", now=FIXED_NOW))
        assert len(source.calls) == 6
        assert {user for _, user in source.calls} == {"u1"}

    def test_fetches_run_concurrently(self):
        class _SlowSource(StubDataSource):
            def __init__(self):
                super().__init__()
                self.in_flight = 0
                self.max_in_flight = 0

            async def _slow(self, rows):
                self.in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self.in_flight)
                await asyncio.sleep(0.01)
                self.in_flight -= 1
                return rows

            async def get_goals(self, user_id=None):
                return await self._slow([])

            async def get_habits(self, user_id=None):
                return await self._slow([])

        source = _SlowSource()
        _run(load_profile_strength_signals(source, now=FIXED_NOW))
        assert source.max_in_flight == 2

    def test_builder_crash_is_isolated(self, monkeypatch):
        from lifeos.domains.profile_strength.domain_logic import signal_builder

        def _explode(rows, now):
            raise ZeroDivisionError("bad row")

        monkeypatch.setattr(signal_builder, "build_life_wheel_signal", _explode)
        source = StubDataSource(goals=full_goal_rows())
        signals = _run(load_profile_strength_signals(source, now=FIXED_NOW))
        assert signals.areas["life_wheel"].status == STATUS_UNAVAILABLE
        assert signals.areas["goals"].status == STATUS_OK
