"""Demo rows for development and testing.

The demo profile is a user a few weeks in: goals in most life wheel
categories, a handful of habits, an irregular journal and an old identity
test. All dates are relative to ``now`` so signals stay stable over time.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def _iso(now: datetime, days_ago: int) -> str:
    return (now - timedelta(days=days_ago)).isoformat()


def _date(now: datetime, days_ago: int) -> str:
    return (now - timedelta(days=days_ago)).date().isoformat()


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def get_mock_goals(now: datetime | None = None) -> list[dict]:
    """Return demo goal rows."""
    now = _now(now)
    return [
        {
            "id": "goal-1",
            "title": "Run a half marathon",
            "life_wheel_category": "health",
            "description": "Build up to 21km by spring.",
            "status_tag": "on_track",
            "target_date": _date(now, -120),
            "created_at": _iso(now, 40),
        },
        {
            "id": "goal-2",
            "title": "Save an emergency fund",
            "life_wheel_category": "finances",
            "progress_notes": "Three months covered so far.",
            "status_tag": "at_risk",
            "created_at": _iso(now, 35),
        },
        {
            "id": "goal-3",
            "title": "Weekly dinner with family",
            "life_wheel_category": "relationships",
            "status_tag": "on_track",
            "created_at": _iso(now, 20),
        },
        {
            "id": "goal-4",
            "title": "Ship the side project",
            "life_wheel_category": "career",
            "timing_notes": "Evenings, twice a week.",
            "estimated_duration_days": 90,
            "status_tag": "on-track",
            "created_at": _iso(now, 12),
        },
        {
            "id": "goal-5",
            "title": "Learn to draw",
            "life_wheel_category": "fun",
            "status_tag": None,
            "created_at": _iso(now, 5),
        },
    ]


def get_mock_habits(now: datetime | None = None) -> list[dict]:
    """Return demo habit rows."""
    now = _now(now)
    return [
        {"id": "habit-1", "title": "Morning run", "domain_key": "health",
         "goal_id": "goal-1", "target_num": 5, "target_unit": "km", "created_at": _iso(now, 38)},
        {"id": "habit-2", "title": "Stretch", "domain_key": "health",
         "created_at": _iso(now, 30)},
        {"id": "habit-3", "title": "Transfer savings", "domain_key": "finances",
         "goal_id": "goal-2", "created_at": _iso(now, 33)},
        {"id": "habit-4", "title": "Call a friend", "domain_key": "relationships",
         "created_at": _iso(now, 18)},
        {"id": "habit-5", "title": "Read 10 pages", "domain_key": "personal_growth",
         "target_num": 10, "target_unit": "pages", "start_date": _date(now, 9)},
    ]


def get_mock_journal_entries(now: datetime | None = None, limit: int = 60) -> list[dict]:
    """Return demo journal entries, newest first."""
    now = _now(now)
    entries = [
        {"id": "journal-1", "title": "A good week", "entry_date": _date(now, 2),
         "content": "Long run went well.", "tags": ["health"]},
        {"id": "journal-2", "title": "", "entry_date": _date(now, 6),
         "content": "Tired today.", "tags": []},
        {"id": "journal-3", "title": "Money check", "entry_date": _date(now, 13),
         "content": "Budget review.", "tags": ["finances"]},
        {"id": "journal-4", "title": "", "entry_date": _date(now, 27),
         "content": "x" * 150, "tags": []},
    ]
    return entries[:limit]


def get_mock_vision_images(now: datetime | None = None) -> list[dict]:
    """Return demo vision board images."""
    now = _now(now)
    return [
        {"id": "vision-1", "caption": "Finish line", "vision_type": "goal",
         "linked_goal_ids": ["goal-1"], "created_at": _iso(now, 45),
         "last_reviewed_at": _iso(now, 10), "review_interval_days": 30},
        {"id": "vision-2", "caption": "", "vision_type": None,
         "created_at": _iso(now, 44)},
        {"id": "vision-3", "caption": "Quiet home", "created_at": _iso(now, 44),
         "review_interval_days": 14},
    ]


def get_mock_checkins(now: datetime | None = None, limit: int = 12) -> list[dict]:
    """Return demo life wheel check-ins, newest first."""
    now = _now(now)
    full = {"health": 7, "relationships": 6, "career": 5, "personal_growth": 6,
            "fun": 4, "finances": 5, "giving_back": 3, "environment": 6}
    partial = {"health": 6, "career": 5, "finances": 4, "fun": 5}
    checkins = [
        {"id": "checkin-1", "date": _date(now, 4), "scores": full},
        {"id": "checkin-2", "date": _date(now, 18), "scores": partial},
        {"id": "checkin-3", "date": _date(now, 32), "scores": full},
    ]
    return checkins[:limit]


def get_mock_identity_tests(now: datetime | None = None) -> list[dict]:
    """Return demo identity test history, newest first."""
    now = _now(now)
    return [
        {"id": "identity-1", "taken_at": _iso(now, 400),
         "traits": {"openness": 0.8, "conscientiousness": 0.6}, "axes": {}},
    ]
