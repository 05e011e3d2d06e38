"""Task templates keyed by (area, reason code).

Task ids are ``profile-strength-{area}-{slug}``. They are the idempotency key
of the XP ledger, so the slugs and copy here must stay stable.
"""

from __future__ import annotations

from lifeos.domains.profile_strength.domain_logic.strength_models import (
    AREA_LABELS,
    AREA_NAV_TARGETS,
    TASK_XP_REWARD,
    NextTask,
    TaskAction,
)

# reason -> (id slug, title template, description template, eta minutes)
_TEMPLATES: dict[str, tuple[str, str, str, int]] = {
    "no_data": (
        "start",
        "Add your first {label}",
        "Capture a {label} so this area can start guiding you.",
        2,
    ),
    "low_coverage": (
        "coverage",
        "Expand your {label} coverage",
        "Add another {label} so this area reflects more of your life.",
        3,
    ),
    "low_quality": (
        "quality",
        "Add details to your {label}",
        "Add a clear metric or next step to improve quality.",
        3,
    ),
    "low_recency": (
        "recency",
        "Log a fresh {label} update",
        "Add a recent update to keep this area active.",
        1,
    ),
    "needs_review": (
        "review",
        "Review your {label}",
        "Scan for anything that needs adjustment or cleanup.",
        2,
    ),
}

_FALLBACK_TEMPLATE = (
    "refresh",
    "Refresh your {label}",
    "Revisit this area to confirm it is still accurate.",
    2,
)


def task_id_for(area: str, reason: str) -> str:
    """Return the stable task id for an (area, reason) pair."""
    slug = _TEMPLATES.get(reason, _FALLBACK_TEMPLATE)[0]
    return f"profile-strength-{area}-{slug}"


def build_task(area: str, reason: str) -> NextTask:
    """Build the task that resolves ``reason`` in ``area``."""
    _slug, title, description, eta = _TEMPLATES.get(reason, _FALLBACK_TEMPLATE)
    label = AREA_LABELS[area]
    return NextTask(
        id=task_id_for(area, reason),
        area=area,
        title=title.format(label=label),
        description=description.format(label=label),
        eta_minutes=eta,
        xp_reward=TASK_XP_REWARD,
        reason_codes=(reason,),
        action=TaskAction(type="navigate", target=AREA_NAV_TARGETS[area]),
    )
