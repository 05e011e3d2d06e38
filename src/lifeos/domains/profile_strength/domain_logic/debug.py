"""Developer summary of a scored result, enabled by ``profile_strength_debug``."""

from __future__ import annotations

import logging

from lifeos.domains.profile_strength.domain_logic.strength_models import (
    AREA_KEYS,
    ProfileStrengthResult,
)

logger = logging.getLogger(__name__)


def format_profile_strength_summary(result: ProfileStrengthResult) -> list[str]:
    lines = [
        f"overall={result.overall_percent} fallback={result.meta.used_fallback_data} "
        f"computed_at={result.meta.computed_at}",
        "global_next_task="
        + (result.global_next_task.id if result.global_next_task else "none"),
    ]
    for area in AREA_KEYS:
        reasons = ",".join(result.reasons_by_area.get(area, ())) or "-"
        lines.append(f"  {area}: score={result.area_scores.get(area)} reasons={reasons}")
    return lines


def log_profile_strength_summary(result: ProfileStrengthResult) -> None:
    for line in format_profile_strength_summary(result):
        logger.info("[profile-strength] %s", line)
