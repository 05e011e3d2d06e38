"""MCP tools for profile strength scoring and the XP ledger."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from lifeos.core.audit.logger import AuditLogger
    from lifeos.domains.profile_strength.domain_logic.refresh import ProfileStrengthService
    from lifeos.domains.profile_strength.sources import ProfileDataSource

from lifeos.domains.profile_strength.domain_logic.strength_models import AREA_KEYS, AREA_LABELS
from lifeos.domains.profile_strength.domain_logic.xp_ledger import xp_state_storage_key

logger = logging.getLogger(__name__)


def _area_overview(result_dict: dict[str, Any]) -> list[dict[str, Any]]:
    """Flatten per-area maps into one row per area, in display order."""
    return [
        {
            "area": area,
            "label": AREA_LABELS[area],
            "score": result_dict["area_scores"].get(area),
            "reasons": result_dict["reasons_by_area"].get(area, []),
            "next_tasks": result_dict["next_tasks_by_area"].get(area, []),
        }
        for area in AREA_KEYS
    ]


def register_profile_strength_tools(
    mcp: FastMCP,
    service: ProfileStrengthService,
    data_source: ProfileDataSource,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register profile strength tools on the MCP server."""

    def _audit(
        tool_name: str,
        user_id: str | None,
        start_time: float,
        *,
        exc: Exception | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if audit_logger is None:
            return
        audit_logger.log_tool_call(
            tool_name=tool_name,
            tool_input={"user_id": user_id},
            storage_key=xp_state_storage_key(user_id),
            duration_ms=(time.monotonic() - start_time) * 1000,
            status="failure" if exc is not None else "success",
            error_type=type(exc).__name__ if exc is not None else None,
            metadata=metadata,
        )

    @mcp.tool
    async def profile_strength(
        ctx: Context,
        user_id: str | None = None,
    ) -> str:
        """Show how complete the user's LifeOS profile is, area by area.

        Scores goals, habits, journal, vision board, life wheel and identity
        from 0 to 10, combines them into an overall percentage, and suggests
        the next micro-tasks. Read-only: no XP is awarded.

        Args:
            user_id: Profile owner. Omit for the demo profile.
        """
        start_time = time.monotonic()
        try:
            result, _signals = await service.compute(user_id)
            payload = result.to_dict()
            response = {
                "status": "ok",
                "overall_percent": result.overall_percent,
                "used_fallback_data": result.meta.used_fallback_data,
                "global_next_task": payload["global_next_task"],
                "areas": _area_overview(payload),
                "computed_at": result.meta.computed_at,
                "weights_source": service.config.source,
                "provenance": data_source.get_provenance(),
            }
            _audit(
                "profile_strength", user_id, start_time,
                metadata={"overall_percent": result.overall_percent},
            )
            return json.dumps(response, indent=2)
        except Exception as exc:
            _audit("profile_strength", user_id, start_time, exc=exc)
            raise

    @mcp.tool
    async def refresh_profile_strength(
        ctx: Context,
        user_id: str | None = None,
    ) -> str:
        """Recompute profile strength and award XP for tasks completed since last time.

        Each task pays 25 XP once; coverage bonuses (every life wheel
        category with a goal, or with two habits) pay once as well.

        Args:
            user_id: Profile owner. Omit for the demo profile.
        """
        start_time = time.monotonic()
        try:
            outcome = await service.refresh(user_id)
            payload = outcome.result.to_dict()
            response = {
                "status": "ok",
                "overall_percent": outcome.result.overall_percent,
                "previous_overall_percent": outcome.previous_overall_percent,
                "used_fallback_data": outcome.result.meta.used_fallback_data,
                "global_next_task": payload["global_next_task"],
                "areas": _area_overview(payload),
                "xp_gained": outcome.xp_gained,
                "total_xp": outcome.total_xp,
                "xp_events": [event.to_dict() for event in outcome.events],
                "snapshot_id": outcome.snapshot_id,
            }
            _audit(
                "refresh_profile_strength", user_id, start_time,
                metadata={"xp_gained": outcome.xp_gained, "events": len(outcome.events)},
            )
            return json.dumps(response, indent=2)
        except Exception as exc:
            _audit("refresh_profile_strength", user_id, start_time, exc=exc)
            raise

    @mcp.tool
    async def profile_strength_xp(
        ctx: Context,
        user_id: str | None = None,
    ) -> str:
        """Show the XP ledger: completed tasks, bonuses, total XP, recent awards.

        Args:
            user_id: Profile owner. Omit for the demo profile.
        """
        start_time = time.monotonic()
        try:
            summary = service.xp_summary(user_id)
            _audit("profile_strength_xp", user_id, start_time)
            return json.dumps({"status": "ok", **summary}, indent=2)
        except Exception as exc:
            _audit("profile_strength_xp", user_id, start_time, exc=exc)
            raise
