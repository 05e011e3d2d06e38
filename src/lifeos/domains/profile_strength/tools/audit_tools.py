"""MCP tools for viewing the audit trail.

The audit trail holds hashed inputs and hashed ledger keys only, so it can
be shown without exposing anyone's profile.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from lifeos.core.audit.logger import AuditLogger

logger = logging.getLogger(__name__)


def register_audit_tools(
    mcp: FastMCP,
    audit_logger: AuditLogger,
) -> None:
    """Register audit trail tools on the MCP server."""

    @mcp.tool
    async def audit_summary(
        ctx: Context,
        days: int = 30,
    ) -> str:
        """View recent tool calls, XP awards and deletions.

        Args:
            days: Number of days to look back (default: 30).
        """
        since = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        total_events = audit_logger.count_events(since=since)
        xp_awarded = audit_logger.sum_xp_awarded(since=since)
        recent_events = audit_logger.get_events(since=since, limit=20)

        display_events = []
        for event in recent_events:
            display_events.append({
                "timestamp": event.get("timestamp"),
                "action": event.get("action"),
                "tool_name": event.get("tool_name"),
                "status": event.get("status"),
                "error_type": event.get("error_type"),
                "xp_awarded": event.get("xp_awarded") or 0,
                "duration_ms": event.get("duration_ms"),
            })

        return json.dumps({
            "status": "ok",
            "period_days": days,
            "total_events": total_events,
            "xp_awarded": xp_awarded,
            "recent_events": display_events,
            "note": (
                "This audit trail contains no profile content. "
                "Inputs and user keys are stored as SHA-256 hashes."
            ),
        }, indent=2)
