"""MCP tools for ledger maintenance (XP reset, per-user deletion).

Both tools are destructive and gated behind an explicit confirmation
string. Every deletion is audit-logged.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING

from fastmcp import Context, FastMCP

if TYPE_CHECKING:
    from lifeos.core.audit.logger import AuditLogger
    from lifeos.core.storage.repository import ProfileStrengthRepository

from lifeos.domains.profile_strength.domain_logic.xp_ledger import xp_state_storage_key

logger = logging.getLogger(__name__)


def register_data_management_tools(
    mcp: FastMCP,
    repository: ProfileStrengthRepository,
    audit_logger: AuditLogger | None = None,
) -> None:
    """Register data management tools on the MCP server."""

    @mcp.tool
    async def reset_profile_strength_xp(
        ctx: Context,
        user_id: str | None = None,
        confirm: str = "",
    ) -> str:
        """Reset a user's XP ledger so every task and bonus can be earned again.

        Removes completed-task records, bonus flags and award history.
        Stored score snapshots are kept.

        Args:
            user_id: Profile owner. Omit for the demo profile.
            confirm: Must be exactly 'RESET' to proceed. Safety gate.
        """
        if confirm != "RESET":
            return json.dumps({
                "status": "cancelled",
                "message": (
                    "To reset the XP ledger, call this tool with confirm='RESET'. "
                    "Earned XP will be removed."
                ),
            })

        start_time = time.monotonic()
        removed = repository.reset_xp_state(user_id)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="reset_profile_strength_xp",
                storage_key=xp_state_storage_key(user_id),
                count=removed,
                metadata={"confirmed": True},
            )

        return json.dumps({
            "status": "reset",
            "awards_removed": removed,
            "duration_ms": round(elapsed_ms, 1),
        })

    @mcp.tool
    async def delete_profile_strength_data(
        ctx: Context,
        user_id: str | None = None,
        confirm: str = "",
    ) -> str:
        """Permanently delete everything stored for a user.

        Removes the XP ledger, award history and every score snapshot.
        It cannot be undone.

        Args:
            user_id: Profile owner. Omit for the demo profile.
            confirm: Must be exactly 'DELETE_ALL' to proceed. Safety gate.
        """
        if confirm != "DELETE_ALL":
            return json.dumps({
                "status": "cancelled",
                "message": (
                    "To delete all profile strength data, call this tool with "
                    "confirm='DELETE_ALL'. This action cannot be undone."
                ),
            })

        start_time = time.monotonic()
        counts = repository.delete_user_data(user_id)
        elapsed_ms = (time.monotonic() - start_time) * 1000

        if audit_logger is not None:
            audit_logger.log_data_delete(
                tool_name="delete_profile_strength_data",
                storage_key=xp_state_storage_key(user_id),
                count=sum(counts.values()),
                metadata={"confirmed": True, **counts},
            )

        return json.dumps({
            "status": "all_deleted",
            "deleted": counts,
            "duration_ms": round(elapsed_ms, 1),
            "message": "All profile strength data for this user has been permanently deleted.",
        })
