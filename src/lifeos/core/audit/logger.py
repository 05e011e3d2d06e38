"""Audit logger: append-only trail of tool calls, XP awards, and deletions.

Nothing personal is written here:

* ``tool_input_hash``  SHA-256 of the canonical tool input.
* ``storage_key_hash`` SHA-256 of the ledger storage key, so one user's
  events can be grouped without storing the user id.
* ``xp_awarded``       XP paid by the event, for "how much XP was granted".
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from lifeos.core.storage.database import ProfileDatabase

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------

def _hash_input(data: Any) -> str:
    """SHA-256 hash of canonical JSON.

    Returns:
        Hex-encoded SHA-256 digest, or empty string on failure.
    """
    try:
        canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode()).hexdigest()
    except (TypeError, ValueError):
        return ""


def hash_storage_key(storage_key: str | None) -> str:
    if not storage_key:
        return ""
    return hashlib.sha256(storage_key.encode()).hexdigest()


# ---------------------------------------------------------------------------
# AuditEvent dataclass
# ---------------------------------------------------------------------------

@dataclass
class AuditEvent:
    """A single audit log entry."""

    action: str                          # 'tool_invocation' | 'xp_award' | 'data_delete'
    tool_name: str = ""
    tool_input_hash: str = ""
    storage_key_hash: str = ""
    duration_ms: float | None = None
    status: str = "success"              # 'success' | 'failure'
    error_type: str | None = None
    xp_awarded: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# AuditLogger
# ---------------------------------------------------------------------------

class AuditLogger:
    """Records audit events to the ``audit_log`` SQLite table.

    All writes are committed immediately. A failed write is logged and
    swallowed so auditing never breaks a refresh.

    Usage::

        audit = AuditLogger(profile_db)
        audit.log_tool_call(
            tool_name="refresh_profile_strength",
            tool_input={"user_id": "u1"},
            storage_key="profileStrengthXpState:u1",
        )
    """

    def __init__(self, database: ProfileDatabase) -> None:
        self._db = database

    # ---------------------------------------------------------------
    # Write
    # ---------------------------------------------------------------

    def log_event(self, event: AuditEvent) -> str:
        """Insert an audit event and return its UUID ("" if the write failed)."""
        event_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc).isoformat()

        metadata_json = (
            json.dumps(event.metadata, separators=(",", ":"), default=str)
            if event.metadata
            else None
        )

        try:
            conn = self._db.connection
            conn.execute(
                """INSERT INTO audit_log
                   (id, timestamp, action, tool_name, tool_input_hash,
                    storage_key_hash, duration_ms, status, error_type,
                    xp_awarded, metadata_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event_id,
                    now,
                    event.action,
                    event.tool_name or None,
                    event.tool_input_hash or None,
                    event.storage_key_hash or None,
                    event.duration_ms,
                    event.status,
                    event.error_type,
                    event.xp_awarded,
                    metadata_json,
                ),
            )
            conn.commit()
        except Exception:
            logger.exception("Failed to write audit event, event lost")
            return ""

        return event_id

    def log_tool_call(
        self,
        tool_name: str,
        tool_input: Any = None,
        *,
        storage_key: str | None = None,
        duration_ms: float | None = None,
        status: str = "success",
        error_type: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log an MCP tool invocation.

        Args:
            tool_name: Name of the MCP tool.
            tool_input: Tool arguments (hashed, never stored raw).
            storage_key: Ledger key the call touched (hashed).
            duration_ms: Tool execution duration in milliseconds.
            status: 'success' or 'failure'.
            error_type: Exception class name on failure.
            metadata: Additional non-personal metadata.
        """
        return self.log_event(AuditEvent(
            action="tool_invocation",
            tool_name=tool_name,
            tool_input_hash=_hash_input(tool_input) if tool_input else "",
            storage_key_hash=hash_storage_key(storage_key),
            duration_ms=duration_ms,
            status=status,
            error_type=error_type,
            metadata=metadata or {},
        ))

    def log_xp_awards(
        self,
        *,
        storage_key: str,
        event_ids: list[str],
        xp: int,
        tool_name: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log the XP paid by one refresh.

        Args:
            storage_key: Ledger key that received the XP (hashed).
            event_ids: Task/bonus ids paid (catalog ids, not personal data).
            xp: Total XP paid.
            tool_name: Tool that triggered the refresh.
        """
        return self.log_event(AuditEvent(
            action="xp_award",
            tool_name=tool_name,
            storage_key_hash=hash_storage_key(storage_key),
            xp_awarded=xp,
            metadata={**(metadata or {}), "event_ids": list(event_ids)},
        ))

    def log_data_delete(
        self,
        *,
        tool_name: str = "",
        storage_key: str | None = None,
        count: int = 0,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Log a deletion or ledger reset.

        Args:
            tool_name: Tool that initiated the delete.
            storage_key: Ledger key affected (hashed).
            count: Number of records deleted.
            metadata: Additional context.
        """
        return self.log_event(AuditEvent(
            action="data_delete",
            tool_name=tool_name,
            storage_key_hash=hash_storage_key(storage_key),
            metadata={**(metadata or {}), "records_deleted": count},
        ))

    # ---------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------

    def get_events(
        self,
        *,
        action: str | None = None,
        tool_name: str | None = None,
        since: str | None = None,
        limit: int = 50,
    ) -> list[dict[str, Any]]:
        """Query audit events with optional filters, newest first."""
        conditions: list[str] = []
        params: list[Any] = []

        if action:
            conditions.append("action = ?")
            params.append(action)
        if tool_name:
            conditions.append("tool_name = ?")
            params.append(tool_name)
        if since:
            conditions.append("timestamp >= ?")
            params.append(since)

        where = (" WHERE " + " AND ".join(conditions)) if conditions else ""
        query = f"SELECT * FROM audit_log{where} ORDER BY timestamp DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [dict(row) for row in rows]

    def count_events(self, *, since: str | None = None) -> int:
        """Count total audit events, optionally since a timestamp."""
        if since:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log WHERE timestamp >= ?", (since,)
            ).fetchone()
        else:
            row = self._db.connection.execute(
                "SELECT COUNT(*) FROM audit_log"
            ).fetchone()
        return row[0]

    def sum_xp_awarded(self, *, since: str | None = None) -> int:
        """Total XP recorded by ``xp_award`` events.

        This answers: "How much XP has this server handed out?"
        """
        query = "SELECT COALESCE(SUM(xp_awarded), 0) FROM audit_log WHERE action = 'xp_award'"
        params: list[Any] = []
        if since:
            query += " AND timestamp >= ?"
            params.append(since)
        row = self._db.connection.execute(query, params).fetchone()
        return int(row[0])
