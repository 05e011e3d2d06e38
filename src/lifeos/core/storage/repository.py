"""Ledger bank repository: XP state, award history, and score snapshots.

The repository mediates between the profile strength domain objects
(XpLedgerState, XpEvent, ProfileStrengthResult) and the SQLite database,
using FieldEncryptor for the ledger state and the raw signal snapshot.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

from lifeos.core.storage.database import ProfileDatabase
from lifeos.core.storage.encryption import EncryptionError, FieldEncryptor
from lifeos.core.storage.models import StoredAward, StoredSnapshot
from lifeos.domains.profile_strength.domain_logic.strength_models import (
    ProfileStrengthInput,
    ProfileStrengthResult,
)
from lifeos.domains.profile_strength.domain_logic.xp_ledger import (
    DEFAULT_XP_STATE,
    XpEvent,
    XpLedgerState,
    normalize_xp_state,
    xp_state_storage_key,
)

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


class ProfileStrengthRepository:
    """Per-user persistence for the XP ledger and scored snapshots.

    Every method takes the caller's ``user_id``; ``None`` maps to the shared
    demo key (see ``xp_state_storage_key``).

    Usage::

        db = ProfileDatabase(":memory:")
        db.initialize()
        encryptor = FieldEncryptor(key="...")
        repo = ProfileStrengthRepository(db, encryptor)

        state = repo.load_xp_state("user-1")
        repo.save_xp_state("user-1", state)
        repo.save_snapshot("user-1", result, signals)
    """

    def __init__(self, database: ProfileDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    # ------------------------------------------------------------------
    # XP state
    # ------------------------------------------------------------------

    def load_xp_state(self, user_id: str | None = None) -> XpLedgerState:
        """Load the user's ledger state.

        Never raises on bad data: a missing row, an undecryptable token or a
        malformed payload all yield the zero state. A state still encrypted
        under a retired key is re-encrypted under the primary key.
        """
        key = xp_state_storage_key(user_id)
        row = self._db.connection.execute(
            "SELECT state_enc FROM xp_ledger_state WHERE storage_key = ?", (key,)
        ).fetchone()
        if row is None:
            return DEFAULT_XP_STATE

        token = row["state_enc"] or ""
        try:
            payload = self._enc.decrypt(token)
        except EncryptionError as exc:
            logger.warning("XP state for %s is unreadable, resetting to zero: %s", key, exc)
            return DEFAULT_XP_STATE

        if not isinstance(payload, dict):
            logger.warning("XP state for %s has an unexpected shape, resetting to zero", key)
            return DEFAULT_XP_STATE

        if self._enc.needs_rotation(token):
            self._rotate_state(key, token)
        return normalize_xp_state(payload)

    def _rotate_state(self, key: str, token: str) -> None:
        with self._db.connection as conn:
            conn.execute(
                "UPDATE xp_ledger_state SET state_enc = ? WHERE storage_key = ?",
                (self._enc.rotate(token), key),
            )
        logger.info("Re-encrypted XP state for %s under the primary key", key)

    def _upsert_state(self, conn: sqlite3.Connection, key: str, state: XpLedgerState) -> None:
        conn.execute(
            """INSERT INTO xp_ledger_state (storage_key, state_enc, updated_at)
               VALUES (?, ?, ?)
               ON CONFLICT(storage_key) DO UPDATE SET
                   state_enc = excluded.state_enc,
                   updated_at = excluded.updated_at""",
            (key, self._enc.encrypt(state.to_dict()), self._now_iso()),
        )

    def save_xp_state(self, user_id: str | None, state: XpLedgerState) -> None:
        """Upsert the user's ledger state (encrypted)."""
        key = xp_state_storage_key(user_id)
        with self._db.connection as conn:
            self._upsert_state(conn, key, state)
        logger.info(
            "Saved XP state for %s (%d tasks completed)", key, len(state.completed_task_ids)
        )

    def reset_xp_state(self, user_id: str | None = None) -> int:
        """Clear the ledger state and award history; snapshots are kept.

        Returns:
            Number of award rows removed.
        """
        key = xp_state_storage_key(user_id)
        conn = self._db.connection
        removed = conn.execute("DELETE FROM xp_awards WHERE storage_key = ?", (key,)).rowcount
        conn.execute("DELETE FROM xp_ledger_state WHERE storage_key = ?", (key,))
        conn.commit()
        logger.warning("Reset XP ledger for %s: %d awards removed", key, removed)
        return removed

    # ------------------------------------------------------------------
    # Awards
    # ------------------------------------------------------------------

    def _insert_award(
        self, conn: sqlite3.Connection, key: str, event: XpEvent, awarded_at: str
    ) -> int:
        """Insert one award row; returns 0 when (key, kind, event id) exists."""
        cursor = conn.execute(
            """INSERT OR IGNORE INTO xp_awards
               (id, storage_key, event_id, kind, xp, source_type, source_id,
                description, awarded_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                self._new_id(),
                key,
                event.id,
                event.kind,
                event.xp,
                event.source_type,
                event.source_id,
                event.description,
                awarded_at,
            ),
        )
        return cursor.rowcount

    def _insert_awards(self, conn: sqlite3.Connection, key: str, events: list[XpEvent]) -> int:
        now = self._now_iso()
        inserted = sum(self._insert_award(conn, key, event, now) for event in events)
        if inserted < len(events):
            logger.warning(
                "Ignored %d already-recorded XP awards for %s", len(events) - inserted, key
            )
        return inserted

    def record_awards(self, user_id: str | None, events: list[XpEvent]) -> int:
        """Append paid events to the award history.

        Events already recorded for this user are ignored. A task and a bonus
        may share an id; they are told apart by ``kind``.

        Returns:
            Number of rows actually inserted.
        """
        if not events:
            return 0
        with self._db.connection as conn:
            return self._insert_awards(conn, xp_state_storage_key(user_id), events)

    def commit_xp_events(
        self, user_id: str | None, state: XpLedgerState, events: list[XpEvent]
    ) -> int:
        """Record awards and the folded ledger state in a single transaction.

        If any write fails nothing is kept, so the same events are paid on
        the next attempt.

        Returns:
            Number of award rows actually inserted.
        """
        key = xp_state_storage_key(user_id)
        with self._db.connection as conn:
            inserted = self._insert_awards(conn, key, events)
            self._upsert_state(conn, key, state)
        logger.info(
            "Committed %d XP awards for %s (%d tasks completed)",
            inserted, key, len(state.completed_task_ids),
        )
        return inserted

    def get_awards(self, user_id: str | None = None, *, limit: int = 100) -> list[StoredAward]:
        """Award history, newest first."""
        rows = self._db.connection.execute(
            """SELECT * FROM xp_awards WHERE storage_key = ?
               ORDER BY awarded_at DESC, rowid DESC LIMIT ?""",
            (xp_state_storage_key(user_id), limit),
        ).fetchall()
        return [
            StoredAward(
                id=row["id"],
                storage_key=row["storage_key"],
                event_id=row["event_id"],
                kind=row["kind"],
                xp=row["xp"],
                source_type=row["source_type"],
                source_id=row["source_id"],
                description=row["description"] or "",
                awarded_at=row["awarded_at"] or "",
            )
            for row in rows
        ]

    def total_xp(self, user_id: str | None = None) -> int:
        """Sum of all XP ever recorded for the user."""
        row = self._db.connection.execute(
            "SELECT COALESCE(SUM(xp), 0) FROM xp_awards WHERE storage_key = ?",
            (xp_state_storage_key(user_id),),
        ).fetchone()
        return int(row[0])

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def save_snapshot(
        self,
        user_id: str | None,
        result: ProfileStrengthResult,
        signals: ProfileStrengthInput | None = None,
    ) -> str:
        """Persist a scored result with its encrypted signal snapshot.

        Returns:
            The snapshot ID.
        """
        sid = self._new_id()
        key = xp_state_storage_key(user_id)
        conn = self._db.connection
        conn.execute(
            """INSERT INTO strength_snapshots
               (id, storage_key, computed_at, overall_percent, used_fallback_data,
                result_json, signals_enc, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                sid,
                key,
                result.meta.computed_at,
                result.overall_percent,
                1 if result.meta.used_fallback_data else 0,
                json.dumps(result.to_dict(), separators=(",", ":")),
                self._enc.encrypt(signals.to_dict()) if signals is not None else None,
                self._now_iso(),
            ),
        )
        conn.commit()
        logger.info(
            "Saved profile strength snapshot %s for %s (overall=%s)",
            sid, key, result.overall_percent,
        )
        return sid

    def get_latest_snapshot(self, user_id: str | None = None) -> StoredSnapshot | None:
        """Most recently stored snapshot for the user, or None."""
        row = self._db.connection.execute(
            """SELECT * FROM strength_snapshots WHERE storage_key = ?
               ORDER BY created_at DESC, rowid DESC LIMIT 1""",
            (xp_state_storage_key(user_id),),
        ).fetchone()
        if row is None:
            return None
        return self._row_to_snapshot(row)

    def get_score_history(
        self, user_id: str | None = None, *, limit: int = 30
    ) -> list[tuple[str, int | None]]:
        """Time-series of overall percent.

        Returns:
            List of (computed_at, overall_percent) tuples, newest first.
        """
        rows = self._db.connection.execute(
            """SELECT computed_at, overall_percent FROM strength_snapshots
               WHERE storage_key = ?
               ORDER BY created_at DESC, rowid DESC LIMIT ?""",
            (xp_state_storage_key(user_id), limit),
        ).fetchall()
        return [(row[0], row[1]) for row in rows]

    def count_snapshots(self, user_id: str | None = None) -> int:
        """Snapshots stored for one user, or for everyone when ``user_id`` is None."""
        conn = self._db.connection
        if user_id is None:
            row = conn.execute("SELECT COUNT(*) FROM strength_snapshots").fetchone()
        else:
            row = conn.execute(
                "SELECT COUNT(*) FROM strength_snapshots WHERE storage_key = ?",
                (xp_state_storage_key(user_id),),
            ).fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_user_data(self, user_id: str | None = None) -> dict[str, int]:
        """Delete everything stored for a user.

        Returns:
            Rows removed per table.
        """
        key = xp_state_storage_key(user_id)
        conn = self._db.connection
        counts = {
            "snapshots": conn.execute(
                "DELETE FROM strength_snapshots WHERE storage_key = ?", (key,)
            ).rowcount,
            "awards": conn.execute(
                "DELETE FROM xp_awards WHERE storage_key = ?", (key,)
            ).rowcount,
            "ledger_state": conn.execute(
                "DELETE FROM xp_ledger_state WHERE storage_key = ?", (key,)
            ).rowcount,
        }
        conn.commit()
        logger.warning("Deleted profile strength data for %s: %s", key, counts)
        return counts

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _row_to_snapshot(self, row: Any) -> StoredSnapshot:
        """Convert a database row, decrypting the signal snapshot."""
        try:
            result = json.loads(row["result_json"])
        except (TypeError, ValueError) as exc:
            raise RepositoryError(f"Snapshot {row['id']} has malformed result JSON") from exc

        signals = None
        if row["signals_enc"]:
            try:
                signals = self._enc.decrypt(row["signals_enc"])
            except EncryptionError as exc:
                logger.warning("Signal snapshot %s is unreadable: %s", row["id"], exc)

        return StoredSnapshot(
            id=row["id"],
            storage_key=row["storage_key"],
            computed_at=row["computed_at"],
            overall_percent=row["overall_percent"],
            used_fallback_data=bool(row["used_fallback_data"]),
            result=result,
            signals=signals,
            created_at=row["created_at"],
        )
