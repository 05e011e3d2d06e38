"""SQLite database management for the LifeOS profile strength ledger bank.

Handles connection lifecycle, schema creation, and migrations.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Current schema version
SCHEMA_VERSION = 2

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_V1 = """
-- One row per user: the encrypted XpLedgerState JSON
CREATE TABLE IF NOT EXISTS xp_ledger_state (
    storage_key  TEXT PRIMARY KEY,
    state_enc    TEXT NOT NULL,
    updated_at   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Reward history. A task and a bonus may share an id, so kind is part of the
-- key. Each award is kept at most once even if the ledger state above is lost.
CREATE TABLE IF NOT EXISTS xp_awards (
    id           TEXT PRIMARY KEY,
    storage_key  TEXT NOT NULL,
    event_id     TEXT NOT NULL,
    kind         TEXT NOT NULL,
    xp           INTEGER NOT NULL,
    source_type  TEXT NOT NULL,
    source_id    TEXT NOT NULL,
    description  TEXT,
    awarded_at   TEXT NOT NULL DEFAULT (datetime('now')),
    UNIQUE (storage_key, kind, event_id)
);

-- Scored results. result_json carries scores/reasons/tasks only; the raw
-- signal snapshot is encrypted.
CREATE TABLE IF NOT EXISTS strength_snapshots (
    id                 TEXT PRIMARY KEY,
    storage_key        TEXT NOT NULL,
    computed_at        TEXT NOT NULL,
    overall_percent    INTEGER,
    used_fallback_data INTEGER NOT NULL DEFAULT 0,
    result_json        TEXT NOT NULL,
    signals_enc        TEXT,
    created_at         TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER NOT NULL,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_awards_key        ON xp_awards(storage_key);
CREATE INDEX IF NOT EXISTS idx_snapshots_key     ON strength_snapshots(storage_key);
CREATE INDEX IF NOT EXISTS idx_snapshots_created ON strength_snapshots(created_at);
"""

# ---------------------------------------------------------------------------
# V2: Audit log table (tool calls, XP awards, deletions)
# ---------------------------------------------------------------------------

_SCHEMA_V2 = """
CREATE TABLE IF NOT EXISTS audit_log (
    id               TEXT PRIMARY KEY,
    timestamp        TEXT NOT NULL DEFAULT (datetime('now')),
    action           TEXT NOT NULL,
    tool_name        TEXT,
    tool_input_hash  TEXT,
    storage_key_hash TEXT,
    duration_ms      REAL,
    status           TEXT NOT NULL DEFAULT 'success',
    error_type       TEXT,
    xp_awarded       INTEGER NOT NULL DEFAULT 0,
    metadata_json    TEXT
);

CREATE INDEX IF NOT EXISTS idx_audit_timestamp ON audit_log(timestamp);
CREATE INDEX IF NOT EXISTS idx_audit_action    ON audit_log(action);
CREATE INDEX IF NOT EXISTS idx_audit_tool      ON audit_log(tool_name);
"""


class DatabaseError(Exception):
    """Raised when database operations fail."""


class ProfileDatabase:
    """SQLite database manager for the profile strength ledger bank.

    Supports both file-based and in-memory (`:memory:`) databases.
    In-memory mode is used for testing and for servers started without an
    encryption key.

    Usage::

        db = ProfileDatabase(":memory:")
        db.initialize()
        conn = db.connection
        # ... use connection ...
        db.close()
    """

    def __init__(self, db_path: str = ":memory:") -> None:
        """Initialize database manager.

        Args:
            db_path: Path to SQLite file, or ":memory:" for in-memory DB.
        """
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def connection(self) -> sqlite3.Connection:
        """Get the active database connection.

        Raises:
            DatabaseError: If the database has not been initialized.
        """
        if self._conn is None:
            raise DatabaseError("Database not initialized. Call initialize() first.")
        return self._conn

    def initialize(self) -> None:
        """Create the database connection and ensure schema exists.

        Idempotent: safe to call multiple times.

        Raises:
            DatabaseError: If the file cannot be opened.
        """
        if self._conn is not None:
            return

        try:
            if self._db_path != ":memory:":
                db_file = Path(self._db_path).expanduser()
                db_file.parent.mkdir(parents=True, exist_ok=True)
                self._conn = sqlite3.connect(str(db_file))
            else:
                self._conn = sqlite3.connect(":memory:")
        except (OSError, sqlite3.Error) as exc:
            raise DatabaseError(f"Unable to open database {self._db_path}: {exc}") from exc

        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._ensure_schema()
        logger.info("Profile strength database initialized: %s", self._db_path)

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and apply migrations."""
        conn = self.connection

        conn.executescript(_SCHEMA_V1)
        current_version = self.get_schema_version()

        if current_version < 2:
            conn.executescript(_SCHEMA_V2)
            logger.info("Applied schema migration V2: audit_log table")

        if current_version < SCHEMA_VERSION:
            conn.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            conn.commit()
            logger.info(
                "Schema updated from version %d to %d", current_version, SCHEMA_VERSION
            )

    def get_schema_version(self) -> int:
        """Return the current schema version."""
        row = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return row[0] if row[0] is not None else 0

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("Profile strength database closed")

    def __enter__(self) -> ProfileDatabase:
        self.initialize()
        return self

    def __exit__(self, *args) -> None:
        self.close()
