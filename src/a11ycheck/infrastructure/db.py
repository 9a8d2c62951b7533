"""SQLite database layer: connection management, schema, meta helpers."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

# Schema version: increment on breaking changes
SCHEMA_VERSION = "1"

_SCHEMA_SQL = """\
-- Course content items (pages, assignments)
CREATE TABLE IF NOT EXISTS resources (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    resource_type TEXT NOT NULL CHECK(resource_type IN ('Page','Assignment','Attachment')),
    title         TEXT NOT NULL DEFAULT '',
    body          TEXT NOT NULL DEFAULT '',
    published     INTEGER NOT NULL DEFAULT 1,
    source_path   TEXT UNIQUE,
    updated_at    TEXT NOT NULL
);

-- One scan record per resource
CREATE TABLE IF NOT EXISTS resource_scans (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    resource_id    INTEGER NOT NULL UNIQUE REFERENCES resources(id) ON DELETE CASCADE,
    workflow_state TEXT NOT NULL DEFAULT 'queued' CHECK(workflow_state IN (
        'queued','in_progress','completed','failed'
    )),
    error_message  TEXT,
    issue_count    INTEGER NOT NULL DEFAULT 0,
    scanned_at     TEXT
);

-- Rule violations
CREATE TABLE IF NOT EXISTS issues (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    scan_id        INTEGER NOT NULL REFERENCES resource_scans(id) ON DELETE CASCADE,
    rule_type      TEXT NOT NULL,
    node_path      TEXT NOT NULL,
    workflow_state TEXT NOT NULL DEFAULT 'active' CHECK(workflow_state IN (
        'active','resolved','dismissed'
    )),
    metadata       TEXT DEFAULT '{}',
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);

-- Index metadata
CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_resources_type ON resources(resource_type);
CREATE INDEX IF NOT EXISTS idx_issues_scan ON issues(scan_id);
CREATE INDEX IF NOT EXISTS idx_issues_rule ON issues(rule_type);
CREATE INDEX IF NOT EXISTS idx_issues_state ON issues(workflow_state);
"""


def open_db(db_path: Path) -> sqlite3.Connection:
    """Open (or create) a SQLite database with proper PRAGMAs.

    Sets WAL journal mode (persistent per-file) and enables foreign keys
    (per-connection, required on every open).

    Returns a connection with ``sqlite3.Row`` row factory.
    """
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    return conn


def create_schema(conn: sqlite3.Connection) -> None:
    """Create all tables and indexes if they don't exist.

    Safe to call multiple times (uses IF NOT EXISTS).
    """
    conn.executescript(_SCHEMA_SQL)
    conn.execute(
        "INSERT OR IGNORE INTO meta (key, value) VALUES ('schema_version', ?)",
        (SCHEMA_VERSION,),
    )
    conn.commit()


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(tz=timezone.utc).isoformat()


def get_meta(conn: sqlite3.Connection, key: str, default: str | None = None) -> str | None:
    """Read a value from the ``meta`` table.

    Returns *default* (``None``) if the key doesn't exist.
    """
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
    if row is None:
        return default
    return str(row[0])


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    """Insert or update a key in the ``meta`` table."""
    conn.execute(
        "INSERT INTO meta (key, value) VALUES (?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
        (key, value),
    )
    conn.commit()
