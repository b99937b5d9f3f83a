"""SQLite schema migrations for the sync store.

Migrations are applied in order. Each one is idempotent, so re-running a
migration against a database that already has its tables is harmless.
"""

INITIAL_SCHEMA = """
CREATE TABLE IF NOT EXISTS sync_mappings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    discord_thread_id TEXT NOT NULL UNIQUE,
    linear_issue_id TEXT NOT NULL UNIQUE,
    linear_identifier TEXT NOT NULL,
    channel_type TEXT NOT NULL CHECK (channel_type IN ('feature', 'bug')),
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS linear_status_cache (
    linear_issue_id TEXT PRIMARY KEY,
    status_name TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS backfill_state (
    channel_id TEXT PRIMARY KEY,
    completed INTEGER NOT NULL DEFAULT 0,
    last_thread_id TEXT,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

COMMENT_SYNC = """
CREATE TABLE IF NOT EXISTS synced_comments (
    linear_comment_id TEXT PRIMARY KEY,
    linear_issue_id TEXT NOT NULL,
    discord_message_id TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
"""

# (version, name, sql); version is stored in PRAGMA user_version once applied
MIGRATIONS: list[tuple[int, str, str]] = [
    (1, "initial_schema", INITIAL_SCHEMA),
    (2, "comment_sync", COMMENT_SYNC),
]

SCHEMA_VERSION = MIGRATIONS[-1][0]
