"""SQLite storage implementation for the sync store."""

from __future__ import annotations

import logging
import os
import sqlite3

from discord_linear_bot.errors import (
    DuplicateCommentError, DuplicateMappingError, InvalidChannelTypeError, StoreError,
)
from discord_linear_bot.models import (
    BackfillState, StatusCacheEntry, SyncedComment, SyncMapping, SyncStatistics,
)
from discord_linear_bot.storage.interface import SyncStore
from discord_linear_bot.storage.schema import MIGRATIONS

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_MS = 5000

_MAPPING_COLUMNS = (
    "id, discord_thread_id, linear_issue_id, linear_identifier, channel_type, created_at"
)


class SQLiteSyncStore(SyncStore):
    """SQLite-based sync store.

    Calls are synchronous. The bot runs them on its event loop, so it opens
    the store with a short ``busy_timeout`` and treats itself as the only
    long-lived writer; CLI writes are brief.
    """

    def __init__(self, db_path: str, busy_timeout: int = DEFAULT_BUSY_TIMEOUT_MS):
        self._db_path = db_path
        if db_path != ":memory:":
            parent = os.path.dirname(os.path.abspath(db_path))
            os.makedirs(parent, exist_ok=True)
        self._conn = sqlite3.connect(db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute(f"PRAGMA busy_timeout={int(busy_timeout)}")
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply pending migrations in order.

        Databases created before version tracking report user_version 0;
        the migrations use IF NOT EXISTS, so replaying them is safe.
        """
        current = self.schema_version()
        for version, name, sql in MIGRATIONS:
            if version <= current:
                continue
            self._conn.executescript(sql)
            self._conn.execute(f"PRAGMA user_version = {int(version)}")
            self._conn.commit()
            logger.debug("Applied migration %03d_%s", version, name)

    def path(self) -> str:
        return self._db_path

    def close(self) -> None:
        self._conn.close()

    def schema_version(self) -> int:
        row = self._conn.execute("PRAGMA user_version").fetchone()
        return row[0] if row else 0

    # --- Sync mappings ---

    def get_mapping_by_discord_thread(self, discord_thread_id: str) -> SyncMapping | None:
        row = self._conn.execute(
            f"SELECT {_MAPPING_COLUMNS} FROM sync_mappings WHERE discord_thread_id = ?",
            (discord_thread_id,)
        ).fetchone()
        return SyncMapping.from_row(row) if row else None

    def get_mapping_by_linear_issue(self, linear_issue_id: str) -> SyncMapping | None:
        row = self._conn.execute(
            f"SELECT {_MAPPING_COLUMNS} FROM sync_mappings WHERE linear_issue_id = ?",
            (linear_issue_id,)
        ).fetchone()
        return SyncMapping.from_row(row) if row else None

    def create_mapping(self, discord_thread_id: str, linear_issue_id: str,
                       linear_identifier: str, channel_type: str) -> SyncMapping:
        try:
            cursor = self._conn.execute(
                "INSERT INTO sync_mappings (discord_thread_id, linear_issue_id, linear_identifier, channel_type) "
                "VALUES (?, ?, ?, ?)",
                (discord_thread_id, linear_issue_id, linear_identifier, channel_type)
            )
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            message = str(exc)
            if "UNIQUE" in message:
                raise DuplicateMappingError(
                    f"Mapping already exists for thread {discord_thread_id} "
                    f"or issue {linear_issue_id}"
                ) from exc
            if "CHECK" in message:
                raise InvalidChannelTypeError(f"Invalid channel type: {channel_type!r}") from exc
            raise StoreError(message) from exc
        self._conn.commit()

        row = self._conn.execute(
            f"SELECT {_MAPPING_COLUMNS} FROM sync_mappings WHERE id = ?",
            (cursor.lastrowid,)
        ).fetchone()
        return SyncMapping.from_row(row)

    def list_mappings(self, channel_type: str | None = None, limit: int = 0) -> list[SyncMapping]:
        sql = f"SELECT {_MAPPING_COLUMNS} FROM sync_mappings"
        params: list = []
        if channel_type:
            sql += " WHERE channel_type = ?"
            params.append(channel_type)
        sql += " ORDER BY created_at DESC, id DESC"
        if limit > 0:
            sql += " LIMIT ?"
            params.append(limit)
        rows = self._conn.execute(sql, params).fetchall()
        return [SyncMapping.from_row(r) for r in rows]

    # --- Status cache ---

    def get_cached_status(self, linear_issue_id: str) -> str | None:
        row = self._conn.execute(
            "SELECT status_name FROM linear_status_cache WHERE linear_issue_id = ?",
            (linear_issue_id,)
        ).fetchone()
        return row["status_name"] if row else None

    def get_status_entry(self, linear_issue_id: str) -> StatusCacheEntry | None:
        row = self._conn.execute(
            "SELECT linear_issue_id, status_name, updated_at FROM linear_status_cache "
            "WHERE linear_issue_id = ?",
            (linear_issue_id,)
        ).fetchone()
        return StatusCacheEntry.from_row(row) if row else None

    def upsert_cached_status(self, linear_issue_id: str, status_name: str) -> None:
        self._conn.execute(
            """INSERT INTO linear_status_cache (linear_issue_id, status_name, updated_at)
               VALUES (?, ?, datetime('now'))
               ON CONFLICT(linear_issue_id) DO UPDATE SET
                 status_name = excluded.status_name,
                 updated_at = excluded.updated_at""",
            (linear_issue_id, status_name)
        )
        self._conn.commit()

    # --- Backfill cursor ---

    def get_backfill_state(self, channel_id: str) -> BackfillState | None:
        row = self._conn.execute(
            "SELECT channel_id, completed, last_thread_id, updated_at "
            "FROM backfill_state WHERE channel_id = ?",
            (channel_id,)
        ).fetchone()
        return BackfillState.from_row(row) if row else None

    def upsert_backfill_state(self, channel_id: str, completed: bool,
                              last_thread_id: str | None) -> None:
        self._conn.execute(
            """INSERT INTO backfill_state (channel_id, completed, last_thread_id, updated_at)
               VALUES (?, ?, ?, datetime('now'))
               ON CONFLICT(channel_id) DO UPDATE SET
                 completed = excluded.completed,
                 last_thread_id = excluded.last_thread_id,
                 updated_at = excluded.updated_at""",
            (channel_id, int(completed), last_thread_id)
        )
        self._conn.commit()

    def list_backfill_states(self) -> list[BackfillState]:
        rows = self._conn.execute(
            "SELECT channel_id, completed, last_thread_id, updated_at "
            "FROM backfill_state ORDER BY channel_id"
        ).fetchall()
        return [BackfillState.from_row(r) for r in rows]

    def reset_backfill_state(self, channel_id: str) -> bool:
        cursor = self._conn.execute(
            "DELETE FROM backfill_state WHERE channel_id = ?", (channel_id,)
        )
        self._conn.commit()
        return cursor.rowcount > 0

    # --- Comment sync log ---

    def is_comment_synced(self, linear_comment_id: str) -> bool:
        row = self._conn.execute(
            "SELECT 1 FROM synced_comments WHERE linear_comment_id = ?",
            (linear_comment_id,)
        ).fetchone()
        return row is not None

    def insert_synced_comment(self, linear_comment_id: str, linear_issue_id: str,
                              discord_message_id: str) -> None:
        try:
            self._conn.execute(
                "INSERT INTO synced_comments (linear_comment_id, linear_issue_id, discord_message_id) "
                "VALUES (?, ?, ?)",
                (linear_comment_id, linear_issue_id, discord_message_id)
            )
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            raise DuplicateCommentError(
                f"Comment already relayed: {linear_comment_id}"
            ) from exc
        self._conn.commit()

    def get_synced_comments(self, linear_issue_id: str) -> list[SyncedComment]:
        rows = self._conn.execute(
            "SELECT linear_comment_id, linear_issue_id, discord_message_id, created_at "
            "FROM synced_comments WHERE linear_issue_id = ? ORDER BY created_at, rowid",
            (linear_issue_id,)
        ).fetchall()
        return [SyncedComment.from_row(r) for r in rows]

    # --- Statistics ---

    def get_statistics(self) -> SyncStatistics:
        stats = SyncStatistics()

        rows = self._conn.execute(
            "SELECT channel_type, COUNT(*) as cnt FROM sync_mappings GROUP BY channel_type"
        ).fetchall()
        stats.by_channel_type = {row["channel_type"]: row["cnt"] for row in rows}
        stats.total_mappings = sum(stats.by_channel_type.values())

        rows = self._conn.execute(
            "SELECT status_name, COUNT(*) as cnt FROM linear_status_cache GROUP BY status_name"
        ).fetchall()
        stats.by_status = {row["status_name"]: row["cnt"] for row in rows}
        stats.cached_statuses = sum(stats.by_status.values())

        row = self._conn.execute("SELECT COUNT(*) as cnt FROM synced_comments").fetchone()
        stats.synced_comments = row["cnt"] if row else 0

        rows = self._conn.execute(
            "SELECT completed, COUNT(*) as cnt FROM backfill_state GROUP BY completed"
        ).fetchall()
        for row in rows:
            if row["completed"]:
                stats.backfill_completed = row["cnt"]
            else:
                stats.backfill_in_progress = row["cnt"]

        return stats


def open_store(db_path: str, busy_timeout: int = DEFAULT_BUSY_TIMEOUT_MS) -> SQLiteSyncStore:
    """Open or create a SQLite sync store at the given path."""
    return SQLiteSyncStore(db_path, busy_timeout=busy_timeout)
