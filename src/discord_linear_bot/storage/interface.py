"""Storage interface (abstract base) for the sync store."""

from __future__ import annotations

from abc import ABC, abstractmethod

from discord_linear_bot.models import (
    BackfillState, StatusCacheEntry, SyncedComment, SyncMapping, SyncStatistics,
)


class SyncStore(ABC):
    """Abstract base class defining all sync store operations."""

    @abstractmethod
    def path(self) -> str:
        """Return the database file path."""

    @abstractmethod
    def close(self) -> None:
        """Close the storage connection."""

    @abstractmethod
    def schema_version(self) -> int:
        """Return the number of the last applied migration."""

    # --- Sync mappings ---

    @abstractmethod
    def get_mapping_by_discord_thread(self, discord_thread_id: str) -> SyncMapping | None:
        """Get the mapping for a Discord thread. Returns None if not found."""

    @abstractmethod
    def get_mapping_by_linear_issue(self, linear_issue_id: str) -> SyncMapping | None:
        """Get the mapping for a Linear issue. Returns None if not found."""

    @abstractmethod
    def create_mapping(self, discord_thread_id: str, linear_issue_id: str,
                       linear_identifier: str, channel_type: str) -> SyncMapping:
        """Create a thread <-> issue mapping.

        Raises DuplicateMappingError if either side is already mapped and
        InvalidChannelTypeError for an unknown channel type.
        """

    @abstractmethod
    def list_mappings(self, channel_type: str | None = None, limit: int = 0) -> list[SyncMapping]:
        """List mappings, newest first."""

    # --- Status cache ---

    @abstractmethod
    def get_cached_status(self, linear_issue_id: str) -> str | None:
        """Get the last relayed status name for an issue."""

    @abstractmethod
    def get_status_entry(self, linear_issue_id: str) -> StatusCacheEntry | None:
        """Get the full status cache entry for an issue."""

    @abstractmethod
    def upsert_cached_status(self, linear_issue_id: str, status_name: str) -> None:
        """Insert or overwrite the cached status for an issue."""

    # --- Backfill cursor ---

    @abstractmethod
    def get_backfill_state(self, channel_id: str) -> BackfillState | None:
        """Get backfill progress for a channel."""

    @abstractmethod
    def upsert_backfill_state(self, channel_id: str, completed: bool,
                              last_thread_id: str | None) -> None:
        """Insert or overwrite backfill progress for a channel."""

    @abstractmethod
    def list_backfill_states(self) -> list[BackfillState]:
        """List backfill progress for all channels."""

    @abstractmethod
    def reset_backfill_state(self, channel_id: str) -> bool:
        """Forget backfill progress for a channel. Returns True if a row was removed."""

    # --- Comment sync log ---

    @abstractmethod
    def is_comment_synced(self, linear_comment_id: str) -> bool:
        """Check whether a Linear comment was already relayed."""

    @abstractmethod
    def insert_synced_comment(self, linear_comment_id: str, linear_issue_id: str,
                              discord_message_id: str) -> None:
        """Record a relayed comment. Raises DuplicateCommentError if already recorded."""

    @abstractmethod
    def get_synced_comments(self, linear_issue_id: str) -> list[SyncedComment]:
        """Get relayed comments for an issue, oldest first."""

    # --- Statistics ---

    @abstractmethod
    def get_statistics(self) -> SyncStatistics:
        """Get aggregate statistics."""
