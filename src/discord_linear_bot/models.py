"""Data models for the sync store and the Linear API."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


# --- ChannelType constants ---

class ChannelType:
    FEATURE = "feature"
    BUG = "bug"

    _VALID = {FEATURE, BUG}

    @classmethod
    def is_valid(cls, t: str) -> bool:
        return t in cls._VALID

    @classmethod
    def all(cls) -> list[str]:
        return sorted(cls._VALID)


# --- Helper: timestamp handling ---

def parse_timestamp(s: str | None) -> datetime | None:
    """Parse a SQLite or RFC3339 timestamp string to an aware UTC datetime.

    SQLite's ``datetime('now')`` yields ``YYYY-MM-DD HH:MM:SS`` without a
    zone; those values are UTC.
    """
    if not s:
        return None
    s = s.strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        dt = None
        for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%d %H:%M:%S"):
            try:
                dt = datetime.strptime(s, fmt)
                break
            except ValueError:
                continue
        if dt is None:
            raise ValueError(f"Cannot parse timestamp: {s}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_timestamp(dt: datetime | None) -> str | None:
    """Format datetime to RFC3339 string."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    s = dt.isoformat()
    if s.endswith("+00:00"):
        s = s[:-6] + "Z"
    return s


def now_utc() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


# --- Stored rows ---

@dataclass
class SyncMapping:
    """Durable link between one Discord thread and one Linear issue."""
    id: int
    discord_thread_id: str
    linear_issue_id: str
    linear_identifier: str
    channel_type: str
    created_at: datetime = field(default_factory=now_utc)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SyncMapping:
        return cls(
            id=row["id"],
            discord_thread_id=row["discord_thread_id"],
            linear_issue_id=row["linear_issue_id"],
            linear_identifier=row["linear_identifier"],
            channel_type=row["channel_type"],
            created_at=parse_timestamp(row["created_at"]) or now_utc(),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "discord_thread_id": self.discord_thread_id,
            "linear_issue_id": self.linear_issue_id,
            "linear_identifier": self.linear_identifier,
            "channel_type": self.channel_type,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass
class StatusCacheEntry:
    linear_issue_id: str
    status_name: str
    updated_at: datetime = field(default_factory=now_utc)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> StatusCacheEntry:
        return cls(
            linear_issue_id=row["linear_issue_id"],
            status_name=row["status_name"],
            updated_at=parse_timestamp(row["updated_at"]) or now_utc(),
        )

    def to_dict(self) -> dict:
        return {
            "linear_issue_id": self.linear_issue_id,
            "status_name": self.status_name,
            "updated_at": format_timestamp(self.updated_at),
        }


@dataclass
class BackfillState:
    """Per-channel backfill progress."""
    channel_id: str
    completed: bool = False
    last_thread_id: str | None = None
    updated_at: datetime = field(default_factory=now_utc)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> BackfillState:
        return cls(
            channel_id=row["channel_id"],
            completed=bool(row["completed"]),
            last_thread_id=row["last_thread_id"],
            updated_at=parse_timestamp(row["updated_at"]) or now_utc(),
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "channel_id": self.channel_id,
            "completed": self.completed,
            "updated_at": format_timestamp(self.updated_at),
        }
        if self.last_thread_id:
            d["last_thread_id"] = self.last_thread_id
        return d


@dataclass
class SyncedComment:
    linear_comment_id: str
    linear_issue_id: str
    discord_message_id: str
    created_at: datetime = field(default_factory=now_utc)

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SyncedComment:
        return cls(
            linear_comment_id=row["linear_comment_id"],
            linear_issue_id=row["linear_issue_id"],
            discord_message_id=row["discord_message_id"],
            created_at=parse_timestamp(row["created_at"]) or now_utc(),
        )

    def to_dict(self) -> dict:
        return {
            "linear_comment_id": self.linear_comment_id,
            "linear_issue_id": self.linear_issue_id,
            "discord_message_id": self.discord_message_id,
            "created_at": format_timestamp(self.created_at),
        }


@dataclass
class SyncStatistics:
    """Aggregate counts across the store."""
    total_mappings: int = 0
    by_channel_type: dict[str, int] = field(default_factory=dict)
    cached_statuses: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    synced_comments: int = 0
    backfill_completed: int = 0
    backfill_in_progress: int = 0

    def to_dict(self) -> dict:
        return {
            "total_mappings": self.total_mappings,
            "by_channel_type": self.by_channel_type,
            "cached_statuses": self.cached_statuses,
            "by_status": self.by_status,
            "synced_comments": self.synced_comments,
            "backfill_completed": self.backfill_completed,
            "backfill_in_progress": self.backfill_in_progress,
        }


# --- Linear API types ---

@dataclass
class LinearIssue:
    id: str
    identifier: str
    title: str
    url: str


@dataclass
class LinearIssueStatus:
    """Issue as returned by the updated-issues poll."""
    id: str
    identifier: str
    status_name: str
    updated_at: str = ""

    @classmethod
    def from_api(cls, data: dict) -> LinearIssueStatus:
        return cls(
            id=data.get("id") or "",
            identifier=data.get("identifier") or "",
            status_name=(data.get("state") or {}).get("name") or "",
            updated_at=data.get("updatedAt") or "",
        )


@dataclass
class LinearComment:
    id: str
    body: str
    author_name: str
    created_at: datetime | None = None

    @classmethod
    def from_api(cls, data: dict) -> LinearComment:
        user = data.get("user") or {}
        return cls(
            id=data["id"],
            body=data.get("body") or "",
            author_name=user.get("displayName") or user.get("name") or "Linear",
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass
class UploadHeader:
    key: str
    value: str


@dataclass
class UploadFile:
    """Pre-signed upload target returned by Linear's fileUpload mutation."""
    upload_url: str
    asset_url: str
    headers: list[UploadHeader] = field(default_factory=list)
