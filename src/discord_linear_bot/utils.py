"""Display helpers for the dlbot CLI."""

from __future__ import annotations

from datetime import datetime, timezone

from discord_linear_bot.models import BackfillState, SyncMapping, now_utc

# Largest unit first
_AGE_UNITS = (
    ("y", 365 * 86400),
    ("mo", 30 * 86400),
    ("d", 86400),
    ("h", 3600),
    ("m", 60),
)

_STATUS_WIDTH = 20


def format_age(dt: datetime, now: datetime | None = None) -> str:
    """Relative age such as ``3h ago``; anything under a minute is ``just now``."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = int(((now or now_utc()) - dt).total_seconds())
    for suffix, size in _AGE_UNITS:
        if seconds >= size:
            return f"{seconds // size}{suffix} ago"
    return "just now"


def format_mapping_row(mapping: SyncMapping, status: str | None = None) -> str:
    """One line per mapping: identifier, channel type, thread, status, age."""
    status_col = (status or "-")[:_STATUS_WIDTH]
    return (
        f"{mapping.linear_identifier:<12} {mapping.channel_type:<8} "
        f"thread {mapping.discord_thread_id:<20} {status_col:<{_STATUS_WIDTH}} "
        f"({format_age(mapping.created_at)})"
    )


def format_backfill_state(state: BackfillState | None) -> str:
    if state is None:
        return "not started"
    if state.completed:
        return f"completed {format_age(state.updated_at)}"
    if state.last_thread_id:
        return f"in progress (after thread {state.last_thread_id})"
    return "in progress"
