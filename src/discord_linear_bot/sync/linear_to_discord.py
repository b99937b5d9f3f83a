"""Linear -> Discord relay of status changes and comments."""

from __future__ import annotations

import logging

import discord

from discord_linear_bot.errors import DuplicateCommentError, SyncError
from discord_linear_bot.models import LinearComment, SyncMapping
from discord_linear_bot.storage.interface import SyncStore

logger = logging.getLogger(__name__)

_MAX_MESSAGE_LENGTH = 1900


def _clamp_text(text: str, limit: int = _MAX_MESSAGE_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 1] + "…"


def status_message(identifier: str, status: str) -> str:
    return f"**{identifier}** status changed to **{status}**"


def comment_message(author: str, identifier: str, body: str) -> str:
    return _clamp_text(f"**{author}** commented on **{identifier}**:\n{body}")


async def resolve_thread(client: discord.Client, thread_id: str):
    """Look up a thread in the cache, falling back to the API."""
    try:
        channel_id = int(thread_id)
    except ValueError as exc:
        raise SyncError(f"Invalid Discord thread id: {thread_id!r}") from exc
    channel = client.get_channel(channel_id)
    if channel is None:
        channel = await client.fetch_channel(channel_id)
    return channel


async def sync_status_to_discord(client: discord.Client, store: SyncStore, issue_id: str,
                                 identifier: str, status: str) -> None:
    """Post a status change to the issue's thread, then cache the status."""
    mapping = store.get_mapping_by_linear_issue(issue_id)
    if mapping is None:
        raise SyncError(f"No mapping for Linear issue {issue_id}")

    thread = await resolve_thread(client, mapping.discord_thread_id)
    await thread.send(status_message(identifier, status))
    store.upsert_cached_status(issue_id, status)
    logger.info("Synced status %s -> %s to thread %s",
                identifier, status, mapping.discord_thread_id)


async def relay_comment_to_discord(client: discord.Client, store: SyncStore,
                                   mapping: SyncMapping, comment: LinearComment) -> bool:
    """Post a Linear comment to the mapped thread once.

    Returns False when the comment was already relayed.
    """
    if store.is_comment_synced(comment.id):
        return False

    thread = await resolve_thread(client, mapping.discord_thread_id)
    message = await thread.send(
        comment_message(comment.author_name, mapping.linear_identifier, comment.body)
    )
    try:
        store.insert_synced_comment(comment.id, mapping.linear_issue_id, str(message.id))
    except DuplicateCommentError:
        logger.warning("Comment %s was recorded twice", comment.id)
    logger.info("Relayed comment %s on %s", comment.id, mapping.linear_identifier)
    return True
