"""Discord thread -> Linear issue sync."""

from __future__ import annotations

import asyncio
import logging

import discord

from discord_linear_bot.config import ChannelConfig
from discord_linear_bot.errors import DuplicateMappingError, LinearApiError, SyncError
from discord_linear_bot.linear.client import LinearClient
from discord_linear_bot.models import SyncMapping
from discord_linear_bot.storage.interface import SyncStore
from discord_linear_bot.sync.locks import KeyedLocks, thread_locks

logger = logging.getLogger(__name__)

FIRST_MESSAGE_ATTEMPTS = 3
FIRST_MESSAGE_RETRY_DELAY = 2.0
EMPTY_BODY = "(No message content available)"


def thread_url(guild_id: int, channel_id: int, thread_id: int) -> str:
    return f"https://discord.com/channels/{guild_id}/{channel_id}/{thread_id}"


def build_description(body: str, url: str, attachment_links: list[str]) -> str:
    """Issue description: post body, a link back to Discord, then attachments."""
    description = f"{body}\n\n---\n[Discord Thread]({url})"
    if attachment_links:
        description += "\n\n**Attachments:**\n" + "\n".join(attachment_links)
    return description


def collect_label_ids(thread: discord.Thread, channel_config: ChannelConfig) -> list[str]:
    """Primary label for the channel plus labels mapped from applied forum tags."""
    label_ids = [channel_config.linear_label_id]
    for tag in getattr(thread, "applied_tags", None) or []:
        label_id = channel_config.tag_label_map.get(str(tag.id))
        if label_id and label_id not in label_ids:
            label_ids.append(label_id)
    return label_ids


async def fetch_first_message(thread: discord.Thread,
                              attempts: int = FIRST_MESSAGE_ATTEMPTS,
                              delay: float = FIRST_MESSAGE_RETRY_DELAY) -> discord.Message | None:
    """Fetch the starter message of a thread.

    Forum threads are announced before their first message is always
    readable, so this retries a few times before giving up.
    """
    for attempt in range(1, attempts + 1):
        try:
            async for message in thread.history(limit=1, oldest_first=True):
                return message
            logger.warning("No messages in thread %s yet (attempt %d/%d)",
                           thread.id, attempt, attempts)
        except discord.DiscordException as exc:
            logger.warning("Failed to fetch first message of thread %s (attempt %d/%d): %s",
                           thread.id, attempt, attempts, exc)
        if attempt < attempts:
            await asyncio.sleep(delay)
    return None


async def upload_attachments(linear: LinearClient, message: discord.Message | None) -> list[str]:
    """Re-host message attachments on Linear. Failures are logged and skipped."""
    if message is None:
        return []
    links = []
    for attachment in message.attachments:
        try:
            asset_url = await linear.upload_attachment(attachment.url, attachment.filename)
        except LinearApiError as exc:
            logger.warning("Failed to upload attachment %s: %s", attachment.filename, exc)
            continue
        links.append(f"![{attachment.filename}]({asset_url})")
    return links


async def sync_discord_to_linear(thread: discord.Thread, channel_config: ChannelConfig,
                                 store: SyncStore, linear: LinearClient,
                                 locks: KeyedLocks | None = None,
                                 retry_delay: float = FIRST_MESSAGE_RETRY_DELAY) -> SyncMapping:
    """Create a Linear issue for a Discord thread and record the mapping.

    Already-synced threads return their existing mapping without touching
    Linear. Raises SyncError for a thread with no parent channel and
    LinearApiError when the issue cannot be created.
    """
    locks = locks if locks is not None else thread_locks
    thread_id = str(thread.id)

    async with locks.hold(thread_id):
        existing = store.get_mapping_by_discord_thread(thread_id)
        if existing is not None:
            logger.info("Thread %s already synced to %s, skipping",
                        thread_id, existing.linear_identifier)
            return existing

        if thread.parent_id is None:
            raise SyncError(f"Thread {thread_id} has no parent channel")

        message = await fetch_first_message(thread, delay=retry_delay)
        body = message.content if message is not None and message.content else EMPTY_BODY

        label_ids = collect_label_ids(thread, channel_config)
        attachment_links = await upload_attachments(linear, message)
        description = build_description(
            body, thread_url(channel_config.guild_id, thread.parent_id, thread.id), attachment_links,
        )

        issue = await linear.create_issue(
            channel_config.linear_team_id, thread.name, description, label_ids,
        )
        logger.info("Created Linear issue %s for thread %s", issue.identifier, thread_id)

        try:
            mapping = store.create_mapping(
                thread_id, issue.id, issue.identifier, channel_config.channel_type,
            )
        except DuplicateMappingError:
            logger.warning("Mapping for thread %s was created concurrently", thread_id)
            existing = store.get_mapping_by_discord_thread(thread_id)
            if existing is None:
                raise
            return existing

        await thread.send(f"Tracked as **[{issue.identifier}]({issue.url})** in Linear")
        return mapping
