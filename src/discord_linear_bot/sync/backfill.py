"""Startup backfill of forum threads created while the bot was offline."""

from __future__ import annotations

import asyncio
import logging
import sqlite3

import discord

from discord_linear_bot.config import BotConfig, ChannelConfig
from discord_linear_bot.errors import BotError
from discord_linear_bot.linear.client import LinearClient
from discord_linear_bot.storage.interface import SyncStore
from discord_linear_bot.sync.discord_to_linear import sync_discord_to_linear
from discord_linear_bot.sync.locks import KeyedLocks

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 0.5


def parse_cursor(value: str | None) -> int:
    """Backfill cursor as a thread id; missing or unparseable counts as 0."""
    if not value:
        return 0
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring unparseable backfill cursor %r", value)
        return 0


async def resolve_guild(client: discord.Client, guild_id: int) -> discord.Guild:
    guild = client.get_guild(guild_id)
    if guild is None:
        guild = await client.fetch_guild(guild_id)
    return guild


async def backfill_channel(client: discord.Client, store: SyncStore,
                           channel_config: ChannelConfig, linear: LinearClient,
                           delay: float = DEFAULT_DELAY,
                           locks: KeyedLocks | None = None) -> int:
    """Sync unmapped active threads of one channel, oldest first.

    The cursor is advanced after every successful thread so an interrupted
    pass resumes where it stopped. Returns the number of threads synced.
    """
    channel_id = str(channel_config.discord_channel_id)
    state = store.get_backfill_state(channel_id)
    cursor = parse_cursor(state.last_thread_id if state else None)

    guild = await resolve_guild(client, channel_config.guild_id)
    active = await guild.active_threads()
    threads = sorted(
        (t for t in active
         if t.parent_id == channel_config.discord_channel_id and t.id > cursor),
        key=lambda t: t.id,
    )
    logger.info("Backfill channel %s: %d candidate thread(s) after cursor %d",
                channel_id, len(threads), cursor)

    synced = 0
    for thread in threads:
        thread_id = str(thread.id)
        if store.get_mapping_by_discord_thread(thread_id) is not None:
            continue
        try:
            mapping = await sync_discord_to_linear(
                thread, channel_config, store, linear, locks=locks,
            )
        except (discord.DiscordException, BotError) as exc:
            logger.warning("Backfill failed for thread %s: %s", thread_id, exc)
        else:
            synced += 1
            store.upsert_backfill_state(channel_id, False, thread_id)
            logger.info("Backfilled thread %s as %s", thread_id, mapping.linear_identifier)
        await asyncio.sleep(delay)
    return synced


async def run_backfill(client: discord.Client, store: SyncStore, config: BotConfig,
                       linear: LinearClient, delay: float = DEFAULT_DELAY,
                       locks: KeyedLocks | None = None) -> int:
    """Backfill every configured channel that has not completed yet."""
    total = 0
    for channel_config in config.channels:
        channel_id = str(channel_config.discord_channel_id)
        state = store.get_backfill_state(channel_id)
        if state is not None and state.completed:
            logger.debug("Backfill already completed for channel %s", channel_id)
            continue

        logger.info("Starting backfill for %s channel %s",
                    channel_config.channel_type, channel_id)
        try:
            synced = await backfill_channel(
                client, store, channel_config, linear, delay=delay, locks=locks,
            )
        except (discord.DiscordException, BotError, sqlite3.Error) as exc:
            logger.warning("Backfill for channel %s failed: %s", channel_id, exc)
            continue

        store.upsert_backfill_state(channel_id, True, None)
        logger.info("Backfill complete for channel %s: %d thread(s) synced", channel_id, synced)
        total += synced
    return total
