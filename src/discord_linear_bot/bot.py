"""discord.py runtime wiring thread events, backfill and the poller together."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from typing import Optional

import discord

from discord_linear_bot.config import BotConfig
from discord_linear_bot.errors import BotError
from discord_linear_bot.linear.client import LinearClient
from discord_linear_bot.storage.interface import SyncStore
from discord_linear_bot.storage.sqlite_store import open_store
from discord_linear_bot.sync.backfill import run_backfill
from discord_linear_bot.sync.discord_to_linear import sync_discord_to_linear
from discord_linear_bot.sync.locks import KeyedLocks
from discord_linear_bot.sync.poller import LinearPoller

logger = logging.getLogger(__name__)

# Store calls block the gateway loop while waiting on a lock
BOT_BUSY_TIMEOUT_MS = 250


def default_intents() -> discord.Intents:
    intents = discord.Intents.default()
    intents.guilds = True
    intents.message_content = True
    return intents


class SyncBot(discord.Client):
    """Discord client that mirrors forum threads into Linear."""

    def __init__(self, config: BotConfig, store: SyncStore, linear: LinearClient,
                 intents: Optional[discord.Intents] = None, backfill_delay: float = 0.5):
        super().__init__(intents=intents or default_intents())
        self.config = config
        self.store = store
        self.linear = linear
        self.locks = KeyedLocks()
        self.backfill_delay = backfill_delay
        self.poller = LinearPoller(
            self, store, linear, config.unique_team_ids(), config.poll_interval_secs,
        )
        self._background: Optional[asyncio.Task] = None
        self._closing: Optional[asyncio.Task] = None

    async def setup_hook(self) -> None:
        self._background = asyncio.create_task(self._run_background(), name="dlbot-background")
        self._background.add_done_callback(self._on_background_done)

    async def _run_background(self) -> None:
        await self.wait_until_ready()
        try:
            synced = await run_backfill(
                self, self.store, self.config, self.linear,
                delay=self.backfill_delay, locks=self.locks,
            )
            logger.info("Backfill finished: %d thread(s) synced", synced)
        except (discord.DiscordException, BotError, sqlite3.Error) as exc:
            logger.error("Backfill failed, continuing with live sync: %s", exc)
        await self.poller.run()

    def _on_background_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or self.is_closed():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Linear poller crashed: %s", exc, exc_info=exc)
        else:
            logger.error("Linear poller exited unexpectedly")
        self._closing = asyncio.create_task(self.close())

    async def on_ready(self) -> None:
        logger.info("Connected to Discord as %s", self.user)
        for channel in self.config.channels:
            logger.info("Monitoring %s channel %s -> team %s",
                        channel.channel_type, channel.discord_channel_id, channel.linear_team_id)

    async def on_thread_create(self, thread: discord.Thread) -> None:
        if thread.parent_id is None:
            return
        channel_config = self.config.channel_config(thread.parent_id)
        if channel_config is None:
            return

        logger.info("New thread %s (%r) in %s channel",
                    thread.id, thread.name, channel_config.channel_type)
        try:
            await sync_discord_to_linear(
                thread, channel_config, self.store, self.linear, locks=self.locks,
            )
        except (discord.DiscordException, BotError, sqlite3.Error) as exc:
            logger.error("Failed to sync thread %s to Linear: %s", thread.id, exc)

    async def close(self) -> None:
        self.poller.stop()
        if self._background is not None and not self._background.done():
            self._background.cancel()
        await super().close()
        await self.linear.aclose()


def run_bot(config: BotConfig) -> None:
    """Open the store, build the clients and run until disconnected."""
    config.require_runtime()
    store = open_store(config.database, busy_timeout=BOT_BUSY_TIMEOUT_MS)
    logger.info("Database ready at %s (schema v%d)", store.path(), store.schema_version())
    try:
        linear = LinearClient(config.linear_api_key)
        bot = SyncBot(config, store, linear)
        # Logging is configured by the CLI
        bot.run(config.discord_token, log_handler=None)
    finally:
        store.close()
