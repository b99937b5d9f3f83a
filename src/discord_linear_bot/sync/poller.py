"""Linear status and comment poller.

Linear has no push channel to this bot, so issues updated since the last
successful poll are fetched on an interval and relayed to their threads.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime

import discord

from discord_linear_bot.errors import BotError, LinearApiError
from discord_linear_bot.linear.client import LinearClient
from discord_linear_bot.models import LinearIssueStatus, SyncMapping, format_timestamp, now_utc
from discord_linear_bot.storage.interface import SyncStore
from discord_linear_bot.sync.linear_to_discord import (
    relay_comment_to_discord, sync_status_to_discord,
)

logger = logging.getLogger(__name__)

_RELAY_ERRORS = (discord.DiscordException, BotError, sqlite3.Error)


class LinearPoller:
    """Polls Linear teams and relays status changes and new comments."""

    def __init__(self, client: discord.Client, store: SyncStore, linear: LinearClient,
                 team_ids: list[str], interval_secs: float,
                 since: datetime | None = None):
        self.client = client
        self.store = store
        self.linear = linear
        self.team_ids = list(team_ids)
        self.interval_secs = interval_secs
        self.last_poll = format_timestamp(since or now_utc())
        self.running = False

        self._polls = 0
        self._failed_polls = 0
        self._statuses_relayed = 0
        self._comments_relayed = 0
        self._errors = 0
        self._last_success: datetime | None = None

    async def poll_once(self) -> int:
        """Run one poll across all teams. Returns the number of messages posted."""
        started = now_utc()
        all_fetched = True
        posted = 0

        for team_id in self.team_ids:
            try:
                issues = await self.linear.get_updated_issues(team_id, self.last_poll)
            except LinearApiError as exc:
                logger.error("Failed to poll Linear team %s: %s", team_id, exc)
                all_fetched = False
                continue
            logger.debug("Team %s: %d issues updated since %s",
                         team_id, len(issues), self.last_poll)
            for issue in issues:
                posted += await self._process_issue(issue)

        self._polls += 1
        if all_fetched:
            self.last_poll = format_timestamp(started)
            self._last_success = started
        else:
            self._failed_polls += 1
        return posted

    async def _process_issue(self, issue: LinearIssueStatus) -> int:
        try:
            mapping = self.store.get_mapping_by_linear_issue(issue.id)
            cached = self.store.get_cached_status(issue.id) if mapping else None
        except sqlite3.Error as exc:
            logger.warning("Store lookup failed for %s: %s", issue.identifier, exc)
            self._errors += 1
            return 0
        if mapping is None:
            return 0

        posted = 0
        if issue.status_name and cached != issue.status_name:
            logger.info("Status change for %s: %s -> %s",
                        issue.identifier, cached, issue.status_name)
            try:
                await sync_status_to_discord(
                    self.client, self.store, issue.id, issue.identifier, issue.status_name,
                )
            except _RELAY_ERRORS as exc:
                logger.error("Failed to sync status for %s: %s", issue.identifier, exc)
                self._errors += 1
            else:
                self._statuses_relayed += 1
                posted += 1

        try:
            posted += await self._relay_comments(mapping)
        except _RELAY_ERRORS as exc:
            logger.error("Failed to relay comments for %s: %s", issue.identifier, exc)
            self._errors += 1
        return posted

    async def _relay_comments(self, mapping: SyncMapping) -> int:
        comments = await self.linear.get_issue_comments(mapping.linear_issue_id)
        relayed = 0
        for comment in comments:
            # Comments older than the mapping predate the thread link
            if comment.created_at is not None and comment.created_at < mapping.created_at:
                continue
            if await relay_comment_to_discord(self.client, self.store, mapping, comment):
                relayed += 1
        self._comments_relayed += relayed
        return relayed

    async def run(self) -> None:
        """Poll until stop() is called."""
        self.running = True
        logger.info("Starting Linear poller for %d team(s), interval %ss",
                    len(self.team_ids), self.interval_secs)
        while self.running:
            await asyncio.sleep(self.interval_secs)
            if not self.running:
                break
            await self.poll_once()
        logger.info("Linear poller stopped")

    def stop(self) -> None:
        self.running = False

    def get_status(self) -> dict:
        return {
            "running": self.running,
            "teams": list(self.team_ids),
            "interval_secs": self.interval_secs,
            "last_poll": self.last_poll,
            "last_success": format_timestamp(self._last_success),
            "polls": self._polls,
            "failed_polls": self._failed_polls,
            "statuses_relayed": self._statuses_relayed,
            "comments_relayed": self._comments_relayed,
            "errors": self._errors,
        }
