"""Shared fixtures and Discord fakes."""

from __future__ import annotations

import itertools
from unittest.mock import AsyncMock

import discord
import pytest

from discord_linear_bot.config import BotConfig, ChannelConfig
from discord_linear_bot.linear.client import LinearClient
from discord_linear_bot.models import ChannelType, LinearIssue
from discord_linear_bot.storage.sqlite_store import SQLiteSyncStore

GUILD_ID = 1000
FEATURE_CHANNEL_ID = 2000
BUG_CHANNEL_ID = 3000

_ENV_VARS = (
    "DISCORD_TOKEN", "LINEAR_API_KEY", "DATABASE_URL", "POLL_INTERVAL_SECS", "LOG_LEVEL",
    "DLBOT_CONFIG", "DISCORD_GUILD_ID", "FEATURE_REQUESTS_CHANNEL_ID",
    "BUG_REPORTS_CHANNEL_ID", "LINEAR_TEAM_ID", "LINEAR_FEATURE_LABEL_ID",
    "LINEAR_BUG_LABEL_ID", "TAG_LABEL_MAP",
)

_message_ids = itertools.count(900000)


class FakeAttachment:
    def __init__(self, filename: str, url: str | None = None):
        self.filename = filename
        self.url = url or f"https://cdn.discordapp.com/attachments/{filename}"


class FakeMessage:
    def __init__(self, content: str = "", attachments=None, id: int | None = None):
        self.id = id if id is not None else next(_message_ids)
        self.content = content
        self.attachments = list(attachments or [])


class FakeTag:
    def __init__(self, id: int, name: str = "tag"):
        self.id = id
        self.name = name


class FakeThread:
    """Stands in for discord.Thread: history() and send() only."""

    def __init__(self, id: int, parent_id: int | None = FEATURE_CHANNEL_ID,
                 name: str = "A thread", messages=None, applied_tags=None):
        self.id = id
        self.parent_id = parent_id
        self.name = name
        self.messages = [FakeMessage("Thread body")] if messages is None else list(messages)
        self.applied_tags = list(applied_tags or [])
        self.sent: list[str] = []
        self.history_calls = 0
        self.fail_send = False

    async def history(self, limit=None, oldest_first=False):
        self.history_calls += 1
        for message in self.messages[:limit]:
            yield message

    async def send(self, content: str) -> FakeMessage:
        if self.fail_send:
            raise discord.DiscordException("send failed")
        self.sent.append(content)
        return FakeMessage(content)


class FakeGuild:
    def __init__(self, id: int = GUILD_ID, threads=None):
        self.id = id
        self.threads = list(threads or [])

    async def active_threads(self):
        return list(self.threads)


class FakeClient:
    """Stands in for discord.Client channel and guild lookups."""

    def __init__(self, threads=None, guilds=None):
        self.channels = {t.id: t for t in threads or []}
        self.guilds = {g.id: g for g in guilds or []}
        self.fetched_channels: list[int] = []

    def get_channel(self, channel_id: int):
        return None

    async def fetch_channel(self, channel_id: int):
        self.fetched_channels.append(channel_id)
        if channel_id not in self.channels:
            raise discord.DiscordException(f"Unknown channel {channel_id}")
        return self.channels[channel_id]

    def get_guild(self, guild_id: int):
        return self.guilds.get(guild_id)

    async def fetch_guild(self, guild_id: int):
        raise discord.DiscordException(f"Unknown guild {guild_id}")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep the host environment and any .env file out of tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def store(tmp_path):
    """Create a temporary sync store for testing."""
    s = SQLiteSyncStore(str(tmp_path / "bot.db"))
    yield s
    s.close()


@pytest.fixture
def feature_channel() -> ChannelConfig:
    return ChannelConfig(
        guild_id=GUILD_ID,
        discord_channel_id=FEATURE_CHANNEL_ID,
        channel_type=ChannelType.FEATURE,
        linear_team_id="team-1",
        linear_label_id="label-feature",
        tag_label_map={"77": "label-ui"},
    )


@pytest.fixture
def bug_channel() -> ChannelConfig:
    return ChannelConfig(
        guild_id=GUILD_ID,
        discord_channel_id=BUG_CHANNEL_ID,
        channel_type=ChannelType.BUG,
        linear_team_id="team-1",
        linear_label_id="label-bug",
    )


@pytest.fixture
def bot_config(feature_channel, bug_channel) -> BotConfig:
    return BotConfig(
        discord_token="token",
        linear_api_key="key",
        channels=[feature_channel, bug_channel],
    )


@pytest.fixture
def linear():
    """LinearClient mock that hands out sequential issues."""
    client = AsyncMock(spec=LinearClient)
    counter = itertools.count(1)

    async def create_issue(team_id, title, description, label_ids):
        n = next(counter)
        return LinearIssue(
            id=f"issue-{n}", identifier=f"ENG-{n}", title=title,
            url=f"https://linear.app/acme/issue/ENG-{n}",
        )

    client.create_issue.side_effect = create_issue
    client.get_updated_issues.return_value = []
    client.get_issue_comments.return_value = []
    return client
