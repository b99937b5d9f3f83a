"""Configuration management for discord-linear-bot.

Handles:
- dlbot.yaml parsing (channels, database, poll interval)
- .env loading and environment variable overrides
- the legacy single-team environment layout (no channels in YAML)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any

import yaml
from dotenv import find_dotenv, load_dotenv

from discord_linear_bot.errors import ConfigError
from discord_linear_bot.models import ChannelType


CONFIG_YAML = "dlbot.yaml"
DEFAULT_DB_NAME = "bot.db"
DEFAULT_POLL_INTERVAL = 30
DEFAULT_LOG_LEVEL = "INFO"


@dataclass
class ChannelConfig:
    """One monitored Discord forum channel and where its posts go in Linear."""
    guild_id: int
    discord_channel_id: int
    channel_type: str
    linear_team_id: str
    linear_label_id: str
    tag_label_map: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict) -> ChannelConfig:
        try:
            guild_id = _parse_int(d["guild-id"], "guild-id")
            channel_id = _parse_int(d["channel-id"], "channel-id")
            channel_type = str(d["type"])
            team_id = str(d["linear-team-id"])
            label_id = str(d["linear-label-id"])
        except KeyError as exc:
            raise ConfigError(f"Channel entry missing key: {exc.args[0]}") from exc
        if not ChannelType.is_valid(channel_type):
            raise ConfigError(
                f"Invalid value for type: {channel_type!r} "
                f"(expected one of {', '.join(ChannelType.all())})"
            )
        tag_map = d.get("tag-label-map") or {}
        if not isinstance(tag_map, dict):
            raise ConfigError("Invalid value for tag-label-map: expected a mapping")
        return cls(
            guild_id=guild_id,
            discord_channel_id=channel_id,
            channel_type=channel_type,
            linear_team_id=team_id,
            linear_label_id=label_id,
            tag_label_map={str(k): str(v) for k, v in tag_map.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "guild-id": self.guild_id,
            "channel-id": self.discord_channel_id,
            "type": self.channel_type,
            "linear-team-id": self.linear_team_id,
            "linear-label-id": self.linear_label_id,
        }
        if self.tag_label_map:
            d["tag-label-map"] = dict(self.tag_label_map)
        return d


@dataclass
class BotConfig:
    """Runtime configuration from dlbot.yaml and the environment."""
    discord_token: str = ""
    linear_api_key: str = ""
    database: str = DEFAULT_DB_NAME
    poll_interval_secs: int = DEFAULT_POLL_INTERVAL
    log_level: str = DEFAULT_LOG_LEVEL
    channels: list[ChannelConfig] = field(default_factory=list)

    @classmethod
    def load(cls, config_path: str | None = None) -> BotConfig:
        """Load configuration.

        The YAML file is optional. Environment variables override it, and
        secrets are only ever read from the environment.
        """
        load_dotenv(find_dotenv(usecwd=True))
        if config_path is None:
            config_path = os.environ.get("DLBOT_CONFIG") or CONFIG_YAML

        cfg = cls()
        data: dict[str, Any] = {}
        if os.path.exists(config_path):
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ConfigError(f"{config_path}: expected a mapping at top level")
            cfg.database = str(data.get("database", DEFAULT_DB_NAME))
            cfg.poll_interval_secs = _parse_int(
                data.get("poll-interval", DEFAULT_POLL_INTERVAL), "poll-interval"
            )
            cfg.log_level = str(data.get("log-level", DEFAULT_LOG_LEVEL)).upper()
            cfg.channels = [ChannelConfig.from_dict(c) for c in data.get("channels") or []]

        # Environment variable overrides
        cfg.discord_token = os.environ.get("DISCORD_TOKEN", "")
        cfg.linear_api_key = os.environ.get("LINEAR_API_KEY", "")
        if os.environ.get("DATABASE_URL"):
            cfg.database = parse_database_url(os.environ["DATABASE_URL"])
        if os.environ.get("POLL_INTERVAL_SECS"):
            # Unparseable values fall back to the current setting
            try:
                cfg.poll_interval_secs = int(os.environ["POLL_INTERVAL_SECS"])
            except ValueError:
                pass
        if os.environ.get("LOG_LEVEL"):
            cfg.log_level = os.environ["LOG_LEVEL"].upper()

        if not cfg.channels:
            cfg.channels = channels_from_env()

        return cfg

    def save(self, config_path: str) -> None:
        """Save non-secret settings to a YAML file."""
        data: dict[str, Any] = {
            "database": self.database,
            "poll-interval": self.poll_interval_secs,
        }
        if self.log_level != DEFAULT_LOG_LEVEL:
            data["log-level"] = self.log_level
        data["channels"] = [c.to_dict() for c in self.channels]
        with open(config_path, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []
        if not self.discord_token:
            errors.append("DISCORD_TOKEN not set")
        if not self.linear_api_key:
            errors.append("LINEAR_API_KEY not set")
        if not self.channels:
            errors.append("no channels configured")
        if self.poll_interval_secs <= 0:
            errors.append("poll interval must be positive")
        seen: set[int] = set()
        for c in self.channels:
            if c.discord_channel_id in seen:
                errors.append(f"channel {c.discord_channel_id} configured more than once")
            seen.add(c.discord_channel_id)
        return errors

    def require_runtime(self) -> None:
        """Raise ConfigError unless everything needed to run the bot is present."""
        errors = self.validate()
        if errors:
            raise ConfigError("; ".join(errors))

    def channel_config(self, channel_id: int) -> ChannelConfig | None:
        for c in self.channels:
            if c.discord_channel_id == channel_id:
                return c
        return None

    def is_monitored_channel(self, channel_id: int) -> bool:
        return self.channel_config(channel_id) is not None

    def unique_team_ids(self) -> list[str]:
        return list(dict.fromkeys(c.linear_team_id for c in self.channels))

    def unique_guild_ids(self) -> list[int]:
        return list(dict.fromkeys(c.guild_id for c in self.channels))


def parse_database_url(url: str) -> str:
    """Turn a DATABASE_URL such as ``sqlite:bot.db`` into a file path."""
    for prefix in ("sqlite://", "sqlite:"):
        if url.startswith(prefix):
            return url[len(prefix):]
    return url


def channels_from_env() -> list[ChannelConfig]:
    """Build channel configs from the legacy single-team environment layout.

    Returns an empty list when the layout is not present at all.
    """
    feature = os.environ.get("FEATURE_REQUESTS_CHANNEL_ID")
    bug = os.environ.get("BUG_REPORTS_CHANNEL_ID")
    if not feature and not bug:
        return []

    guild_id = _parse_int(_required("DISCORD_GUILD_ID"), "DISCORD_GUILD_ID")
    team_id = _required("LINEAR_TEAM_ID")
    tag_label_map: dict[str, str] = {}
    raw_map = os.environ.get("TAG_LABEL_MAP")
    if raw_map:
        try:
            parsed = json.loads(raw_map)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid value for TAG_LABEL_MAP: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ConfigError("Invalid value for TAG_LABEL_MAP: expected a JSON object")
        tag_label_map = {str(k): str(v) for k, v in parsed.items()}

    channels = []
    if feature:
        channels.append(ChannelConfig(
            guild_id=guild_id,
            discord_channel_id=_parse_int(feature, "FEATURE_REQUESTS_CHANNEL_ID"),
            channel_type=ChannelType.FEATURE,
            linear_team_id=team_id,
            linear_label_id=_required("LINEAR_FEATURE_LABEL_ID"),
            tag_label_map=dict(tag_label_map),
        ))
    if bug:
        channels.append(ChannelConfig(
            guild_id=guild_id,
            discord_channel_id=_parse_int(bug, "BUG_REPORTS_CHANNEL_ID"),
            channel_type=ChannelType.BUG,
            linear_team_id=team_id,
            linear_label_id=_required("LINEAR_BUG_LABEL_ID"),
            tag_label_map=dict(tag_label_map),
        ))
    return channels


def _required(name: str) -> str:
    value = os.environ.get(name)
    if not value:
        raise ConfigError(f"Missing environment variable: {name}")
    return value


def _parse_int(value: Any, name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name}: not a valid integer: {value!r}") from exc
