"""discord-linear-bot: mirror Discord forum posts into Linear issues."""

__version__ = "0.3.0"
