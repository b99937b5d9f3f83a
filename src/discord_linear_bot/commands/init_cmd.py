"""dlbot init - write a starter dlbot.yaml and create the database."""

from __future__ import annotations

import os

import click

from discord_linear_bot.cli import BotContext, pass_ctx
from discord_linear_bot.config import CONFIG_YAML, BotConfig, ChannelConfig, channels_from_env
from discord_linear_bot.errors import ConfigError
from discord_linear_bot.models import ChannelType
from discord_linear_bot.storage.sqlite_store import open_store


@click.command("init")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@pass_ctx
def init_cmd(ctx: BotContext, force: bool) -> None:
    """Create dlbot.yaml and the sync database in the current directory."""
    config_path = ctx.config_path or CONFIG_YAML

    if os.path.exists(config_path) and not force:
        click.echo(f"Config already exists at {config_path} (use --force to overwrite)")
        return

    config = BotConfig()
    if ctx.db_path:
        config.database = ctx.db_path

    # Seed channels from a legacy .env layout when one is present
    try:
        config.channels = channels_from_env()
    except ConfigError as exc:
        click.echo(f"Warning: ignoring legacy channel variables: {exc}", err=True)
    if not config.channels:
        config.channels = [ChannelConfig(
            guild_id=0,
            discord_channel_id=0,
            channel_type=ChannelType.FEATURE,
            linear_team_id="TEAM_ID",
            linear_label_id="LABEL_ID",
        )]

    config.save(config_path)

    store = open_store(config.database)
    version = store.schema_version()
    store.close()

    click.echo(f"Wrote {config_path}")
    click.echo(f"  Database: {config.database} (schema v{version})")
    click.echo(f"  Channels: {len(config.channels)}")
    click.echo("Set DISCORD_TOKEN and LINEAR_API_KEY in the environment or .env, then run 'dlbot run'.")
