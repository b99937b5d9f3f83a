"""dlbot run - start the bot."""

from __future__ import annotations

import logging
import sys

import click

from discord_linear_bot.bot import run_bot
from discord_linear_bot.cli import BotContext, pass_ctx
from discord_linear_bot.errors import ConfigError

logger = logging.getLogger(__name__)


@click.command("run")
@click.option("--poll-interval", type=int, default=None, help="Seconds between Linear polls")
@pass_ctx
def run_cmd(ctx: BotContext, poll_interval: int | None) -> None:
    """Connect to Discord and keep threads and issues in sync."""
    config = ctx.load_config()
    if poll_interval is not None:
        config.poll_interval_secs = poll_interval
    ctx.setup_logging(config.log_level)

    try:
        config.require_runtime()
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    logger.info("Starting discord-linear-bot with %d channel(s)", len(config.channels))
    run_bot(config)
