"""Click CLI root and global flags for discord-linear-bot (dlbot)."""

from __future__ import annotations

import json
import logging
import sys

import click

from discord_linear_bot import __version__
from discord_linear_bot.config import BotConfig, parse_database_url
from discord_linear_bot.errors import ConfigError
from discord_linear_bot.storage.sqlite_store import SQLiteSyncStore, open_store

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class BotContext:
    """Shared context for all commands."""

    def __init__(self) -> None:
        self.config_path: str | None = None
        self.db_path: str | None = None
        self.config: BotConfig | None = None
        self.store: SQLiteSyncStore | None = None
        self.json_output: bool = False
        self.verbose: bool = False
        self.quiet: bool = False

    def load_config(self) -> BotConfig:
        """Load configuration once, exiting with an error if it is invalid."""
        if self.config is not None:
            return self.config
        try:
            self.config = BotConfig.load(self.config_path)
        except ConfigError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)
        if self.db_path:
            self.config.database = self.db_path
        return self.config

    def ensure_store(self) -> SQLiteSyncStore:
        """Open the sync database from the loaded configuration."""
        if self.store is not None:
            return self.store
        config = self.load_config()
        self.store = open_store(config.database)
        return self.store

    def close(self) -> None:
        if self.store is not None:
            self.store.close()
            self.store = None

    def setup_logging(self, level: str | None = None) -> None:
        if self.verbose:
            level = "DEBUG"
        elif self.quiet:
            level = "WARNING"
        logging.basicConfig(
            level=getattr(logging, (level or "INFO").upper(), logging.INFO),
            format=LOG_FORMAT,
        )

    def output(self, data: dict | list) -> None:
        """Output data as JSON."""
        click.echo(json.dumps(data, indent=2, default=str))


pass_ctx = click.make_pass_decorator(BotContext, ensure=True)


@click.group(invoke_without_command=True)
@click.option("--config", "config_path", envvar="DLBOT_CONFIG", help="Path to dlbot.yaml")
@click.option("--db", envvar="DATABASE_URL", help="Path to database file")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.version_option(__version__, prog_name="dlbot")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, db: str | None,
        json_output: bool, verbose: bool, quiet: bool) -> None:
    """dlbot - sync Discord forum threads with Linear issues"""
    bctx = ctx.ensure_object(BotContext)
    bctx.config_path = config_path
    bctx.verbose = verbose
    bctx.quiet = quiet
    if json_output:
        bctx.json_output = True
    if db:
        bctx.db_path = parse_database_url(db)
    ctx.call_on_close(bctx.close)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# --- Register all commands ---

from discord_linear_bot.commands.init_cmd import init_cmd
from discord_linear_bot.commands.run_cmd import run_cmd
from discord_linear_bot.commands.mappings import mappings
from discord_linear_bot.commands.show import show
from discord_linear_bot.commands.stats import stats
from discord_linear_bot.commands.backfill_cmd import backfill
from discord_linear_bot.commands.doctor import doctor
from discord_linear_bot.commands.release_cmd import release

cli.add_command(init_cmd, "init")
cli.add_command(run_cmd, "run")
cli.add_command(mappings, "mappings")
cli.add_command(mappings, "list")  # Alias
cli.add_command(show, "show")
cli.add_command(stats, "stats")
cli.add_command(backfill, "backfill")
cli.add_command(doctor, "doctor")
cli.add_command(release, "release")


def main() -> None:
    cli(auto_envvar_prefix="DLBOT")
