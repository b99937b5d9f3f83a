"""dlbot doctor - health checks."""

from __future__ import annotations

import os

import click

from discord_linear_bot.cli import BotContext, pass_ctx
from discord_linear_bot.storage.schema import SCHEMA_VERSION


@click.command("doctor")
@pass_ctx
def doctor(ctx: BotContext) -> None:
    """Check configuration and the sync database."""
    config = ctx.load_config()
    issues_found = 0

    click.echo("dlbot doctor")
    click.echo("─" * 40)

    for problem in config.validate():
        click.echo(f"  [ERROR] {problem}")
        issues_found += 1

    click.echo(f"  Channels: {len(config.channels)}")
    for c in config.channels:
        tags = f", {len(c.tag_label_map)} tag label(s)" if c.tag_label_map else ""
        click.echo(f"    {c.discord_channel_id} ({c.channel_type}) -> team {c.linear_team_id}{tags}")

    click.echo(f"  Poll interval: {config.poll_interval_secs}s")

    click.echo(f"  Database: {config.database}")
    if os.path.exists(config.database):
        store = ctx.ensure_store()
        version = store.schema_version()
        if version == SCHEMA_VERSION:
            click.echo(f"    [OK] schema v{version}")
        else:
            click.echo(f"    [WARN] schema v{version}, expected v{SCHEMA_VERSION}")
            issues_found += 1
        configured = {str(c.discord_channel_id) for c in config.channels}
        for state in store.list_backfill_states():
            if state.channel_id not in configured:
                click.echo(f"    [INFO] backfill state for unconfigured channel {state.channel_id}")
    else:
        click.echo("    [WARN] not found (will be created on first run)")

    click.echo()
    if issues_found:
        click.echo(f"Found {issues_found} issue(s)")
    else:
        click.echo("All checks passed!")
