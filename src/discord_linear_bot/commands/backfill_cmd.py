"""dlbot backfill - inspect and reset startup backfill progress."""

from __future__ import annotations

import sys

import click

from discord_linear_bot.cli import BotContext, pass_ctx
from discord_linear_bot.utils import format_backfill_state


@click.group("backfill")
def backfill() -> None:
    """Inspect or reset per-channel backfill progress."""


@backfill.command("status")
@pass_ctx
def backfill_status(ctx: BotContext) -> None:
    """Show backfill progress for configured and recorded channels."""
    config = ctx.load_config()
    store = ctx.ensure_store()

    states = {s.channel_id: s for s in store.list_backfill_states()}
    channel_ids = [str(c.discord_channel_id) for c in config.channels]
    channel_ids += sorted(cid for cid in states if cid not in channel_ids)

    if ctx.json_output:
        ctx.output([
            states[cid].to_dict() if cid in states else {"channel_id": cid, "completed": False}
            for cid in channel_ids
        ])
        return

    if not channel_ids:
        click.echo("No channels configured.")
        return

    for cid in channel_ids:
        channel = config.channel_config(int(cid)) if cid.isdigit() else None
        label = channel.channel_type if channel else "unconfigured"
        click.echo(f"  {cid:<20} {label:<12} {format_backfill_state(states.get(cid))}")


@backfill.command("reset")
@click.argument("channel_ids", nargs=-1)
@click.option("--all", "reset_all", is_flag=True, help="Reset every recorded channel")
@pass_ctx
def backfill_reset(ctx: BotContext, channel_ids: tuple[str, ...], reset_all: bool) -> None:
    """Forget backfill progress so the next start scans CHANNEL_IDS again."""
    store = ctx.ensure_store()

    if reset_all:
        targets = [s.channel_id for s in store.list_backfill_states()]
    else:
        targets = list(channel_ids)
    if not targets:
        click.echo("Error: give one or more channel ids, or --all", err=True)
        sys.exit(1)

    reset = [cid for cid in targets if store.reset_backfill_state(cid)]

    if ctx.json_output:
        ctx.output({"reset": reset})
        return

    for cid in targets:
        if cid in reset:
            click.echo(f"Reset backfill for channel {cid}")
        elif not ctx.quiet:
            click.echo(f"No backfill progress recorded for channel {cid}")
