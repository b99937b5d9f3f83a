"""dlbot mappings - list synced threads."""

from __future__ import annotations

import click

from discord_linear_bot.cli import BotContext, pass_ctx
from discord_linear_bot.models import ChannelType
from discord_linear_bot.utils import format_mapping_row


@click.command("mappings")
@click.option("--type", "channel_type", type=click.Choice(ChannelType.all()),
              default=None, help="Filter by channel type")
@click.option("--limit", default=0, type=int, help="Max mappings to show")
@pass_ctx
def mappings(ctx: BotContext, channel_type: str | None, limit: int) -> None:
    """List thread <-> issue mappings, newest first."""
    store = ctx.ensure_store()
    rows = store.list_mappings(channel_type=channel_type, limit=limit)

    if ctx.json_output:
        data = []
        for m in rows:
            d = m.to_dict()
            d["status"] = store.get_cached_status(m.linear_issue_id)
            data.append(d)
        ctx.output(data)
        return

    if not rows:
        click.echo("No mappings found.")
        return

    for m in rows:
        click.echo(format_mapping_row(m, store.get_cached_status(m.linear_issue_id)))

    if not ctx.quiet:
        click.echo(f"\n{len(rows)} mapping(s)")
