"""dlbot stats - show sync statistics."""

from __future__ import annotations

import click

from discord_linear_bot.cli import BotContext, pass_ctx


@click.command("stats")
@pass_ctx
def stats(ctx: BotContext) -> None:
    """Show sync statistics."""
    s = ctx.ensure_store().get_statistics()

    if ctx.json_output:
        ctx.output(s.to_dict())
        return

    click.echo("Sync Statistics")
    click.echo("─" * 40)
    click.echo(f"  Mappings:         {s.total_mappings}")
    click.echo(f"  Cached statuses:  {s.cached_statuses}")
    click.echo(f"  Relayed comments: {s.synced_comments}")
    click.echo(f"  Backfill done:    {s.backfill_completed}")
    if s.backfill_in_progress:
        click.echo(f"  Backfill pending: {s.backfill_in_progress}")

    if s.by_channel_type:
        click.echo("\nBy Channel Type:")
        for t, count in sorted(s.by_channel_type.items()):
            click.echo(f"  {t:<12} {count}")

    if s.by_status:
        click.echo("\nBy Status:")
        for name, count in sorted(s.by_status.items()):
            click.echo(f"  {name:<20} {count}")
