"""dlbot show - display one mapping."""

from __future__ import annotations

import sys

import click

from discord_linear_bot.cli import BotContext, pass_ctx
from discord_linear_bot.models import SyncMapping
from discord_linear_bot.storage.interface import SyncStore
from discord_linear_bot.utils import format_age


def find_mapping(store: SyncStore, key: str) -> SyncMapping | None:
    """Look up a mapping by Discord thread id, Linear issue id or identifier."""
    mapping = store.get_mapping_by_discord_thread(key)
    if mapping is None:
        mapping = store.get_mapping_by_linear_issue(key)
    if mapping is None:
        for m in store.list_mappings():
            if m.linear_identifier.lower() == key.lower():
                return m
    return mapping


@click.command("show")
@click.argument("key")
@pass_ctx
def show(ctx: BotContext, key: str) -> None:
    """Show a mapping by thread id, issue id or identifier (e.g. ENG-42)."""
    store = ctx.ensure_store()
    mapping = find_mapping(store, key)
    if mapping is None:
        click.echo(f"Error: no mapping found for {key}", err=True)
        sys.exit(1)

    status = store.get_status_entry(mapping.linear_issue_id)
    comments = store.get_synced_comments(mapping.linear_issue_id)

    if ctx.json_output:
        data = mapping.to_dict()
        data["_status"] = status.to_dict() if status else None
        data["_synced_comments"] = [c.to_dict() for c in comments]
        ctx.output(data)
        return

    click.echo(f"{'─' * 60}")
    click.echo(f"  {mapping.linear_identifier}")
    click.echo(f"{'─' * 60}")
    click.echo(f"  Issue:    {mapping.linear_issue_id}")
    click.echo(f"  Thread:   {mapping.discord_thread_id}")
    click.echo(f"  Channel:  {mapping.channel_type}")
    click.echo(f"  Synced:   {format_age(mapping.created_at)}")
    if status:
        click.echo(f"  Status:   {status.status_name} ({format_age(status.updated_at)})")
    else:
        click.echo("  Status:   (not relayed yet)")

    if comments:
        click.echo(f"\n  Relayed comments ({len(comments)}):")
        for c in comments:
            click.echo(f"    [{format_age(c.created_at)}] {c.linear_comment_id} -> message {c.discord_message_id}")

    click.echo()
