"""dlbot release - tag a release and print deploy checksums."""

from __future__ import annotations

import sys

import click

from discord_linear_bot.errors import ReleaseError
from discord_linear_bot.release import REPO, Release


@click.command("release")
@click.argument("version")
@click.option("--repo", default=REPO, show_default=True, help="GitHub repository")
@click.option("--no-wait", is_flag=True, help="Push the tag without waiting for the build")
def release(version: str, repo: str, no_wait: bool) -> None:
    """Tag VERSION (e.g. 0.2.0), push it and wait for the release build."""
    try:
        Release(version, repo=repo).run(wait=not no_wait)
    except ReleaseError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
