"""Release helper: tag, push, wait for the CI build, print deploy checksums.

Preconditions (branch, clean tree, new tag) are checked before anything is
tagged or pushed. Every failure raises ReleaseError.
"""

from __future__ import annotations

import hashlib
import os
import re
import subprocess
import tempfile
import time
from typing import Callable, Optional

import click

from discord_linear_bot.errors import ReleaseError

REPO = "jsvana/discord-linear-bot"
RELEASE_BRANCH = "main"
MAX_ATTEMPTS = 60
POLL_INTERVAL_SECS = 15

_SEMVER_RE = re.compile(r"^[0-9]+\.[0-9]+\.[0-9]+$")

Runner = Callable[[list], "subprocess.CompletedProcess[str]"]


def run_command(args: list) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(args, capture_output=True, text=True, check=False)
    except FileNotFoundError as exc:
        raise ReleaseError(f"command not found: {args[0]}") from exc


def normalize_version(version: str) -> str:
    """Strip a leading ``v`` and require MAJOR.MINOR.PATCH."""
    if version.startswith("v"):
        version = version[1:]
    if not _SEMVER_RE.fullmatch(version):
        raise ReleaseError(
            f"version must be in semver format (e.g. 0.2.0), got: {version}"
        )
    return version


def artifact_name(tag: str) -> str:
    return f"discord-linear-bot-{tag}-x86_64-linux.tar.gz"


def sha256_file(path: str) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            digest.update(chunk)
    return digest.hexdigest()


def ansible_values(version: str, checksum: str) -> str:
    return (
        "=== Ansible values ===\n"
        f"  discord_linear_bot_version: \"{version}\"\n"
        f"  discord_linear_bot_checksum: \"sha256:{checksum}\""
    )


class Release:
    """One release of a given version.

    ``runner`` executes external commands and ``sleep`` waits between polls;
    both are replaceable so the flow can run without git or gh.
    """

    def __init__(self, version: str, repo: str = REPO, runner: Optional[Runner] = None,
                 sleep: Optional[Callable[[float], None]] = None,
                 echo: Callable[[str], None] = click.echo,
                 max_attempts: int = MAX_ATTEMPTS, interval: float = POLL_INTERVAL_SECS):
        self.version = normalize_version(version)
        self.tag = f"v{self.version}"
        self.repo = repo
        self.filename = artifact_name(self.tag)
        self.runner = runner or run_command
        self.sleep = sleep or time.sleep
        self.echo = echo
        self.max_attempts = max_attempts
        self.interval = interval

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        return self.runner(list(args))

    def _check(self, *args: str) -> str:
        result = self._run(*args)
        if result.returncode != 0:
            detail = (result.stderr or result.stdout or "").strip()
            raise ReleaseError(f"{' '.join(args)} failed: {detail}")
        return (result.stdout or "").strip()

    # --- Preconditions ---

    def check_branch(self) -> None:
        branch = self._check("git", "rev-parse", "--abbrev-ref", "HEAD")
        if branch != RELEASE_BRANCH:
            raise ReleaseError(f"must be on {RELEASE_BRANCH} branch (currently on {branch})")

    def check_clean(self) -> None:
        if self._run("git", "diff", "--quiet", "HEAD").returncode != 0:
            raise ReleaseError("working tree has uncommitted changes")

    def check_tag_absent(self) -> None:
        if self._run("git", "rev-parse", self.tag).returncode == 0:
            raise ReleaseError(f"tag {self.tag} already exists")

    # --- Steps ---

    def tag_and_push(self) -> None:
        self.echo(f"Tagging {self.tag} and pushing...")
        self._check("git", "tag", self.tag)
        self._check("git", "push", "origin", self.tag)

    def wait_for_release(self) -> None:
        self.echo("Waiting for release build to complete...")
        for attempt in range(1, self.max_attempts + 1):
            if self._run("gh", "release", "view", self.tag, "--repo", self.repo).returncode == 0:
                self.echo(f"Release {self.tag} is available.")
                return
            if attempt == self.max_attempts:
                break
            self.echo(f"  waiting... ({attempt}/{self.max_attempts})")
            self.sleep(self.interval)
        raise ReleaseError(
            "timed out waiting for release. Check manually: "
            f"https://github.com/{self.repo}/actions"
        )

    def download_checksum(self) -> str:
        """Download the release artifact to a temporary directory and hash it."""
        with tempfile.TemporaryDirectory() as tmpdir:
            self._check("gh", "release", "download", self.tag, "--repo", self.repo,
                        "--pattern", self.filename, "--dir", tmpdir)
            path = os.path.join(tmpdir, self.filename)
            if not os.path.exists(path):
                raise ReleaseError(f"release artifact {self.filename} was not downloaded")
            return sha256_file(path)

    def run(self, wait: bool = True) -> Optional[str]:
        """Run the release. Returns the artifact checksum when waiting."""
        self.check_branch()
        self.check_clean()
        self.check_tag_absent()
        self.tag_and_push()
        if not wait:
            self.echo(f"Pushed {self.tag}; not waiting for the release build.")
            return None
        self.wait_for_release()
        checksum = self.download_checksum()
        self.echo("")
        self.echo(ansible_values(self.version, checksum))
        return checksum
