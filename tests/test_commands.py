"""Tests for CLI commands using Click's test runner."""

import json
import os

import pytest
import yaml
from click.testing import CliRunner

from discord_linear_bot.cli import cli
from discord_linear_bot.models import ChannelType
from discord_linear_bot.storage.sqlite_store import open_store

from test_config import YAML


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def project(tmp_path):
    """A directory with dlbot.yaml and a populated database."""
    (tmp_path / "dlbot.yaml").write_text(YAML.replace("data/sync.db", "bot.db"))
    store = open_store(str(tmp_path / "bot.db"))
    store.create_mapping("111", "issue-1", "ENG-1", ChannelType.FEATURE)
    store.create_mapping("222", "issue-2", "ENG-2", ChannelType.BUG)
    store.upsert_cached_status("issue-1", "In Progress")
    store.insert_synced_comment("c1", "issue-1", "m1")
    store.upsert_backfill_state("10", True, None)
    store.upsert_backfill_state("20", False, "150")
    store.close()
    return tmp_path


class TestInit:
    def test_init(self, runner: CliRunner, tmp_path):
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0, result.output
        assert "Wrote dlbot.yaml" in result.output
        assert os.path.exists("bot.db")
        data = yaml.safe_load((tmp_path / "dlbot.yaml").read_text())
        assert data["poll-interval"] == 30
        assert len(data["channels"]) == 1

    def test_init_keeps_existing(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert "already exists" in result.output
        assert "team-a" in (project / "dlbot.yaml").read_text()

    def test_init_from_legacy_env(self, runner: CliRunner, tmp_path, monkeypatch):
        monkeypatch.setenv("DISCORD_GUILD_ID", "7")
        monkeypatch.setenv("BUG_REPORTS_CHANNEL_ID", "71")
        monkeypatch.setenv("LINEAR_TEAM_ID", "team")
        monkeypatch.setenv("LINEAR_BUG_LABEL_ID", "lb")
        result = runner.invoke(cli, ["--db", "custom.db", "init"])
        assert result.exit_code == 0, result.output
        data = yaml.safe_load((tmp_path / "dlbot.yaml").read_text())
        assert data["database"] == "custom.db"
        assert data["channels"][0]["channel-id"] == 71
        assert os.path.exists("custom.db")


class TestMappings:
    def test_list(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["mappings"])
        assert result.exit_code == 0, result.output
        assert "ENG-1" in result.output
        assert "ENG-2" in result.output
        assert "In Progress" in result.output
        assert "2 mapping(s)" in result.output

    def test_filter_json(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["--json", "mappings", "--type", "bug"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [m["linear_identifier"] for m in data] == ["ENG-2"]
        assert data[0]["status"] is None

    def test_empty(self, runner: CliRunner, tmp_path):
        result = runner.invoke(cli, ["mappings"])
        assert result.exit_code == 0
        assert "No mappings found." in result.output


class TestShow:
    @pytest.mark.parametrize("key", ["111", "issue-1", "eng-1"])
    def test_lookup(self, runner: CliRunner, project, key):
        result = runner.invoke(cli, ["show", key])
        assert result.exit_code == 0, result.output
        assert "ENG-1" in result.output
        assert "In Progress" in result.output
        assert "Relayed comments (1)" in result.output

    def test_json(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["--json", "show", "ENG-2"])
        data = json.loads(result.output)
        assert data["discord_thread_id"] == "222"
        assert data["_status"] is None
        assert data["_synced_comments"] == []

    def test_not_found(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["show", "ENG-404"])
        assert result.exit_code == 1
        assert "no mapping found" in result.output


class TestStats:
    def test_stats(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["stats"])
        assert result.exit_code == 0, result.output
        assert "Mappings:         2" in result.output
        assert "Backfill pending: 1" in result.output

    def test_stats_json(self, runner: CliRunner, project):
        data = json.loads(runner.invoke(cli, ["--json", "stats"]).output)
        assert data["by_channel_type"] == {"bug": 1, "feature": 1}
        assert data["synced_comments"] == 1


class TestBackfill:
    def test_status(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["backfill", "status"])
        assert result.exit_code == 0, result.output
        assert "completed" in result.output
        assert "in progress (after thread 150)" in result.output

    def test_reset(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["backfill", "reset", "10", "99"])
        assert result.exit_code == 0, result.output
        assert "Reset backfill for channel 10" in result.output
        assert "No backfill progress recorded for channel 99" in result.output
        store = open_store(str(project / "bot.db"))
        assert store.get_backfill_state("10") is None
        assert store.get_backfill_state("20") is not None
        store.close()

    def test_reset_all(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["--json", "backfill", "reset", "--all"])
        assert json.loads(result.output) == {"reset": ["10", "20"]}

    def test_reset_requires_target(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["backfill", "reset"])
        assert result.exit_code == 1


class TestDoctor:
    def test_reports_missing_secrets(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["doctor"])
        assert result.exit_code == 0, result.output
        assert "[ERROR] DISCORD_TOKEN not set" in result.output
        assert "schema v2" in result.output

    def test_all_ok(self, runner: CliRunner, project, monkeypatch):
        monkeypatch.setenv("DISCORD_TOKEN", "t")
        monkeypatch.setenv("LINEAR_API_KEY", "k")
        result = runner.invoke(cli, ["doctor"])
        assert "All checks passed!" in result.output


class TestRun:
    def test_refuses_incomplete_config(self, runner: CliRunner, project):
        result = runner.invoke(cli, ["run"])
        assert result.exit_code == 1
        assert "DISCORD_TOKEN not set" in result.output

    def test_starts_bot(self, runner: CliRunner, project, monkeypatch):
        started = []
        monkeypatch.setenv("DISCORD_TOKEN", "t")
        monkeypatch.setenv("LINEAR_API_KEY", "k")
        monkeypatch.setattr("discord_linear_bot.commands.run_cmd.run_bot", started.append)
        result = runner.invoke(cli, ["run", "--poll-interval", "5"])
        assert result.exit_code == 0, result.output
        assert started[0].poll_interval_secs == 5


def test_version(runner: CliRunner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "dlbot" in result.output
