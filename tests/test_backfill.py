"""Tests for startup backfill."""

import pytest

from discord_linear_bot.errors import LinearApiError
from discord_linear_bot.models import ChannelType
from discord_linear_bot.sync.backfill import parse_cursor, run_backfill

from conftest import BUG_CHANNEL_ID, FEATURE_CHANNEL_ID, FakeClient, FakeGuild, FakeThread


def _client(*threads):
    return FakeClient(threads=threads, guilds=[FakeGuild(threads=threads)])


class TestCursor:
    def test_missing(self):
        assert parse_cursor(None) == 0

    def test_numeric(self):
        assert parse_cursor("12345") == 12345

    def test_unparseable(self):
        assert parse_cursor("garbage") == 0


class TestRunBackfill:
    @pytest.mark.asyncio
    async def test_syncs_channel_threads_in_id_order(self, store, linear, bot_config):
        client = _client(
            FakeThread(30, name="third"),
            FakeThread(10, name="first"),
            FakeThread(20, parent_id=BUG_CHANNEL_ID, name="bug"),
            FakeThread(40, parent_id=9999, name="elsewhere"),
        )
        synced = await run_backfill(client, store, bot_config, linear, delay=0)

        assert synced == 3
        titles = [c.args[1] for c in linear.create_issue.call_args_list]
        assert titles == ["first", "third", "bug"]
        assert store.get_mapping_by_discord_thread("40") is None
        assert store.get_mapping_by_discord_thread("20").channel_type == ChannelType.BUG

        state = store.get_backfill_state(str(FEATURE_CHANNEL_ID))
        assert state.completed is True
        assert state.last_thread_id is None

    @pytest.mark.asyncio
    async def test_skips_mapped_threads(self, store, linear, bot_config):
        store.create_mapping("10", "issue-old", "ENG-0", ChannelType.FEATURE)
        client = _client(FakeThread(10), FakeThread(11))
        assert await run_backfill(client, store, bot_config, linear, delay=0) == 1
        assert linear.create_issue.await_count == 1

    @pytest.mark.asyncio
    async def test_resumes_after_cursor(self, store, linear, bot_config):
        store.upsert_backfill_state(str(FEATURE_CHANNEL_ID), False, "20")
        client = _client(FakeThread(10), FakeThread(20), FakeThread(30))
        await run_backfill(client, store, bot_config, linear, delay=0)

        assert store.get_mapping_by_discord_thread("10") is None
        assert store.get_mapping_by_discord_thread("20") is None
        assert store.get_mapping_by_discord_thread("30") is not None

    @pytest.mark.asyncio
    async def test_unparseable_cursor_starts_over(self, store, linear, bot_config):
        store.upsert_backfill_state(str(FEATURE_CHANNEL_ID), False, "garbage")
        client = _client(FakeThread(10))
        assert await run_backfill(client, store, bot_config, linear, delay=0) == 1

    @pytest.mark.asyncio
    async def test_completed_channel_is_skipped(self, store, linear, bot_config):
        store.upsert_backfill_state(str(FEATURE_CHANNEL_ID), True, None)
        store.upsert_backfill_state(str(BUG_CHANNEL_ID), True, None)
        client = _client(FakeThread(10))
        assert await run_backfill(client, store, bot_config, linear, delay=0) == 0
        linear.create_issue.assert_not_called()

    @pytest.mark.asyncio
    async def test_cursor_tracks_last_success(self, store, linear, feature_channel, bot_config):
        real_create = linear.create_issue.side_effect

        async def create(team_id, title, description, label_ids):
            if title == "fails":
                raise LinearApiError("boom")
            return await real_create(team_id, title, description, label_ids)

        linear.create_issue.side_effect = create
        bot_config.channels = [feature_channel]
        seen = []
        real_upsert = store.upsert_backfill_state

        def record(channel_id, completed, last_thread_id):
            seen.append((completed, last_thread_id))
            real_upsert(channel_id, completed, last_thread_id)

        store.upsert_backfill_state = record
        client = _client(FakeThread(10, name="ok"), FakeThread(20, name="fails"),
                         FakeThread(30, name="ok too"))
        assert await run_backfill(client, store, bot_config, linear, delay=0) == 2
        assert seen == [(False, "10"), (False, "30"), (True, None)]

    @pytest.mark.asyncio
    async def test_failing_channel_left_resumable(self, store, linear, bot_config):
        client = FakeClient(threads=[], guilds=[])  # guild lookup fails
        assert await run_backfill(client, store, bot_config, linear, delay=0) == 0
        assert store.get_backfill_state(str(FEATURE_CHANNEL_ID)) is None
        assert store.get_backfill_state(str(BUG_CHANNEL_ID)) is None
