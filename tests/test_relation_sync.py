"""
Tests for the relation syncer (video tags and section links).
"""

from unittest import mock

import pytest

from api.enums import SyncStage, SyncStrategy
from api.errors import RelationSyncError
from api.relation_sync import (
    SECTION_RELATION,
    TAG_RELATION,
    RelationSyncer,
    strategy_from_config,
)


@pytest.fixture(params=[SyncStrategy.REPLACE, SyncStrategy.DIFF])
def syncer(request, test_database):
    """Syncer over the test database, once per strategy."""
    return RelationSyncer(test_database, strategy=request.param)


class TestSyncTags:
    """Both strategies converge on the same stored tags."""

    @pytest.mark.asyncio
    async def test_sync_from_empty(self, syncer, sample_video):
        await syncer.sync_tags(sample_video["id"], ["driver", "tempo"])
        assert await syncer.fetch_tags(sample_video["id"]) == ["driver", "tempo"]

    @pytest.mark.asyncio
    async def test_sync_replaces_existing(self, syncer, sample_video_with_tags):
        """Stored tags become exactly the target set."""
        video_id = sample_video_with_tags["id"]
        await syncer.sync_tags(video_id, ["sand", "lob"])
        assert sorted(await syncer.fetch_tags(video_id)) == ["lob", "sand"]

    @pytest.mark.asyncio
    async def test_sync_empty_clears(self, syncer, sample_video_with_tags):
        video_id = sample_video_with_tags["id"]
        result = await syncer.sync_tags(video_id, [])
        assert result.inserted == 0
        assert await syncer.fetch_tags(video_id) == []

    @pytest.mark.asyncio
    async def test_sync_is_idempotent(self, syncer, sample_video):
        video_id = sample_video["id"]
        await syncer.sync_tags(video_id, ["a", "b"])
        await syncer.sync_tags(video_id, ["a", "b"])
        assert sorted(await syncer.fetch_tags(video_id)) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_duplicates_in_target_stored_once(self, syncer, sample_video):
        video_id = sample_video["id"]
        result = await syncer.sync_tags(video_id, ["chip", "chip", "pitch"])
        assert result.values == ["chip", "pitch"]
        assert sorted(await syncer.fetch_tags(video_id)) == ["chip", "pitch"]

    @pytest.mark.asyncio
    async def test_other_videos_untouched(self, syncer, test_database, sample_video_with_tags):
        from api.database import videos

        other_id = await test_database.execute(videos.insert().values(title="Other", video_ref="abc"))
        await syncer.sync_tags(other_id, ["putting"])
        assert sorted(await syncer.fetch_tags(sample_video_with_tags["id"])) == ["sand", "wedge"]
        assert await syncer.fetch_tags(other_id) == ["putting"]


class TestSyncSections:
    @pytest.mark.asyncio
    async def test_sync_sections(self, syncer, sample_video_with_tags, second_section):
        video_id = sample_video_with_tags["id"]
        await syncer.sync_sections(video_id, [second_section["id"]])
        assert await syncer.fetch_sections(video_id) == [second_section["id"]]

    @pytest.mark.asyncio
    async def test_sync_sections_multiple(self, syncer, sample_video, sample_section, second_section):
        video_id = sample_video["id"]
        await syncer.sync_sections(video_id, [second_section["id"], sample_section["id"], second_section["id"]])
        assert sorted(await syncer.fetch_sections(video_id)) == sorted([sample_section["id"], second_section["id"]])


class TestDiffStrategy:
    """DIFF touches only the rows that changed."""

    @pytest.mark.asyncio
    async def test_reports_added_and_removed(self, test_database, sample_video_with_tags):
        syncer = RelationSyncer(test_database, strategy=SyncStrategy.DIFF)
        result = await syncer.sync_tags(sample_video_with_tags["id"], ["wedge", "bounce"])
        assert result.strategy == SyncStrategy.DIFF
        assert result.removed == ["sand"]
        assert result.inserted == 1

    @pytest.mark.asyncio
    async def test_unchanged_rows_keep_their_ids(self, test_database, sample_video_with_tags):
        from api.database import tags

        video_id = sample_video_with_tags["id"]
        before = await test_database.fetch_one(tags.select().where(tags.c.tag == "wedge"))
        syncer = RelationSyncer(test_database, strategy=SyncStrategy.DIFF)
        await syncer.sync_tags(video_id, ["wedge", "bounce"])
        after = await test_database.fetch_one(tags.select().where(tags.c.tag == "wedge"))
        assert before["id"] == after["id"]

    @pytest.mark.asyncio
    async def test_collapses_stored_duplicates(self, test_database, sample_video):
        """Extra stored copies of a kept value are removed, like a replace sync would."""
        from api.database import tags

        video_id = sample_video["id"]
        for tag in ("a", "a", "b"):
            await test_database.execute(tags.insert().values(video_id=video_id, tag=tag))

        syncer = RelationSyncer(test_database, strategy=SyncStrategy.DIFF)
        result = await syncer.sync_tags(video_id, ["a"])

        assert await syncer.fetch_tags(video_id) == ["a"]
        assert result.removed == ["b"]

    @pytest.mark.asyncio
    async def test_single_copies_untouched(self, test_database, sample_video_with_tags):
        syncer = RelationSyncer(test_database, strategy=SyncStrategy.DIFF)
        with mock.patch.object(test_database, "execute") as execute:
            with mock.patch.object(test_database, "execute_many") as execute_many:
                await syncer.sync_tags(sample_video_with_tags["id"], ["sand", "wedge"])
        execute.assert_not_called()
        execute_many.assert_not_called()

    @pytest.mark.asyncio
    async def test_read_failure(self, sample_video):
        database = mock.MagicMock()
        database.fetch_all = mock.AsyncMock(side_effect=RuntimeError("relation does not exist"))
        syncer = RelationSyncer(database, strategy=SyncStrategy.DIFF)
        with pytest.raises(RelationSyncError) as exc_info:
            await syncer.sync_tags(sample_video["id"], ["a"])
        assert exc_info.value.stage == SyncStage.READ


class TestReplaceFailures:
    """No transaction wraps the steps: a failure leaves what completed."""

    @pytest.mark.asyncio
    async def test_delete_failure_keeps_previous_rows(self, test_database, sample_video_with_tags):
        video_id = sample_video_with_tags["id"]
        syncer = RelationSyncer(test_database, strategy=SyncStrategy.REPLACE)

        with mock.patch.object(test_database, "execute", side_effect=RuntimeError("permission denied")):
            with pytest.raises(RelationSyncError) as exc_info:
                await syncer.sync_tags(video_id, ["new"])

        assert exc_info.value.stage == SyncStage.DELETE
        assert exc_info.value.message == "permission denied"
        assert await syncer.fetch_tags(video_id) == ["sand", "wedge"]

    @pytest.mark.asyncio
    async def test_insert_failure_leaves_relation_empty(self, test_database, sample_video_with_tags):
        video_id = sample_video_with_tags["id"]
        syncer = RelationSyncer(test_database, strategy=SyncStrategy.REPLACE)

        with mock.patch.object(test_database, "execute_many", side_effect=RuntimeError("value too long")):
            with pytest.raises(RelationSyncError) as exc_info:
                await syncer.sync_tags(video_id, ["new"])

        assert exc_info.value.stage == SyncStage.INSERT
        assert exc_info.value.relation == "tags"
        assert await syncer.fetch_tags(video_id) == []

    @pytest.mark.asyncio
    async def test_empty_target_skips_insert(self, test_database, sample_video_with_tags):
        syncer = RelationSyncer(test_database, strategy=SyncStrategy.REPLACE)
        with mock.patch.object(test_database, "execute_many") as execute_many:
            await syncer.sync(SECTION_RELATION, sample_video_with_tags["id"], [])
        execute_many.assert_not_called()


class TestOwnerValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("owner_id", [None, "", "   "])
    async def test_empty_owner_rejected(self, test_database, owner_id):
        syncer = RelationSyncer(test_database)
        with pytest.raises(ValueError):
            await syncer.sync(TAG_RELATION, owner_id, ["a"])


class TestStrategyFromConfig:
    def test_known_values(self):
        assert strategy_from_config("replace") == SyncStrategy.REPLACE
        assert strategy_from_config("diff") == SyncStrategy.DIFF

    def test_unknown_value_falls_back(self, caplog):
        assert strategy_from_config("merge") == SyncStrategy.REPLACE
        assert "Invalid relation sync strategy 'merge'" in caplog.text
