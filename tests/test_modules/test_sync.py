"""Tests for the sync coordinator."""
import asyncio

import pytest

from offlinekit.config import features
from offlinekit.core.constants import (
    QUEUE_AUTO_SAVED_MIRROR,
    QUEUE_OFFLINE_MUTATIONS,
    QUEUE_PENDING_DELETIONS,
    QUEUE_PENDING_UPDATES,
    REASON_ERROR,
    REASON_NOT_FOUND,
    REASON_UNAVAILABLE,
    REASON_VALIDATION_FAILED,
)
from offlinekit.core.errors import Unavailable
from offlinekit.core.schemas import EntityType, QueueEntry
from offlinekit.offline.sync import SyncCoordinator, SyncState
from offlinekit.remote.memory import MemoryRemoteStore


def _create(temp_id, name, entity_type=EntityType.STUDENT):
    return QueueEntry.create(entity_type, temp_id, {"name": name})


@pytest.fixture
def coordinator(remote, queue):
    return SyncCoordinator(remote, queue)


def _replayable(queue, identity):
    counts = queue.pending_counts(identity)
    return sum(counts[k] for k in (QUEUE_OFFLINE_MUTATIONS, QUEUE_PENDING_UPDATES,
                                   QUEUE_PENDING_DELETIONS))


class TestSyncPass:
    """Test a full drain and commit."""

    def test_all_succeed(self, coordinator, remote, queue, identity):
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_2", "Ben"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.attempted == 2
        assert report.succeeded == 2
        assert report.failed == 0
        assert remote.count(EntityType.STUDENT) == 2
        assert _replayable(queue, identity) == 0
        assert all(r.remote_id for r in report.results)

    def test_empty_queue(self, coordinator, remote, identity):
        report = asyncio.run(coordinator.sync(identity))

        assert report.attempted == 0
        assert report.finished_at is not None
        assert remote.calls == []

    def test_drain_order(self, coordinator, remote, queue, identity):
        """Test creates replay before updates, updates before deletes."""
        remote.seed(EntityType.STUDENT, "S1", {"name": "Asha"})
        remote.seed(EntityType.STUDENT, "S2", {"name": "Ben"})
        queue.append(identity, QUEUE_PENDING_DELETIONS, QueueEntry.delete(EntityType.STUDENT, "S2"))
        queue.append(identity, QUEUE_PENDING_UPDATES,
                     QueueEntry.update(EntityType.STUDENT, "S1", {"grade": "4"}))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Chen"))

        report = asyncio.run(coordinator.sync(identity))

        assert [r.operation for r in report.results] == ["create", "update", "delete"]

    def test_entity_types_follow_enum_order(self, coordinator, queue, identity):
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS,
                     _create("tmp_2", "Poem", entity_type=EntityType.CONTENT))

        report = asyncio.run(coordinator.sync(identity))

        assert [r.entity_type for r in report.results] == ["content", "student"]

    def test_state_returns_to_idle(self, coordinator, queue, identity):
        """Test DRAINING during replay and IDLE afterwards."""
        seen = []

        class WatchingRemote(MemoryRemoteStore):
            async def create(self, entity_type, payload):
                seen.append(coordinator.state)
                return await super().create(entity_type, payload)

        coordinator.remote = WatchingRemote()
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))

        asyncio.run(coordinator.sync(identity))

        assert seen == [SyncState.DRAINING]
        assert coordinator.state == SyncState.IDLE

    def test_marks_last_sync(self, coordinator, queue, identity):
        report = asyncio.run(coordinator.sync(identity))

        status = queue.get_sync_status(identity)
        assert status["last_sync_batch_id"] == report.batch_id
        assert status["last_sync_time"] is not None
        assert coordinator.last_report is report

    def test_emits_sync_receipt(self, coordinator, queue, identity, capsys):
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))

        asyncio.run(coordinator.sync(identity))

        out = capsys.readouterr().out
        assert '"receipt_type": "offline_sync"' in out
        assert '"succeeded": 1' in out

    def test_mirror_not_replayed(self, coordinator, remote, queue, identity):
        """Test the auto-saved mirror is neither replayed nor cleared."""
        queue.append(identity, QUEUE_AUTO_SAVED_MIRROR, _create("tmp_1", "Asha"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.attempted == 0
        assert remote.count(EntityType.STUDENT) == 0
        assert queue.size(identity, QUEUE_AUTO_SAVED_MIRROR) == 1

    def test_other_identity_untouched(self, coordinator, queue, identity, other_identity):
        queue.append(other_identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Ben"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.attempted == 0
        assert queue.size(other_identity, QUEUE_OFFLINE_MUTATIONS) == 1


class TestReplayFailures:
    """Test failed entries are reported and never stop the pass."""

    def test_not_found_delete(self, coordinator, remote, queue, identity):
        queue.append(identity, QUEUE_PENDING_DELETIONS, QueueEntry.delete(EntityType.STUDENT, "S404"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.failed == 1
        assert report.failures[0].reason == REASON_NOT_FOUND
        assert _replayable(queue, identity) == 0

    def test_failure_does_not_stop_pass(self, coordinator, remote, queue, identity):
        remote.fail_next(Unavailable("blip"))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_2", "Ben"))

        report = asyncio.run(coordinator.sync(identity))

        assert [r.status for r in report.results] == ["failed", "succeeded"]
        assert report.results[0].reason == REASON_UNAVAILABLE
        assert remote.count(EntityType.STUDENT) == 1

    def test_failed_entries_discarded_by_default(self, coordinator, remote, queue, identity):
        """Test the commit clears failed entries along with the rest."""
        remote.online = False
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.failed == 1
        assert report.retained == 0
        assert _replayable(queue, identity) == 0

    def test_retain_unavailable_failures(self, monkeypatch, coordinator, remote, queue, identity):
        """Test the retain flag keeps only `unavailable` failures for the next pass."""
        monkeypatch.setattr(features, "FEATURE_RETAIN_FAILED_REPLAYS", True)
        remote.fail_next(Unavailable("blip"))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_2", "Ben"))
        queue.append(identity, QUEUE_PENDING_DELETIONS, QueueEntry.delete(EntityType.STUDENT, "S404"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.retained == 1
        left = queue.list_all(identity, QUEUE_OFFLINE_MUTATIONS)
        assert [e.entity_id for e in left] == ["tmp_1"]
        assert queue.size(identity, QUEUE_PENDING_DELETIONS) == 0

        second = asyncio.run(coordinator.sync(identity))

        assert second.succeeded == 1
        assert remote.count(EntityType.STUDENT) == 2
        assert _replayable(queue, identity) == 0

    def test_validation_failure_never_retained(self, monkeypatch, queue, identity):
        monkeypatch.setattr(features, "FEATURE_RETAIN_FAILED_REPLAYS", True)
        remote = MemoryRemoteStore(required_fields={EntityType.STUDENT: ["grade"]})
        coordinator = SyncCoordinator(remote, queue)
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.failures[0].reason == REASON_VALIDATION_FAILED
        assert report.retained == 0
        assert _replayable(queue, identity) == 0

    def test_unexpected_error_tagged(self, coordinator, remote, queue, identity):
        remote.fail_next(RuntimeError("boom"))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_2", "Ben"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.results[0].reason == REASON_ERROR
        assert report.results[0].error == "boom"
        assert report.results[1].succeeded


class TestTempIdRemap:
    """Test updates and deletes aimed at a temporary id."""

    def test_update_follows_created_record(self, coordinator, remote, queue, identity):
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))
        queue.append(identity, QUEUE_PENDING_UPDATES,
                     QueueEntry.update(EntityType.STUDENT, "tmp_1", {"grade": "4"}))

        report = asyncio.run(coordinator.sync(identity))

        remote_id = report.results[0].remote_id
        assert report.failed == 0
        assert report.results[1].entity_id == remote_id
        assert remote.get(EntityType.STUDENT, remote_id).payload == {"name": "Asha", "grade": "4"}

    def test_delete_follows_created_record(self, coordinator, remote, queue, identity):
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))
        queue.append(identity, QUEUE_PENDING_DELETIONS, QueueEntry.delete(EntityType.STUDENT, "tmp_1"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.failed == 0
        assert remote.count(EntityType.STUDENT) == 0

    def test_remap_disabled(self, monkeypatch, coordinator, queue, identity):
        monkeypatch.setattr(features, "FEATURE_TEMP_ID_REMAP_ENABLED", False)
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))
        queue.append(identity, QUEUE_PENDING_UPDATES,
                     QueueEntry.update(EntityType.STUDENT, "tmp_1", {"grade": "4"}))

        report = asyncio.run(coordinator.sync(identity))

        assert report.results[1].reason == REASON_NOT_FOUND
        assert report.results[1].entity_id == "tmp_1"


class TestConcurrentAppends:
    """Test the commit only removes what the pass drained."""

    def test_entry_appended_during_drain_survives(self, queue, identity):
        class AppendingRemote(MemoryRemoteStore):
            async def create(self, entity_type, payload):
                record = await super().create(entity_type, payload)
                if payload["name"] == "Asha":
                    queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_late", "Late"))
                return record

        coordinator = SyncCoordinator(AppendingRemote(), queue)
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.attempted == 1
        left = queue.list_all(identity, QUEUE_OFFLINE_MUTATIONS)
        assert [e.entity_id for e in left] == ["tmp_late"]

    def test_purge_during_drain_leaves_no_scope(self, queue, identity):
        """Test a scope purged mid-pass is not recreated by the commit."""
        class PurgingRemote(MemoryRemoteStore):
            async def create(self, entity_type, payload):
                record = await super().create(entity_type, payload)
                queue.purge(identity)
                return record

        coordinator = SyncCoordinator(PurgingRemote(), queue)
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_2", "Ben"))

        report = asyncio.run(coordinator.sync(identity))

        assert report.attempted == 2
        assert report.finished_at is not None
        assert not queue.scope_dir(identity).exists()
        assert coordinator.state == SyncState.IDLE

    def test_overlapping_syncs_replay_once(self, coordinator, remote, queue, identity):
        """Test a second caller waits and finds nothing left to replay."""
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_1", "Asha"))
        queue.append(identity, QUEUE_OFFLINE_MUTATIONS, _create("tmp_2", "Ben"))

        async def both():
            return await asyncio.gather(coordinator.sync(identity), coordinator.sync(identity))

        first, second = asyncio.run(both())

        assert first.attempted + second.attempted == 2
        assert remote.count(EntityType.STUDENT) == 2
