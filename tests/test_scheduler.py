"""
Tests for the debounced sync scheduler.
"""

import asyncio
import unittest

from knowledge_hub.models import BlockKind, SyncConfig, SyncStatus
from knowledge_hub.store import WorkspaceStore
from knowledge_hub.sync import RemoteRequestError, SyncScheduler

DEBOUNCE_MS = 20
SETTLE = 0.15


class FakeClient:
    """Records commit_batch calls; can fail or block until released."""

    def __init__(self):
        self.batches = []
        self.error = None
        self.gate = None
        self.closed = False

    async def commit_batch(self, files, message=None):
        self.batches.append({f.path: f.content for f in files})
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return f"commit{len(self.batches)}"

    async def aclose(self):
        self.closed = True


class FakeDatabase:
    def __init__(self):
        self.runs = []

    def log_sync_run(self, **kwargs):
        self.runs.append(kwargs)


class SchedulerTestCase(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.store = WorkspaceStore()
        self.workspace = self.store.add_workspace(name="Personal")
        self.notes = self.store.add_block(BlockKind.NOTES, self.workspace.id, name="Notes")

        self.client = FakeClient()
        self.database = FakeDatabase()
        self.synced_at = []
        self.config = SyncConfig(token="t", repository="octo/notes", debounce_ms=DEBOUNCE_MS)
        self.scheduler = SyncScheduler(
            self.store,
            self.config,
            client_factory=lambda config: self.client,
            database=self.database,
            on_synced=self.synced_at.append,
        )
        self.statuses = []
        self.scheduler.subscribe(lambda state: self.statuses.append(state.status))

    async def asyncTearDown(self):
        await self.scheduler.aclose()

    async def settle(self):
        await asyncio.sleep(SETTLE)
        await self.scheduler.wait_idle()

    @property
    def state(self):
        return self.scheduler.state


class TestDebounce(SchedulerTestCase):

    async def test_burst_collapses_into_one_commit_with_latest_state(self):
        note = self.store.add_item(self.notes.id, name="Draft", content="v0")
        for i in range(1, 10):
            self.store.update_item(note.id, content=f"v{i}")

        self.assertEqual(self.state.pending_changes, 10)
        self.assertEqual(self.state.status, SyncStatus.PENDING)
        await self.settle()

        self.assertEqual(len(self.client.batches), 1)
        self.assertTrue(self.client.batches[0]["Personal/Notes/Draft.md"].endswith("v9"))

    async def test_success_resets_pending_and_records_time(self):
        self.store.add_item(self.notes.id, name="A")
        await self.settle()

        self.assertEqual(self.state.status, SyncStatus.SYNCED)
        self.assertEqual(self.state.pending_changes, 0)
        self.assertIsNotNone(self.config.last_synced_at)
        self.assertEqual(self.synced_at, [self.config.last_synced_at])
        self.assertEqual(self.statuses[-2:], [SyncStatus.SYNCING, SyncStatus.SYNCED])
        self.assertTrue(self.database.runs[0]["success"])
        self.assertEqual(self.database.runs[0]["commit_sha"], "commit1")

    async def test_whole_tree_is_sent_every_cycle(self):
        self.store.add_item(self.notes.id, name="A")
        await self.settle()
        self.store.add_item(self.notes.id, name="B")
        await self.settle()

        self.assertEqual(len(self.client.batches), 2)
        self.assertIn("Personal/Notes/A.md", self.client.batches[1])
        self.assertIn("Personal/Notes/B.md", self.client.batches[1])

    async def test_rearming_cancels_the_previous_timer(self):
        self.store.add_item(self.notes.id, name="A")
        await asyncio.sleep(DEBOUNCE_MS / 2000)
        self.store.add_item(self.notes.id, name="B")
        await asyncio.sleep(DEBOUNCE_MS / 2000)
        self.store.add_item(self.notes.id, name="C")
        self.assertEqual(self.client.batches, [])

        await self.settle()

        self.assertEqual(len(self.client.batches), 1)

    async def test_mutations_ignored_when_auto_sync_disabled(self):
        self.config.auto_sync = False
        self.store.add_item(self.notes.id, name="A")
        await self.settle()

        self.assertEqual(self.state.pending_changes, 0)
        self.assertFalse(self.scheduler.has_pending_timer)
        self.assertEqual(self.client.batches, [])

    async def test_mutations_ignored_when_not_configured(self):
        self.scheduler.update_config(SyncConfig(repository="octo/notes"))
        self.store.add_item(self.notes.id, name="A")

        self.assertEqual(self.state.pending_changes, 0)
        self.assertFalse(self.scheduler.has_pending_timer)


class TestFailures(SchedulerTestCase):

    async def test_failure_preserves_pending_count(self):
        self.client.error = RemoteRequestError(500, "Internal Server Error")
        self.store.add_item(self.notes.id, name="A")
        self.store.add_item(self.notes.id, name="B")
        before = self.state.pending_changes

        await self.settle()

        self.assertEqual(self.state.status, SyncStatus.ERROR)
        self.assertEqual(self.state.pending_changes, before)
        self.assertIn("500", self.state.last_error)
        self.assertIsNone(self.config.last_synced_at)
        self.assertFalse(self.database.runs[0]["success"])

    async def test_unexpected_errors_are_contained(self):
        self.client.error = KeyError("sha")
        self.store.add_item(self.notes.id, name="A")

        await self.settle()

        self.assertEqual(self.state.status, SyncStatus.ERROR)
        self.assertEqual(self.state.pending_changes, 1)

    async def test_next_mutation_retries_the_backlog(self):
        self.client.error = RemoteRequestError(None, "timeout")
        self.store.add_item(self.notes.id, name="A")
        await self.settle()
        self.client.error = None

        self.store.add_item(self.notes.id, name="B")
        self.assertEqual(self.state.status, SyncStatus.PENDING)
        await self.settle()

        self.assertEqual(self.state.status, SyncStatus.SYNCED)
        self.assertEqual(self.state.pending_changes, 0)
        self.assertEqual(len(self.client.batches), 2)

    async def test_manual_retry(self):
        self.client.error = RemoteRequestError(503, "Service Unavailable")
        self.store.add_item(self.notes.id, name="A")
        await self.settle()
        self.client.error = None

        ok = await self.scheduler.sync_now()

        self.assertTrue(ok)
        self.assertEqual(self.state.status, SyncStatus.SYNCED)
        self.assertEqual(self.state.pending_changes, 0)

    async def test_failing_on_synced_hook_does_not_undo_the_commit(self):
        def read_only_config(synced_at):
            raise OSError("config.yaml is read-only")

        self.scheduler.on_synced = read_only_config
        self.store.add_item(self.notes.id, name="A")

        ok = await self.scheduler.sync_now()

        self.assertTrue(ok)
        self.assertEqual(len(self.client.batches), 1)
        self.assertEqual(self.state.status, SyncStatus.SYNCED)
        self.assertEqual(self.state.pending_changes, 0)
        self.assertFalse(self.scheduler.is_syncing)
        self.assertTrue(self.database.runs[0]["success"])


class TestConcurrency(SchedulerTestCase):

    async def test_at_most_one_cycle_in_flight(self):
        self.client.gate = asyncio.Event()
        self.store.add_item(self.notes.id, name="A")
        await asyncio.sleep(SETTLE)
        self.assertTrue(self.scheduler.is_syncing)

        # A timer firing now must not start a second cycle
        self.scheduler._on_timer()
        await asyncio.sleep(0)
        self.assertEqual(len(self.client.batches), 1)

        self.client.gate.set()
        await self.settle()
        self.assertEqual(len(self.client.batches), 1)

    async def test_mutations_during_a_cycle_are_picked_up_next(self):
        self.client.gate = asyncio.Event()
        self.store.add_item(self.notes.id, name="A")
        await asyncio.sleep(SETTLE)
        self.assertEqual(self.state.status, SyncStatus.SYNCING)

        self.store.add_item(self.notes.id, name="Late")
        self.store.add_item(self.notes.id, name="Later")
        self.assertEqual(self.state.pending_changes, 3)
        self.assertFalse(self.scheduler.has_pending_timer)
        self.assertNotIn("Personal/Notes/Late.md", self.client.batches[0])

        self.client.gate.set()
        await self.scheduler.wait_idle()
        self.assertEqual(self.state.pending_changes, 2)
        self.assertEqual(self.state.status, SyncStatus.PENDING)

        await self.settle()
        self.assertEqual(len(self.client.batches), 2)
        self.assertIn("Personal/Notes/Later.md", self.client.batches[1])
        self.assertEqual(self.state.pending_changes, 0)
        self.assertEqual(self.state.status, SyncStatus.SYNCED)


class TestConnectivity(SchedulerTestCase):

    async def test_offline_scenario(self):
        self.store.add_item(self.notes.id, name="A")
        self.assertEqual(self.state.pending_changes, 1)

        self.scheduler.set_online(False)
        self.assertEqual(self.state.status, SyncStatus.OFFLINE)
        self.assertFalse(self.scheduler.has_pending_timer)
        await self.settle()
        self.assertEqual(self.client.batches, [])

        self.scheduler.set_online(True)
        self.assertEqual(self.state.status, SyncStatus.OFFLINE)
        await self.settle()
        self.assertEqual(self.client.batches, [])

        self.store.add_item(self.notes.id, name="B")
        self.assertEqual(self.state.status, SyncStatus.PENDING)
        await self.settle()
        self.assertEqual(len(self.client.batches), 1)
        self.assertEqual(self.state.status, SyncStatus.SYNCED)

    async def test_mutations_while_offline_are_counted_but_not_synced(self):
        self.scheduler.set_online(False)
        self.store.add_item(self.notes.id, name="A")
        self.store.add_item(self.notes.id, name="B")
        await self.settle()

        self.assertEqual(self.state.pending_changes, 2)
        self.assertEqual(self.state.status, SyncStatus.OFFLINE)
        self.assertEqual(self.client.batches, [])

    async def test_manual_sync_is_skipped_while_offline(self):
        self.store.add_item(self.notes.id, name="A")
        self.scheduler.set_online(False)

        ok = await self.scheduler.sync_now()

        self.assertFalse(ok)
        self.assertEqual(self.client.batches, [])
        self.assertEqual(self.state.status, SyncStatus.OFFLINE)
        self.assertEqual(self.state.pending_changes, 1)
        self.assertEqual(self.database.runs, [])

    async def test_close_stops_listening(self):
        self.scheduler.close()
        self.store.add_item(self.notes.id, name="A")
        await self.settle()

        self.assertEqual(self.state.pending_changes, 0)
        self.assertEqual(self.client.batches, [])
