"""
Debounced auto-sync for Knowledge Hub.

The scheduler listens to store mutations, collapses bursts of them into one
sync cycle after a quiet period, and runs at most one cycle at a time. A
cycle projects the full state and commits it to the remote in one batch.
Failures never escape the scheduler; they only change the sync status.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..models import SyncConfig, SyncState, SyncStatus, utc_now
from ..store import WorkspaceStore
from .github import GitHubClient
from .projector import project_store

StateListener = Callable[[SyncState], None]
ClientFactory = Callable[[SyncConfig], GitHubClient]


class SyncScheduler:
    """
    Owns the debounce timer and the in-flight flag for one store.

    Create one scheduler per store and keep it for the whole session; the
    timer and flag are never shared.
    """

    def __init__(self, store: WorkspaceStore, sync_config: SyncConfig,
                 client_factory: Optional[ClientFactory] = None,
                 database=None,
                 on_synced: Optional[Callable[[datetime], None]] = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Initialize the scheduler and subscribe it to store mutations.

        Args:
            store: Store whose state is synced
            sync_config: Sync settings
            client_factory: Builds the remote client (defaults to GitHubClient.from_config)
            database: Optional StateDatabase that records every cycle
            on_synced: Called with the timestamp of every successful cycle
            loop: Event loop for the debounce timer (defaults to the running loop)
        """
        self.store = store
        self.config = sync_config
        self.client_factory = client_factory or GitHubClient.from_config
        self.database = database
        self.on_synced = on_synced
        self.state = SyncState()

        self._loop = loop
        self._client: Optional[GitHubClient] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._in_flight = False
        self._cycle: Optional[asyncio.Task] = None
        self._listeners: List[StateListener] = []
        self._unsubscribe = store.subscribe(self.notify_change)

    # Observability

    def subscribe(self, listener: StateListener) -> None:
        """Register a callback receiving a copy of the state after each change."""
        self._listeners.append(listener)

    def _publish(self) -> None:
        snapshot = self.state.model_copy()
        for listener in list(self._listeners):
            listener(snapshot)

    def _set_status(self, status: SyncStatus) -> None:
        self.state.status = status
        self._publish()

    @property
    def is_syncing(self) -> bool:
        return self._in_flight

    @property
    def has_pending_timer(self) -> bool:
        return self._timer is not None

    # Inputs

    def notify_change(self) -> None:
        """
        Record one local mutation and (re)arm the debounce timer.
        """
        if not self.config.auto_sync or not self.config.is_configured:
            return

        self.state.pending_changes += 1

        if not self.state.is_online:
            self.state.status = SyncStatus.OFFLINE
            self._publish()
            return
        if self._in_flight:
            # The running cycle re-arms the timer for this backlog when it ends
            self._publish()
            return

        self.state.status = SyncStatus.PENDING
        self._publish()
        self._arm_timer()

    def set_online(self, online: bool) -> None:
        """
        Apply a connectivity change.

        Going offline cancels the timer and forces the offline status. Coming
        back online does not start a sync; the next mutation does.
        """
        self.state.is_online = online
        if not online:
            self._cancel_timer()
            self._set_status(SyncStatus.OFFLINE)
            logging.info("Went offline, auto-sync suspended")
        else:
            self._publish()
            logging.info("Back online")

    def update_config(self, sync_config: SyncConfig) -> None:
        """Replace the sync settings; the next cycle uses a fresh client."""
        self.config = sync_config
        self._drop_client()

    # Timer

    def _get_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _arm_timer(self) -> None:
        loop = self._get_loop()
        if loop is None:
            logging.debug("No running event loop, change left pending")
            return
        self._cancel_timer()
        self._timer = loop.call_later(self.config.debounce_seconds, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if self._in_flight:
            logging.debug("Sync already in progress, ignoring timer")
            return
        loop = self._get_loop()
        self._cycle = loop.create_task(self._run_cycle())

    # Cycle

    def _get_client(self) -> GitHubClient:
        if self._client is None:
            self._client = self.client_factory(self.config)
        return self._client

    def _drop_client(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            loop = self._get_loop()
            if loop is not None:
                loop.create_task(client.aclose())

    async def _run_cycle(self) -> bool:
        if self._in_flight:
            logging.debug("Sync already in progress, skipping cycle")
            return False

        self._in_flight = True
        started_at = utc_now()
        in_cycle = self.state.pending_changes
        file_count = 0
        self.state.last_error = None
        self._set_status(SyncStatus.SYNCING)

        try:
            files = project_store(self.store)
            file_count = len(files)
            logging.info(f"Syncing {file_count} files ({in_cycle} pending changes)")
            commit_sha = await self._get_client().commit_batch(files)
        except Exception as e:
            self._in_flight = False
            self.state.last_error = str(e)
            logging.error(f"Sync failed: {e}")
            self._set_status(SyncStatus.ERROR if self.state.is_online else SyncStatus.OFFLINE)
            self._record_run(started_at, file_count, False, None, str(e))
            return False

        self._in_flight = False
        finished_at = utc_now()
        self.state.pending_changes = max(0, self.state.pending_changes - in_cycle)
        self.config.last_synced_at = finished_at
        self._record_run(started_at, file_count, True, commit_sha, None)

        if not self.state.is_online:
            self._set_status(SyncStatus.OFFLINE)
        elif self.state.pending_changes > 0:
            # Changes made while the batch was in flight
            self._set_status(SyncStatus.PENDING)
            self._arm_timer()
        else:
            self._set_status(SyncStatus.SYNCED)

        if self.on_synced is not None:
            try:
                self.on_synced(finished_at)
            except Exception as hook_error:
                logging.warning(f"Sync succeeded but on_synced failed: {hook_error}")
        return True

    def _record_run(self, started_at: datetime, file_count: int, success: bool,
                    commit_sha: Optional[str], error_message: Optional[str]) -> None:
        if self.database is None:
            return
        try:
            self.database.log_sync_run(
                started_at=started_at,
                finished_at=utc_now(),
                file_count=file_count,
                success=success,
                commit_sha=commit_sha,
                error_message=error_message,
            )
        except Exception as log_error:
            logging.warning(f"Failed to record sync run: {log_error}")

    async def sync_now(self) -> bool:
        """
        Run one cycle immediately, e.g. as a manual retry after an error.

        Waits for a cycle already in flight before starting a new one. Does
        nothing while offline.

        Returns:
            True if the cycle committed successfully
        """
        if not self.state.is_online:
            logging.info("Offline, manual sync skipped")
            return False
        self._cancel_timer()
        await self.wait_idle()
        self._cycle = self._get_loop().create_task(self._run_cycle())
        return await self._cycle

    async def wait_idle(self) -> None:
        """Wait until no cycle is running."""
        while self._cycle is not None and not self._cycle.done():
            await asyncio.shield(self._cycle)

    def close(self) -> None:
        """Stop listening to the store and cancel the timer."""
        self._cancel_timer()
        self._unsubscribe()

    async def aclose(self) -> None:
        """Close, wait for an in-flight cycle and release the client."""
        self.close()
        await self.wait_idle()
        if self._client is not None:
            await self._client.aclose()
            self._client = None
