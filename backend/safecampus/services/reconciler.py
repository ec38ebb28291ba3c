"""Local view of active incidents kept in sync with the store.

Change events never patch the view directly: each one triggers a full
snapshot of active incidents, which replaces the view wholesale. Snapshots are
numbered when requested, and one that finishes after a newer snapshot was
already applied is dropped.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Sequence

from safecampus.core.errors import StoreError
from safecampus.core.sos_policies import MSG_REFRESH_FAILED, RECENT_ALERTS_LIMIT, STATUS_ACTIVE
from safecampus.schemas.incident import IncidentRead
from safecampus.services.change_feed import ANY_EVENT, ChangeEvent, ChangeFeed, ConnectionStatus, Subscription
from safecampus.services.incident_store import INCIDENTS_TABLE, IncidentStore
from safecampus.services.notification_queue import NotificationQueue

logger = logging.getLogger(__name__)

SnapshotListener = Callable[[tuple[IncidentRead, ...]], None]


def _newest_first(incidents: Sequence[IncidentRead]) -> tuple[IncidentRead, ...]:
    return tuple(sorted(incidents, key=lambda i: (i.created_at, i.id), reverse=True))


class IncidentReconciler:
    def __init__(
        self,
        store: IncidentStore,
        feed: ChangeFeed,
        notifications: NotificationQueue,
        recent_limit: int = RECENT_ALERTS_LIMIT,
    ) -> None:
        self._store = store
        self._feed = feed
        self._notifications = notifications
        self._recent_limit = recent_limit
        self._incidents: tuple[IncidentRead, ...] = ()
        self._subscription: Subscription | None = None
        self._requested_seq = 0
        self._applied_seq = 0
        self._listeners: list[SnapshotListener] = []
        self._tasks: set[asyncio.Task] = set()

    @property
    def active_incidents(self) -> tuple[IncidentRead, ...]:
        return self._incidents

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.closed

    def recent_alerts(self, limit: int | None = None) -> list[IncidentRead]:
        """Active incidents, newest first, truncated to the most recent `limit`."""
        n = self._recent_limit if limit is None else limit
        return list(self._incidents[:n])

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    async def load_snapshot(self) -> tuple[IncidentRead, ...]:
        """Replace the view with the store's active incidents.

        On failure the previous view is kept and a retryable error is queued.
        """
        self._requested_seq += 1
        seq = self._requested_seq
        try:
            rows = await self._store.fetch_active_incidents()
        except StoreError as e:
            logger.warning("Snapshot %s failed, keeping %s incidents: %s", seq, len(self._incidents), e)
            self._notifications.enqueue(MSG_REFRESH_FAILED.format(error=e))
            return self._incidents

        if seq <= self._applied_seq:
            logger.debug("Snapshot %s superseded by %s", seq, self._applied_seq)
            return self._incidents
        self._applied_seq = seq

        by_id: dict[int, IncidentRead] = {}
        for row in rows:
            if row.status == STATUS_ACTIVE:
                by_id[row.id] = row
        snapshot = _newest_first(list(by_id.values()))
        changed = snapshot != self._incidents
        self._incidents = snapshot
        if changed:
            logger.debug("Snapshot %s applied: %s active incidents", seq, len(snapshot))
            for listener in list(self._listeners):
                listener(snapshot)
        return snapshot

    def apply_change_event(self, event: ChangeEvent) -> asyncio.Task:
        """Any change on the table schedules a fresh snapshot."""
        logger.debug("Change event %s on %s id=%s", event.change_type.value, event.table, event.record_id)
        return self._schedule_snapshot()

    def refresh(self) -> asyncio.Task:
        """Schedule a snapshot without waiting for it (tab activation, manual refresh)."""
        return self._schedule_snapshot()

    async def subscribe(self) -> tuple[IncidentRead, ...]:
        """(Re)subscribe to the change feed and load an initial snapshot."""
        self.unsubscribe()
        self._subscription = self._feed.subscribe(
            INCIDENTS_TABLE,
            ANY_EVENT,
            self.apply_change_event,
            on_status=self._on_feed_status,
        )
        return await self.load_snapshot()

    def unsubscribe(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    async def close(self) -> None:
        self.unsubscribe()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    async def wait_idle(self) -> None:
        """Wait until every scheduled snapshot has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _on_feed_status(self, status: ConnectionStatus) -> None:
        if status is ConnectionStatus.CONNECTED:
            logger.info("Feed reconnected, resynchronizing incidents")
            self._schedule_snapshot()

    def _schedule_snapshot(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.load_snapshot())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
