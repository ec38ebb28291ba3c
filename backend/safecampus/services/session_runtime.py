"""Per-client session runtime and the registry that owns them.

A SessionRuntime is what one open client (a browser tab, a phone) talks to:
its own AppState, incident view, SOS machine, notifications and risk zones.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import uuid4

from safecampus.core.app_state import (
    AppEvent,
    AppState,
    LocationDenied,
    LocationReported,
    Tab,
    TabActivated,
    UserChanged,
    reduce,
)
from safecampus.core.config import settings
from safecampus.core.rate_limit import SlidingWindowLimiter
from safecampus.core.ws_manager import ws_manager
from safecampus.db.session import SessionLocal
from safecampus.schemas.incident import Location
from safecampus.services.change_feed import ChangeFeed, change_feed
from safecampus.services.incident_store import IncidentStore, SqlIncidentStore
from safecampus.services.notification_queue import NotificationEntry, NotificationQueue
from safecampus.services.reconciler import IncidentReconciler
from safecampus.services.sos_machine import SosOutcome, SosState, SosStateMachine
from safecampus.services.zone_analyzer import AnalyzeFn, ZoneRiskAnalyzer, make_cluster_analyzer

logger = logging.getLogger(__name__)

# Tabs whose activation refreshes the incident view
_REFRESH_TABS = (Tab.MAP, Tab.ALERTS)


@dataclass
class RuntimeOptions:
    cooldown_seconds: float = settings.sos_cooldown_seconds
    notification_ttl_seconds: float = settings.notification_ttl_seconds
    recent_alerts_limit: int = settings.recent_alerts_limit
    fallback_location: Location = field(
        default_factory=lambda: Location(latitude=settings.default_latitude, longitude=settings.default_longitude)
    )
    analyze: AnalyzeFn | None = None
    idle_ttl_seconds: float = settings.session_idle_ttl_seconds
    clock: Callable[[], float] = time.monotonic


class SessionRuntime:
    def __init__(
        self,
        session_id: str,
        store: IncidentStore,
        feed: ChangeFeed,
        options: RuntimeOptions | None = None,
    ) -> None:
        opts = options or RuntimeOptions()
        self.session_id = session_id
        self._fallback = opts.fallback_location
        self._clock = opts.clock
        self.last_seen = opts.clock()
        self._state = AppState()
        self._push_tasks: set[asyncio.Task] = set()
        self.notifications = NotificationQueue(opts.notification_ttl_seconds, clock=opts.clock)
        self.reconciler = IncidentReconciler(store, feed, self.notifications, opts.recent_alerts_limit)
        self.sos = SosStateMachine(store, self.notifications, opts.cooldown_seconds, clock=opts.clock)
        self.zones = ZoneRiskAnalyzer(opts.analyze or make_cluster_analyzer(settings.zone_radius_km))

        self.reconciler.add_listener(self.zones.submit)
        self.reconciler.add_listener(
            lambda snapshot: self._push("incidents.snapshot", [i.model_dump(mode="json") for i in snapshot])
        )
        self.sos.add_listener(lambda state: self._push("sos.state", {"state": state.value}))
        self.notifications.add_listener(self._push_notification)
        self.zones.add_listener(
            lambda annotations: self._push("zones.updated", [a.model_dump() for a in annotations])
        )

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def sos_state(self) -> SosState:
        return self.sos.state

    @property
    def idle_for(self) -> float:
        return self._clock() - self.last_seen

    def touch(self) -> None:
        self.last_seen = self._clock()

    async def start(self) -> None:
        await self.reconciler.subscribe()

    def dispatch(self, event: AppEvent) -> AppState:
        previous = self._state
        self._state = reduce(previous, event)
        if isinstance(event, UserChanged) and event.user_id != previous.user_id:
            logger.info("Session %s identity changed: %s -> %s", self.session_id, previous.user_id, event.user_id)
        if isinstance(event, TabActivated) and event.tab in _REFRESH_TABS and event.tab != previous.active_tab:
            self.request_refresh()
        return self._state

    def sync_user(self, user_id: int | None) -> None:
        if user_id != self._state.user_id:
            self.dispatch(UserChanged(user_id))

    def report_location(self, location: Location) -> AppState:
        return self.dispatch(LocationReported(location))

    def deny_location(self) -> AppState:
        return self.dispatch(LocationDenied(self._fallback))

    def activate_tab(self, tab: Tab) -> AppState:
        return self.dispatch(TabActivated(tab))

    def request_refresh(self) -> asyncio.Task:
        return self.reconciler.refresh()

    async def trigger_sos(self) -> SosOutcome:
        return await self.sos.trigger(self._state.user_id, self._state.location)

    async def close(self) -> None:
        await self.reconciler.close()
        await self.zones.close()
        self.sos.close()
        self.notifications.close()
        pushes = list(self._push_tasks)
        for task in pushes:
            task.cancel()
        if pushes:
            await asyncio.gather(*pushes, return_exceptions=True)
        self._push_tasks.clear()
        ws_manager.close_session(self.session_id)

    def _push_notification(self, entry: NotificationEntry) -> None:
        self._push("notification", {"id": entry.id, "message": entry.message, "created_at": entry.created_at})

    def _push(self, event: str, data: Any) -> None:
        if not ws_manager.has_connections(self.session_id):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # no event loop (e.g. in tests)
        task = loop.create_task(ws_manager.send_to_session(self.session_id, event, data))
        self._push_tasks.add(task)
        task.add_done_callback(self._push_tasks.discard)


class RuntimeRegistry:
    """Creates, finds and closes session runtimes.

    A runtime lives until it is closed explicitly, its last websocket goes away
    with no HTTP request since that socket connected, or it sits idle (no
    request and no socket) for longer than `options.idle_ttl_seconds`.
    """

    def __init__(self, feed: ChangeFeed) -> None:
        self.feed = feed
        self._store: IncidentStore | None = None
        self.options = RuntimeOptions()
        self._runtimes: dict[str, SessionRuntime] = {}
        self._sweeper: asyncio.Task | None = None

    @property
    def store(self) -> IncidentStore:
        if self._store is None:
            self._store = SqlIncidentStore(
                SessionLocal,
                self.feed,
                insert_limiter=SlidingWindowLimiter(limit=settings.incident_reports_per_minute),
            )
        return self._store

    def configure(self, store: IncidentStore | None = None, options: RuntimeOptions | None = None) -> None:
        if store is not None:
            self._store = store
        if options is not None:
            self.options = options

    def __len__(self) -> int:
        return len(self._runtimes)

    async def create(self, user_id: int | None = None) -> SessionRuntime:
        await self.sweep_idle()
        session_id = uuid4().hex
        runtime = SessionRuntime(session_id, self.store, self.feed, self.options)
        runtime.sync_user(user_id)
        self._runtimes[session_id] = runtime
        await runtime.start()
        logger.info("Session %s started (user=%s, open=%s)", session_id, user_id, len(self._runtimes))
        return runtime

    def get(self, session_id: str) -> SessionRuntime | None:
        return self._runtimes.get(session_id)

    async def close(self, session_id: str) -> bool:
        runtime = self._runtimes.pop(session_id, None)
        if runtime is None:
            return False
        await runtime.close()
        logger.info("Session %s closed (open=%s)", session_id, len(self._runtimes))
        return True

    async def release_if_idle(self, session_id: str, since: float) -> bool:
        """Close a session whose websockets are all gone and that saw no request after `since`."""
        runtime = self._runtimes.get(session_id)
        if runtime is None or ws_manager.has_connections(session_id) or runtime.last_seen > since:
            return False
        logger.info("Session %s released after websocket disconnect", session_id)
        return await self.close(session_id)

    async def sweep_idle(self) -> int:
        """Close every session idle past the TTL with no open websocket."""
        ttl = self.options.idle_ttl_seconds
        expired = [
            session_id
            for session_id, runtime in self._runtimes.items()
            if runtime.idle_for >= ttl and not ws_manager.has_connections(session_id)
        ]
        for session_id in expired:
            logger.info("Session %s idle for over %ss, closing", session_id, ttl)
            await self.close(session_id)
        return len(expired)

    def start_sweeper(self, interval: float) -> None:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop(interval))

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        await asyncio.gather(self._sweeper, return_exceptions=True)
        self._sweeper = None

    async def close_all(self) -> None:
        await self.stop_sweeper()
        for session_id in list(self._runtimes):
            await self.close(session_id)

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep_idle()
            except Exception:
                logger.exception("Idle session sweep failed")


runtime_registry = RuntimeRegistry(change_feed)
