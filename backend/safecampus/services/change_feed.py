"""In-process change feed for store tables.

Delivery is best effort: events published while the feed is disconnected are
dropped, and payloads only say that something changed. Subscribers that need
exact state must re-read the store.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)

ANY_EVENT = "*"


class ChangeType(str, enum.Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ConnectionStatus(str, enum.Enum):
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"


@dataclass(frozen=True)
class ChangeEvent:
    """Coarse notification that a row in `table` changed."""

    table: str
    change_type: ChangeType
    record_id: Any = None
    payload: dict[str, Any] | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventHandler = Callable[[ChangeEvent], None]
StatusHandler = Callable[[ConnectionStatus], None]


class Subscription:
    """Handle returned by ChangeFeed.subscribe. Close it to stop delivery."""

    def __init__(
        self,
        feed: "ChangeFeed",
        table: str,
        event_filter: str,
        on_event: EventHandler,
        on_status: StatusHandler | None,
    ) -> None:
        self._feed = feed
        self.table = table
        self.event_filter = event_filter
        self.on_event = on_event
        self.on_status = on_status
        self.closed = False

    def matches(self, event: ChangeEvent) -> bool:
        if self.closed or event.table != self.table:
            return False
        return self.event_filter == ANY_EVENT or self.event_filter == event.change_type.value

    def close(self) -> None:
        if not self.closed:
            self._feed.unsubscribe(self)


class ChangeFeed:
    """Fans out table change events to subscribers."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []
        self._connected = True

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(
        self,
        table: str,
        event_filter: str,
        on_event: EventHandler,
        on_status: StatusHandler | None = None,
    ) -> Subscription:
        if event_filter != ANY_EVENT and event_filter not in ChangeType.__members__:
            raise ValueError(f"Unknown event filter: {event_filter}")
        sub = Subscription(self, table, event_filter, on_event, on_status)
        self._subscriptions.append(sub)
        logger.debug("Feed subscribe: table=%s filter=%s (total=%s)", table, event_filter, self.subscriber_count)
        return sub

    def unsubscribe(self, subscription: Subscription) -> None:
        subscription.closed = True
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)
        logger.debug("Feed unsubscribe: table=%s (total=%s)", subscription.table, self.subscriber_count)

    def publish(self, event: ChangeEvent) -> int:
        """Deliver event to matching subscribers. Returns how many received it."""
        if not self._connected:
            logger.debug("Feed disconnected, dropping %s on %s", event.change_type.value, event.table)
            return 0
        delivered = 0
        for sub in list(self._subscriptions):
            if not sub.matches(event):
                continue
            try:
                sub.on_event(event)
            except Exception:
                logger.exception("Change handler failed for table=%s", event.table)
                continue
            delivered += 1
        return delivered

    def disconnect(self) -> None:
        if not self._connected:
            return
        self._connected = False
        logger.info("Change feed disconnected")
        self._notify_status(ConnectionStatus.DISCONNECTED)

    def reconnect(self) -> None:
        if self._connected:
            return
        self._connected = True
        logger.info("Change feed reconnected")
        self._notify_status(ConnectionStatus.CONNECTED)

    def _notify_status(self, status: ConnectionStatus) -> None:
        for sub in list(self._subscriptions):
            if sub.on_status is None:
                continue
            try:
                sub.on_status(status)
            except Exception:
                logger.exception("Status handler failed for table=%s", sub.table)


# Singleton instance used across the app
change_feed = ChangeFeed()
