"""Transient FIFO of user-facing messages.

Every entry lives for the same TTL, so expiry always happens at the head of
the queue. Expiry is scheduled on the running event loop when there is one
and is also applied on every read.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from safecampus.core.sos_policies import NOTIFICATION_TTL_SECONDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationEntry:
    id: str
    message: str
    created_at: datetime


@dataclass(frozen=True)
class _Slot:
    entry: NotificationEntry
    expires_at: float


class NotificationQueue:
    def __init__(
        self,
        ttl_seconds: float = NOTIFICATION_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._slots: deque[_Slot] = deque()
        self._listeners: list[Callable[[NotificationEntry], None]] = []
        self._timers: set[asyncio.TimerHandle] = set()

    def add_listener(self, listener: Callable[[NotificationEntry], None]) -> None:
        self._listeners.append(listener)

    def enqueue(self, message: str) -> str:
        entry = NotificationEntry(id=uuid4().hex, message=message, created_at=datetime.now(timezone.utc))
        with self._lock:
            self._slots.append(_Slot(entry=entry, expires_at=self._clock() + self._ttl))
        self._schedule_expiry()
        logger.debug("Notification queued: %s", message)
        for listener in list(self._listeners):
            listener(entry)
        return entry.id

    def pending(self) -> list[NotificationEntry]:
        """Live entries in arrival order."""
        with self._lock:
            self._expire_locked()
            return [slot.entry for slot in self._slots]

    def drain(self) -> list[NotificationEntry]:
        """Remove and return live entries in arrival order."""
        with self._lock:
            self._expire_locked()
            entries = [slot.entry for slot in self._slots]
            self._slots.clear()
            return entries

    def expire(self) -> int:
        with self._lock:
            return self._expire_locked()

    def close(self) -> None:
        for timer in list(self._timers):
            timer.cancel()
        self._timers.clear()

    def __len__(self) -> int:
        return len(self.pending())

    def _expire_locked(self) -> int:
        now = self._clock()
        removed = 0
        while self._slots and self._slots[0].expires_at <= now:
            self._slots.popleft()
            removed += 1
        return removed

    def _schedule_expiry(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # no event loop; reads expire lazily

        def _fire() -> None:
            self._timers.discard(handle)
            self.expire()

        handle = loop.call_later(self._ttl, _fire)
        self._timers.add(handle)
