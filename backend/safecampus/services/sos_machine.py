"""SOS submission state machine: idle -> submitting -> cooldown -> idle."""

from __future__ import annotations

import asyncio
import enum
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from safecampus.core.errors import InvalidCoordinatesError, PreconditionError, RateLimitError, StoreError
from safecampus.core.sos_policies import (
    COOLDOWN_SECONDS,
    MSG_SOS_FAILED,
    MSG_SOS_INVALID_LOCATION,
    MSG_SOS_PRECONDITION,
    MSG_SOS_RATE_LIMITED,
    MSG_SOS_SENT,
    SOS_DESCRIPTION,
    SOS_INCIDENT_TYPE,
)
from safecampus.schemas.incident import IncidentCreate, IncidentRead, Location
from safecampus.services.geo_service import validate_coordinates
from safecampus.services.incident_store import IncidentStore
from safecampus.services.notification_queue import NotificationQueue

logger = logging.getLogger(__name__)


class SosState(str, enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    COOLDOWN = "cooldown"


class SosResult(str, enum.Enum):
    SUBMITTED = "submitted"
    SUPPRESSED = "suppressed"  # trigger while submitting or cooling down
    REJECTED = "rejected"  # precondition or coordinate check failed, nothing sent
    FAILED = "failed"  # store insert failed


def check_preconditions(user_id: int | None, location: Location | None) -> tuple[float, float]:
    """Validated (lat, lng) for an SOS; PreconditionError without identity or location."""
    if user_id is None:
        raise PreconditionError("SOS requires a logged-in user")
    if location is None:
        raise PreconditionError("SOS requires a location")
    return validate_coordinates(location.latitude, location.longitude)


@dataclass
class SosOutcome:
    result: SosResult
    state: SosState
    message: str | None = None
    incident: IncidentRead | None = None


class SosStateMachine:
    """At most one SOS insert per cooldown window."""

    def __init__(
        self,
        store: IncidentStore,
        notifications: NotificationQueue,
        cooldown_seconds: float = COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._notifications = notifications
        self._cooldown = cooldown_seconds
        self._clock = clock
        self._state = SosState.IDLE
        self._cooldown_until: float | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._listeners: list[Callable[[SosState], None]] = []

    @property
    def state(self) -> SosState:
        self._maybe_end_cooldown()
        return self._state

    @property
    def cooldown_remaining(self) -> float:
        if self.state is not SosState.COOLDOWN or self._cooldown_until is None:
            return 0.0
        return max(self._cooldown_until - self._clock(), 0.0)

    def add_listener(self, listener: Callable[[SosState], None]) -> None:
        self._listeners.append(listener)

    async def trigger(self, user_id: int | None, location: Location | None) -> SosOutcome:
        """Handle one SOS tap."""
        state = self.state
        if state is not SosState.IDLE:
            logger.debug("SOS trigger ignored in state %s", state.value)
            return SosOutcome(SosResult.SUPPRESSED, state)

        try:
            lat, lng = check_preconditions(user_id, location)
        except PreconditionError as e:
            logger.debug("SOS rejected: %s", e)
            self._notifications.enqueue(MSG_SOS_PRECONDITION)
            return SosOutcome(SosResult.REJECTED, state, MSG_SOS_PRECONDITION)
        except InvalidCoordinatesError as e:
            logger.error("SOS rejected for user=%s: %s", user_id, e)
            self._notifications.enqueue(MSG_SOS_INVALID_LOCATION)
            return SosOutcome(SosResult.REJECTED, state, MSG_SOS_INVALID_LOCATION)

        self._set_state(SosState.SUBMITTING)
        logger.info("SOS submitting: user=%s at (%s, %s)", user_id, lat, lng)
        try:
            incident = await self._store.create_incident(
                IncidentCreate(type=SOS_INCIDENT_TYPE, latitude=lat, longitude=lng, description=SOS_DESCRIPTION),
                user_id,
            )
        except RateLimitError as e:
            message = MSG_SOS_RATE_LIMITED.format(seconds=math.ceil(e.retry_after))
            return self._fail(user_id, message, e)
        except StoreError as e:
            return self._fail(user_id, MSG_SOS_FAILED.format(error=e), e)
        except BaseException:
            self._set_state(SosState.IDLE)
            raise

        self._enter_cooldown()
        self._notifications.enqueue(MSG_SOS_SENT)
        logger.info("SOS sent: incident=%s user=%s", incident.id, user_id)
        return SosOutcome(SosResult.SUBMITTED, self._state, MSG_SOS_SENT, incident)

    def close(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fail(self, user_id: int, message: str, error: Exception) -> SosOutcome:
        logger.warning("SOS failed for user=%s: %s", user_id, error)
        self._set_state(SosState.IDLE)
        self._notifications.enqueue(message)
        return SosOutcome(SosResult.FAILED, self._state, message)

    def _enter_cooldown(self) -> None:
        self._cooldown_until = self._clock() + self._cooldown
        self._set_state(SosState.COOLDOWN)
        self._arm_timer(self._cooldown)

    def _arm_timer(self, delay: float) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return  # state reads still end the cooldown
        self._timer = loop.call_later(delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        if self._state is not SosState.COOLDOWN or self._cooldown_until is None:
            return
        remaining = self._cooldown_until - self._clock()
        if remaining > 0:
            self._arm_timer(remaining)
            return
        self._maybe_end_cooldown()

    def _maybe_end_cooldown(self) -> None:
        if (
            self._state is SosState.COOLDOWN
            and self._cooldown_until is not None
            and self._clock() >= self._cooldown_until
        ):
            self._cooldown_until = None
            self._set_state(SosState.IDLE)

    def _set_state(self, new_state: SosState) -> None:
        if new_state is self._state:
            return
        logger.debug("SOS state %s -> %s", self._state.value, new_state.value)
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)
