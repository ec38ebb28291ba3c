"""Per-session UI state as an immutable value updated by events."""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace

from safecampus.schemas.incident import Location


class Tab(str, enum.Enum):
    MAP = "map"
    CONTACTS = "contacts"
    ALERTS = "alerts"


@dataclass(frozen=True)
class AppState:
    user_id: int | None = None
    location: Location | None = None
    location_is_fallback: bool = False
    active_tab: Tab = Tab.MAP


@dataclass(frozen=True)
class UserChanged:
    user_id: int | None


@dataclass(frozen=True)
class LocationReported:
    location: Location


@dataclass(frozen=True)
class LocationDenied:
    fallback: Location


@dataclass(frozen=True)
class TabActivated:
    tab: Tab


AppEvent = UserChanged | LocationReported | LocationDenied | TabActivated


def reduce(state: AppState, event: AppEvent) -> AppState:
    """Return the state that follows `event`."""
    if isinstance(event, UserChanged):
        return replace(state, user_id=event.user_id)
    if isinstance(event, LocationReported):
        return replace(state, location=event.location, location_is_fallback=False)
    if isinstance(event, LocationDenied):
        # A real fix beats the fallback
        if state.location is not None and not state.location_is_fallback:
            return state
        return replace(state, location=event.fallback, location_is_fallback=True)
    if isinstance(event, TabActivated):
        return replace(state, active_tab=event.tab)
    raise TypeError(f"Unknown event: {event!r}")
