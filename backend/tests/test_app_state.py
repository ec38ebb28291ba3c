"""AppState reducer tests."""

import pytest

from safecampus.core.app_state import (
    AppState,
    LocationDenied,
    LocationReported,
    Tab,
    TabActivated,
    UserChanged,
    reduce,
)
from safecampus.schemas.incident import Location

FALLBACK = Location(latitude=27.4924, longitude=77.6737)
HERE = Location(latitude=28.61, longitude=77.21)


def test_reduce_returns_new_value():
    state = AppState()
    new = reduce(state, UserChanged(5))
    assert new.user_id == 5
    assert state.user_id is None


def test_denied_location_uses_fallback():
    state = reduce(AppState(), LocationDenied(FALLBACK))
    assert state.location == FALLBACK
    assert state.location_is_fallback is True


def test_real_fix_is_not_replaced_by_fallback():
    state = reduce(AppState(), LocationReported(HERE))
    state = reduce(state, LocationDenied(FALLBACK))
    assert state.location == HERE
    assert state.location_is_fallback is False


def test_tab_activation():
    assert reduce(AppState(), TabActivated(Tab.ALERTS)).active_tab is Tab.ALERTS


def test_unknown_event_raises():
    with pytest.raises(TypeError):
        reduce(AppState(), object())


def test_location_rejects_bad_coordinates():
    with pytest.raises(ValueError):
        Location(latitude=91.0, longitude=0.0)
    with pytest.raises(ValueError):
        Location(latitude=float("inf"), longitude=0.0)
