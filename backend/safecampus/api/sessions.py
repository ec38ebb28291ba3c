"""Client session API: incident view, SOS, notifications and risk zones."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from safecampus.core.app_state import Tab
from safecampus.core.deps import get_optional_user, get_runtime
from safecampus.models.user import User
from safecampus.schemas.incident import IncidentRead, Location
from safecampus.schemas.session import (
    NotificationResponse,
    RiskAnnotation,
    SessionCreated,
    SessionStateResponse,
    SosStatusResponse,
    SosTriggerResponse,
    TabRequest,
)
from safecampus.services.session_runtime import SessionRuntime, runtime_registry

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _state_response(runtime: SessionRuntime) -> SessionStateResponse:
    state = runtime.state
    return SessionStateResponse(
        session_id=runtime.session_id,
        user_id=state.user_id,
        location=state.location,
        location_is_fallback=state.location_is_fallback,
        active_tab=state.active_tab.value,
        sos_state=runtime.sos_state.value,
    )


@router.post("", response_model=SessionCreated, status_code=status.HTTP_201_CREATED)
async def open_session(current_user: User | None = Depends(get_optional_user)):
    """Open a client session: subscribes to incident changes and loads a snapshot."""
    runtime = await runtime_registry.create(current_user.id if current_user else None)
    return SessionCreated(session_id=runtime.session_id)


@router.get("/{session_id}", response_model=SessionStateResponse)
async def get_session(runtime: SessionRuntime = Depends(get_runtime)):
    return _state_response(runtime)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(session_id: str, current_user: User | None = Depends(get_optional_user)):
    """Close a session and release its change feed subscription.

    A session bound to a user can only be closed by that user.
    """
    runtime = runtime_registry.get(session_id)
    if runtime is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    owner_id = runtime.state.user_id
    if owner_id is not None and (current_user is None or current_user.id != owner_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to close this session")
    await runtime_registry.close(session_id)


@router.post("/{session_id}/location", response_model=SessionStateResponse)
async def report_location(data: Location, runtime: SessionRuntime = Depends(get_runtime)):
    runtime.report_location(data)
    return _state_response(runtime)


@router.post("/{session_id}/location/denied", response_model=SessionStateResponse)
async def location_denied(runtime: SessionRuntime = Depends(get_runtime)):
    """Geolocation unavailable on the client; fall back to the default position."""
    runtime.deny_location()
    return _state_response(runtime)


@router.post("/{session_id}/tab", response_model=SessionStateResponse)
async def activate_tab(data: TabRequest, runtime: SessionRuntime = Depends(get_runtime)):
    runtime.activate_tab(Tab(data.tab))
    return _state_response(runtime)


@router.get("/{session_id}/incidents", response_model=list[IncidentRead])
async def active_incidents(runtime: SessionRuntime = Depends(get_runtime)):
    """The session's reconciled view of active incidents, newest first."""
    return list(runtime.reconciler.active_incidents)


@router.get("/{session_id}/alerts", response_model=list[IncidentRead])
async def recent_alerts(
    limit: int | None = Query(default=None, ge=1, le=100),
    runtime: SessionRuntime = Depends(get_runtime),
):
    return runtime.reconciler.recent_alerts(limit)


@router.post("/{session_id}/refresh", response_model=list[IncidentRead])
async def refresh(runtime: SessionRuntime = Depends(get_runtime)):
    """Reload the snapshot now. On failure the previous view is returned."""
    return list(await runtime.reconciler.load_snapshot())


@router.get("/{session_id}/sos", response_model=SosStatusResponse)
async def sos_status(runtime: SessionRuntime = Depends(get_runtime)):
    return SosStatusResponse(
        state=runtime.sos_state.value,
        cooldown_remaining_sec=round(runtime.sos.cooldown_remaining, 3),
    )


@router.post("/{session_id}/sos", response_model=SosTriggerResponse)
async def trigger_sos(runtime: SessionRuntime = Depends(get_runtime)):
    """Send an SOS from the session's user and location. Repeated taps are ignored."""
    outcome = await runtime.trigger_sos()
    return SosTriggerResponse(
        result=outcome.result.value,
        state=outcome.state.value,
        message=outcome.message,
        incident=outcome.incident,
    )


@router.get("/{session_id}/notifications", response_model=list[NotificationResponse])
async def notifications(runtime: SessionRuntime = Depends(get_runtime)):
    return runtime.notifications.pending()


@router.post("/{session_id}/notifications/drain", response_model=list[NotificationResponse])
async def drain_notifications(runtime: SessionRuntime = Depends(get_runtime)):
    return runtime.notifications.drain()


@router.get("/{session_id}/zones", response_model=list[RiskAnnotation])
async def risk_zones(runtime: SessionRuntime = Depends(get_runtime)):
    return runtime.zones.annotations
