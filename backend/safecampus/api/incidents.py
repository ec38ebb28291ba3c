"""Incident reports API.

Writes go through the incident store so every change reaches the change feed.
"""

from __future__ import annotations

import math

from fastapi import APIRouter, Depends, HTTPException, status

from safecampus.core.deps import get_current_user, get_incident_store
from safecampus.core.errors import RateLimitError, StoreError
from safecampus.core.sos_policies import STATUS_RESOLVED
from safecampus.models.user import User
from safecampus.schemas.incident import IncidentCreate, IncidentRead
from safecampus.services.incident_store import IncidentStore

router = APIRouter(prefix="/incidents", tags=["incidents"])


def _store_error(e: StoreError) -> HTTPException:
    if isinstance(e, RateLimitError):
        retry = math.ceil(e.retry_after)
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=f"Too many reports. Try again in {retry} seconds.",
            headers={"Retry-After": str(retry)},
        )
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


async def _get_owned(store: IncidentStore, incident_id: int, user: User) -> IncidentRead:
    try:
        incident = await store.get_incident(incident_id)
    except StoreError as e:
        raise _store_error(e)
    if incident is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Incident not found")
    if incident.user_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only the reporter can change this incident")
    return incident


@router.get("", response_model=list[IncidentRead])
async def list_active(store: IncidentStore = Depends(get_incident_store)):
    """Active incidents straight from the store. Readable without login."""
    try:
        return await store.fetch_active_incidents()
    except StoreError as e:
        raise _store_error(e)


@router.post("", response_model=IncidentRead, status_code=status.HTTP_201_CREATED)
async def report_incident(
    data: IncidentCreate,
    store: IncidentStore = Depends(get_incident_store),
    current_user: User = Depends(get_current_user),
):
    """Report an incident at a location."""
    try:
        return await store.create_incident(data, current_user.id)
    except StoreError as e:
        raise _store_error(e)


@router.post("/{incident_id}/resolve", response_model=IncidentRead)
async def resolve_incident(
    incident_id: int,
    store: IncidentStore = Depends(get_incident_store),
    current_user: User = Depends(get_current_user),
):
    await _get_owned(store, incident_id, current_user)
    try:
        return await store.update_status(incident_id, STATUS_RESOLVED)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreError as e:
        raise _store_error(e)


@router.delete("/{incident_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_incident(
    incident_id: int,
    store: IncidentStore = Depends(get_incident_store),
    current_user: User = Depends(get_current_user),
):
    await _get_owned(store, incident_id, current_user)
    try:
        await store.delete_incident(incident_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreError as e:
        raise _store_error(e)
