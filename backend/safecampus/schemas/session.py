"""Client session, SOS, notification and risk zone schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from safecampus.schemas.incident import IncidentRead, Location


class SessionCreated(BaseModel):
    session_id: str


class SessionStateResponse(BaseModel):
    session_id: str
    user_id: int | None
    location: Location | None
    location_is_fallback: bool
    active_tab: str
    sos_state: str


class TabRequest(BaseModel):
    tab: str = Field(..., pattern="^(map|contacts|alerts)$")


class SosStatusResponse(BaseModel):
    state: str
    cooldown_remaining_sec: float = 0.0


class SosTriggerResponse(BaseModel):
    result: str  # submitted | suppressed | rejected | failed
    state: str
    message: str | None = None
    incident: IncidentRead | None = None


class NotificationResponse(BaseModel):
    id: str
    message: str
    created_at: datetime

    model_config = {"from_attributes": True}


class RiskAnnotation(BaseModel):
    area: str
    risk_level: str  # low | medium | high
    reason: str
    lat: float
    lng: float
    incident_count: int

    model_config = {"frozen": True}
