"""Incident and location schemas."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from safecampus.services.geo_service import validate_coordinates


class Location(BaseModel):
    """A validated lat/lng pair."""

    latitude: float
    longitude: float

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_range(self) -> "Location":
        validate_coordinates(self.latitude, self.longitude)
        return self


class IncidentCreate(BaseModel):
    type: str = Field(..., min_length=1, max_length=40)
    latitude: float
    longitude: float
    description: str | None = Field(default=None, max_length=2000)

    @model_validator(mode="after")
    def _check_range(self) -> "IncidentCreate":
        validate_coordinates(self.latitude, self.longitude)
        return self


class IncidentRead(BaseModel):
    """Incident as seen by the realtime engine and API consumers."""

    id: int
    type: str
    latitude: float
    longitude: float
    description: str | None = None
    status: str
    created_at: datetime
    user_id: int | None = None

    model_config = {"from_attributes": True, "frozen": True}

    @model_validator(mode="after")
    def _check_range(self) -> "IncidentRead":
        validate_coordinates(self.latitude, self.longitude)
        return self
