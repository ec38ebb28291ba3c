"""SQLAlchemy models."""

from __future__ import annotations

from safecampus.models.emergency_contact import EmergencyContact
from safecampus.models.incident import Incident
from safecampus.models.user import User

__all__ = [
    "User",
    "EmergencyContact",
    "Incident",
]
