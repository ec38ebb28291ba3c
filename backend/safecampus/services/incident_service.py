"""Incident persistence service."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from safecampus.core.sos_policies import STATUS_ACTIVE, STATUS_RESOLVED
from safecampus.models.incident import Incident
from safecampus.schemas.incident import IncidentCreate

VALID_STATUSES = (STATUS_ACTIVE, STATUS_RESOLVED)


def list_active_incidents(db: Session) -> list[Incident]:
    """All active incidents, newest first."""
    stmt = (
        select(Incident)
        .where(Incident.status == STATUS_ACTIVE)
        .order_by(Incident.created_at.desc(), Incident.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


def get_incident(db: Session, incident_id: int) -> Incident | None:
    return db.get(Incident, incident_id)


def create_incident(
    db: Session,
    data: IncidentCreate,
    user_id: int | None,
    status: str = STATUS_ACTIVE,
) -> Incident:
    if status not in VALID_STATUSES:
        raise ValueError(f"Invalid status: {status}")
    incident = Incident(
        user_id=user_id,
        type=data.type,
        latitude=data.latitude,
        longitude=data.longitude,
        description=data.description,
        status=status,
    )
    db.add(incident)
    db.commit()
    db.refresh(incident)
    return incident


def update_incident_status(db: Session, incident_id: int, status: str) -> Incident:
    if status not in VALID_STATUSES:
        raise ValueError(f"Invalid status: {status}")
    incident = db.get(Incident, incident_id)
    if not incident:
        raise ValueError("Incident not found")
    incident.status = status
    db.commit()
    db.refresh(incident)
    return incident


def delete_incident(db: Session, incident_id: int) -> None:
    incident = db.get(Incident, incident_id)
    if not incident:
        raise ValueError("Incident not found")
    db.delete(incident)
    db.commit()
