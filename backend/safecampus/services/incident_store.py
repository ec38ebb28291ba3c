"""Async incident store used by the realtime engine.

SqlIncidentStore runs the blocking SQLAlchemy calls in the threadpool and
publishes a change event on the feed after every committed write.
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from safecampus.core.errors import MalformedRecordError, TransientStoreError
from safecampus.core.rate_limit import SlidingWindowLimiter
from safecampus.services import incident_service
from safecampus.services.change_feed import ChangeEvent, ChangeFeed, ChangeType
from safecampus.schemas.incident import IncidentCreate, IncidentRead

logger = logging.getLogger(__name__)

INCIDENTS_TABLE = "incidents"


class IncidentStore(Protocol):
    """Incident persistence contract."""

    async def fetch_active_incidents(self) -> list[IncidentRead]: ...

    async def get_incident(self, incident_id: int) -> IncidentRead | None: ...

    async def create_incident(self, data: IncidentCreate, user_id: int | None) -> IncidentRead: ...

    async def update_status(self, incident_id: int, status: str) -> IncidentRead: ...

    async def delete_incident(self, incident_id: int) -> None: ...


class SqlIncidentStore:
    """SQLAlchemy implementation of IncidentStore."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        feed: ChangeFeed,
        insert_limiter: SlidingWindowLimiter | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._feed = feed
        self._insert_limiter = insert_limiter

    async def fetch_active_incidents(self) -> list[IncidentRead]:
        return await self._run(_fetch_active)

    async def get_incident(self, incident_id: int) -> IncidentRead | None:
        return await self._run(_get_one, incident_id)

    async def create_incident(self, data: IncidentCreate, user_id: int | None) -> IncidentRead:
        if self._insert_limiter is not None and user_id is not None:
            self._insert_limiter.hit(user_id)
        incident = await self._run(_create, data, user_id)
        self._publish(ChangeType.INSERT, incident.id, incident.model_dump(mode="json"))
        return incident

    async def update_status(self, incident_id: int, status: str) -> IncidentRead:
        incident = await self._run(_update_status, incident_id, status)
        self._publish(ChangeType.UPDATE, incident.id, incident.model_dump(mode="json"))
        return incident

    async def delete_incident(self, incident_id: int) -> None:
        await self._run(_delete, incident_id)
        self._publish(ChangeType.DELETE, incident_id)

    async def _run(self, fn, *args):
        return await run_in_threadpool(self._in_session, fn, *args)

    def _in_session(self, fn, *args):
        db = self._session_factory()
        try:
            return fn(db, *args)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("Incident store error: %s", e)
            raise TransientStoreError(f"Incident store unavailable: {e.__class__.__name__}") from e
        except ValidationError as e:
            raise MalformedRecordError(f"Malformed incident row: {e.errors()[0]['msg']}") from e
        finally:
            db.close()

    def _publish(self, change_type: ChangeType, record_id: int, payload: dict | None = None) -> None:
        self._feed.publish(
            ChangeEvent(table=INCIDENTS_TABLE, change_type=change_type, record_id=record_id, payload=payload)
        )


def _fetch_active(db: Session) -> list[IncidentRead]:
    return [IncidentRead.model_validate(row) for row in incident_service.list_active_incidents(db)]


def _get_one(db: Session, incident_id: int) -> IncidentRead | None:
    row = incident_service.get_incident(db, incident_id)
    return IncidentRead.model_validate(row) if row else None


def _create(db: Session, data: IncidentCreate, user_id: int | None) -> IncidentRead:
    return IncidentRead.model_validate(incident_service.create_incident(db, data, user_id))


def _update_status(db: Session, incident_id: int, status: str) -> IncidentRead:
    return IncidentRead.model_validate(incident_service.update_incident_status(db, incident_id, status))


def _delete(db: Session, incident_id: int) -> None:
    incident_service.delete_incident(db, incident_id)
