"""SafeCampus FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from safecampus.api import auth, contacts, health, incidents, sessions, ws
from safecampus.core.config import settings
from safecampus.services.session_runtime import runtime_registry

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    runtime_registry.start_sweeper(settings.session_sweep_interval_seconds)
    yield
    # Release every change feed subscription held by open sessions
    await runtime_registry.close_all()
    logger.info("All sessions closed")


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(contacts.router)
app.include_router(incidents.router)
app.include_router(sessions.router)
app.include_router(ws.router)
