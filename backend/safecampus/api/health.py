"""Health check endpoint."""

from fastapi import APIRouter

from safecampus.services.change_feed import change_feed
from safecampus.services.session_runtime import runtime_registry

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict:
    """Return API health status."""
    return {"status": "ok"}


@router.get("/health/realtime")
def realtime_health() -> dict:
    """Change feed and session runtime counters."""
    return {
        "feed_connected": change_feed.connected,
        "feed_subscribers": change_feed.subscriber_count,
        "open_sessions": len(runtime_registry),
    }
