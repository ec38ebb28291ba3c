"""Session runtime lifecycle tests: idle sweep, websocket release, push tasks."""

import asyncio

import pytest

from safecampus.core.ws_manager import ws_manager
from safecampus.services.session_runtime import RuntimeOptions, RuntimeRegistry, SessionRuntime


@pytest.fixture
def registry(feed, store, clock):
    registry = RuntimeRegistry(feed)
    registry.configure(store=store, options=RuntimeOptions(idle_ttl_seconds=60.0, clock=clock))
    return registry


@pytest.mark.asyncio
async def test_abandoned_session_is_closed_and_unsubscribed(registry, feed, clock):
    abandoned = await registry.create()
    active = await registry.create(user_id=1)
    assert feed.subscriber_count == 2

    clock.advance(45)
    active.touch()
    clock.advance(20)

    assert await registry.sweep_idle() == 1
    assert registry.get(abandoned.session_id) is None
    assert registry.get(active.session_id) is active
    assert feed.subscriber_count == 1
    assert len(registry) == 1

    await registry.close_all()
    assert feed.subscriber_count == 0


@pytest.mark.asyncio
async def test_session_with_open_websocket_is_not_swept(registry, feed, clock, monkeypatch):
    runtime = await registry.create()
    monkeypatch.setattr(ws_manager, "has_connections", lambda session_id: session_id == runtime.session_id)

    clock.advance(600)
    assert await registry.sweep_idle() == 0
    assert registry.get(runtime.session_id) is runtime

    await registry.close_all()


@pytest.mark.asyncio
async def test_creating_a_session_sweeps_expired_ones(registry, feed, clock):
    old = await registry.create()
    clock.advance(61)
    await registry.create()
    assert registry.get(old.session_id) is None
    assert feed.subscriber_count == 1

    await registry.close_all()


@pytest.mark.asyncio
async def test_websocket_release_respects_later_http_activity(registry, clock):
    quiet = await registry.create()
    busy = await registry.create()
    connected_at = clock()

    clock.advance(1)
    busy.touch()

    assert await registry.release_if_idle(quiet.session_id, since=connected_at) is True
    assert await registry.release_if_idle(busy.session_id, since=connected_at) is False
    assert registry.get(busy.session_id) is busy
    assert await registry.release_if_idle("missing", since=connected_at) is False

    await registry.close_all()


@pytest.mark.asyncio
async def test_background_sweeper_closes_idle_sessions(registry, clock):
    registry.start_sweeper(interval=0.01)
    runtime = await registry.create()
    clock.advance(61)

    for _ in range(100):
        if registry.get(runtime.session_id) is None:
            break
        await asyncio.sleep(0.01)
    assert registry.get(runtime.session_id) is None

    await registry.close_all()


@pytest.mark.asyncio
async def test_close_cancels_pending_pushes(feed, store, clock, monkeypatch):
    runtime = SessionRuntime("s1", store, feed, RuntimeOptions(clock=clock))
    cancelled = []

    async def blocked_send(session_id, event, data):
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            cancelled.append(event)
            raise

    monkeypatch.setattr(ws_manager, "has_connections", lambda session_id: True)
    monkeypatch.setattr(ws_manager, "send_to_session", blocked_send)

    runtime.notifications.enqueue("hello")
    await asyncio.sleep(0)
    await runtime.close()

    assert cancelled == ["notification"]
